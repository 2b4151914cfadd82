#!/usr/bin/env python3
"""Vault session - the unlocked view of one vault for one command.

A session starts Locked (it only knows the vault path). unlock() checks the
master password against the stored verifier and keeps the entry key in a
bytearray owned by the session. close() zeroes that key and closes the
store; it runs on every exit from the ``with`` block, error or not.

    with VaultSession(path) as session:
        session.unlock(password)
        session.create("github", "hunter2")

A closed session cannot be unlocked again.
"""

from pathlib import Path
from typing import List, Optional

from . import crypto
from .errors import (
    AuthenticationFailed,
    Corrupt,
    DecryptionFailed,
    InvalidConfig,
    InvalidEntryName,
    VaultLocked,
)
from .store import VaultStore

LOCKED = "locked"
UNLOCKED = "unlocked"
CLOSED = "closed"


class VaultSession:
    """Unlock-then-operate-then-teardown cycle over one vault file."""

    def __init__(self, path):
        self.path = Path(path)
        self.state = LOCKED
        self._key: Optional[bytearray] = None
        self._store: Optional[VaultStore] = None

    @staticmethod
    def init_vault(path, password: str, cost: int = crypto.DEFAULT_COST,
                   memlimit: int = crypto.DEFAULT_MEMLIMIT) -> Path:
        """Create a new, empty vault protected by password.

        Raises:
            InvalidConfig: cost or memlimit out of range
            AlreadyExists: path is taken

        """
        crypto.check_params(cost, memlimit)
        salt = crypto.generate_salt()
        master = crypto.derive_key(password, salt, cost, memlimit)
        try:
            verifier = crypto.derive_verifier(master)
        finally:
            crypto.wipe(master)

        store = VaultStore.create(path, salt, verifier, cost, memlimit)
        store.close()
        return store.path

    def unlock(self, password: str) -> "VaultSession":
        """Check password and move to the Unlocked state.

        Raises:
            NotFound: no vault at path
            Corrupt: vault unreadable or its stored parameters are invalid
            AuthenticationFailed: wrong password
            VaultBusy: another process holds the vault file

        """
        if self.state != LOCKED:
            raise VaultLocked(f"session is {self.state}; unlock is allowed once per session")

        store = VaultStore.open(self.path)
        master = None
        try:
            material = store.get_verifier_material()
            try:
                master = crypto.derive_key(password, material.salt, material.cost, material.memlimit)
            except InvalidConfig as e:
                raise Corrupt(f"vault {self.path} has invalid key-derivation parameters: {e}") from e

            if not crypto.verify(crypto.derive_verifier(master), material.verifier):
                raise AuthenticationFailed()

            self._key = crypto.derive_entry_key(master)
        except BaseException:
            store.close()
            raise
        finally:
            crypto.wipe(master)

        self._store = store
        self.state = UNLOCKED
        return self

    def close(self) -> None:
        """Zero the entry key and release the vault file."""
        crypto.wipe(self._key)
        self._key = None
        if self._store is not None:
            self._store.close()
            self._store = None
        self.state = CLOSED

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def _unlocked(self):
        if self.state != UNLOCKED:
            raise VaultLocked()
        return self._key, self._store

    @staticmethod
    def _check_name(name):
        if not name:
            raise InvalidEntryName()

    def contains(self, name: str) -> bool:
        _, store = self._unlocked()
        return store.has_entry(name)

    def create(self, name: str, secret: str, overwrite: bool = False) -> None:
        """Seal secret and store it under name.

        Raises AlreadyExists unless overwrite is set.
        """
        self._check_name(name)
        key, store = self._unlocked()
        blob = crypto.encrypt(key, secret.encode('utf-8'))
        store.put_entry(name, blob, overwrite=overwrite)

    def read(self, name: str) -> str:
        key, store = self._unlocked()
        blob = store.get_entry(name)
        plaintext = crypto.decrypt(key, blob)
        try:
            return plaintext.decode('utf-8')
        except UnicodeDecodeError:
            raise DecryptionFailed(f"entry {name} did not decrypt to text") from None

    def delete(self, name: str) -> None:
        _, store = self._unlocked()
        store.delete_entry(name)

    def list(self) -> List[str]:
        _, store = self._unlocked()
        return store.list_names()
