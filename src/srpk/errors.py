#!/usr/bin/env python3
"""Error types raised by the vault engine and surfaced by the CLI."""


class VaultError(Exception):
    """Base class for every failure the CLI reports to the user."""

    exit_code = 1
    default_message = "vault error"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class InvalidConfig(VaultError):
    """Key-derivation parameters or other settings are out of range."""

    default_message = "invalid configuration"


class AlreadyExists(VaultError):
    """A vault or entry with that name already exists."""

    default_message = "already exists"


class NotFound(VaultError):
    """A vault, entry or active-vault pointer is missing."""

    default_message = "not found"


class AuthenticationFailed(VaultError):
    """The master password does not match the vault verifier."""

    default_message = "wrong master password"


class Corrupt(VaultError):
    """Persisted vault structure could not be read."""

    default_message = "vault file is corrupt or not a vault"


class DecryptionFailed(VaultError):
    """A ciphertext blob is malformed or failed authentication."""

    default_message = "decryption failed (entry is damaged or was tampered with)"


class VaultLocked(VaultError):
    """An entry operation was attempted on a session that is not unlocked."""

    default_message = "vault session is not unlocked"


class VaultBusy(VaultError):
    """Another srpk process holds the vault file."""

    default_message = "vault is in use by another srpk process; try again"


class InvalidEntryName(VaultError):
    default_message = "entry name must not be empty"


class ClipboardError(VaultError):
    default_message = "no usable clipboard tool found"
