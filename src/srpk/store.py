#!/usr/bin/env python3
"""SQLite persistence for a single vault file.

Layout:
- metadata: one row with the salt, verifier and Argon2id parameters
- entries: entry name -> sealed blob

Nothing in this module ever sees a plaintext secret or the master password.
"""

import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .errors import AlreadyExists, Corrupt, NotFound, VaultBusy

FORMAT_VERSION = 1

SCHEMA = """
CREATE TABLE metadata (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    format INTEGER NOT NULL,
    salt BLOB NOT NULL,
    verifier BLOB NOT NULL,
    cost INTEGER NOT NULL,
    memlimit INTEGER NOT NULL,
    created TEXT NOT NULL
);

CREATE TABLE entries (
    name TEXT PRIMARY KEY,
    ciphertext BLOB NOT NULL,
    created TEXT NOT NULL,
    modified TEXT NOT NULL
);
"""

# Single-file store: no WAL side files; deleted blobs are overwritten on disk
PRAGMAS = (
    "PRAGMA locking_mode=EXCLUSIVE",
    "PRAGMA synchronous=FULL",
    "PRAGMA secure_delete=ON",
)

# Seconds to wait for another process to release the file
BUSY_TIMEOUT = 5.0


@dataclass(frozen=True)
class VerifierMaterial:
    """Everything needed to check an unlock attempt."""

    salt: bytes
    verifier: bytes
    cost: int
    memlimit: int


def _now():
    return datetime.now(timezone.utc).isoformat()


class VaultStore:
    """Open handle on one vault file.

    Usage:
        with VaultStore.open(path) as store:
            material = store.get_verifier_material()
            store.put_entry("github", blob)
    """

    def __init__(self, path: Path, conn: sqlite3.Connection):
        self.path = path
        self.conn: Optional[sqlite3.Connection] = conn

    @classmethod
    def create(cls, path, salt: bytes, verifier: bytes, cost: int, memlimit: int) -> "VaultStore":
        """Create a new vault file and return an open handle on it.

        Raises:
            AlreadyExists: something already exists at path

        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        # Claim the path atomically so two inits can't both succeed
        try:
            fd = os.open(str(path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
        except FileExistsError:
            raise AlreadyExists(f"vault already exists: {path}") from None
        os.close(fd)

        conn = None
        try:
            conn = sqlite3.connect(str(path))
            cls._apply_pragmas(conn)
            with conn:
                conn.executescript(SCHEMA)
                conn.execute(
                    """INSERT INTO metadata (id, format, salt, verifier, cost, memlimit, created)
                       VALUES (1, ?, ?, ?, ?, ?, ?)""",
                    (FORMAT_VERSION, salt, verifier, cost, memlimit, _now())
                )
        except BaseException:
            if conn is not None:
                conn.close()
            path.unlink()
            raise

        return cls(path, conn)

    @classmethod
    def open(cls, path) -> "VaultStore":
        """Open an existing vault file.

        Raises:
            NotFound: no file at path
            Corrupt: the file is not a readable vault
            VaultBusy: another process holds the file

        """
        path = Path(path)
        if not path.is_file():
            raise NotFound(f"vault not found: {path}")

        try:
            # mode=rw: never create a fresh database by accident
            conn = sqlite3.connect(path.resolve().as_uri() + "?mode=rw", uri=True,
                                   timeout=BUSY_TIMEOUT)
        except sqlite3.Error as e:
            raise Corrupt(f"cannot open vault {path}: {e}") from e

        store = cls(path, conn)
        try:
            cls._apply_pragmas(conn)
            store._check_layout()
        except sqlite3.DatabaseError as e:
            store.close()
            raise store._storage_error(e) from e
        except Corrupt:
            store.close()
            raise

        return store

    @staticmethod
    def _apply_pragmas(conn):
        for pragma in PRAGMAS:
            conn.execute(pragma)

    def _check_layout(self):
        tables = {
            row[0] for row in
            self.conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
        if not {"metadata", "entries"} <= tables:
            raise Corrupt(f"vault {self.path} is missing its tables")

        row = self.conn.execute("SELECT format FROM metadata WHERE id = 1").fetchone()
        if not row:
            raise Corrupt(f"vault {self.path} has no metadata record")
        if row[0] != FORMAT_VERSION:
            raise Corrupt(f"vault {self.path} has unsupported format {row[0]!r}")

    def _storage_error(self, e: sqlite3.DatabaseError):
        """Translate a sqlite3 failure into the error reported to the user."""
        if isinstance(e, sqlite3.OperationalError) and "locked" in str(e):
            return VaultBusy(f"vault {self.path} is in use by another srpk process; try again")
        return Corrupt(f"vault {self.path} is not readable: {e}")

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def _db(self) -> sqlite3.Connection:
        if self.conn is None:
            raise ValueError("vault store is closed")
        return self.conn

    def get_verifier_material(self) -> VerifierMaterial:
        try:
            row = self._db().execute(
                "SELECT salt, verifier, cost, memlimit FROM metadata WHERE id = 1"
            ).fetchone()
        except sqlite3.DatabaseError as e:
            raise self._storage_error(e) from e

        if not row:
            raise Corrupt(f"vault {self.path} has no metadata record")

        salt, verifier, cost, memlimit = row
        if not isinstance(salt, bytes) or not isinstance(verifier, bytes) \
                or not isinstance(cost, int) or not isinstance(memlimit, int):
            raise Corrupt(f"vault {self.path} has a malformed metadata record")

        return VerifierMaterial(salt=salt, verifier=verifier, cost=cost, memlimit=memlimit)

    def put_entry(self, name: str, blob: bytes, overwrite: bool = False) -> None:
        """Store a sealed blob under name.

        Raises:
            AlreadyExists: name is taken and overwrite is False
            VaultBusy: another process holds the file

        """
        now = _now()
        conn = self._db()
        try:
            with conn:
                if overwrite:
                    conn.execute(
                        """INSERT INTO entries (name, ciphertext, created, modified)
                           VALUES (?, ?, ?, ?)
                           ON CONFLICT(name) DO UPDATE SET
                               ciphertext = excluded.ciphertext,
                               modified = excluded.modified""",
                        (name, blob, now, now)
                    )
                else:
                    conn.execute(
                        "INSERT INTO entries (name, ciphertext, created, modified) VALUES (?, ?, ?, ?)",
                        (name, blob, now, now)
                    )
        except sqlite3.IntegrityError:
            raise AlreadyExists(f"entry already exists: {name}") from None
        except sqlite3.DatabaseError as e:
            raise self._storage_error(e) from e

    def get_entry(self, name: str) -> bytes:
        try:
            row = self._db().execute(
                "SELECT ciphertext FROM entries WHERE name = ?", (name,)
            ).fetchone()
        except sqlite3.DatabaseError as e:
            raise self._storage_error(e) from e
        if not row:
            raise NotFound(f"entry not found: {name}")
        if not isinstance(row[0], bytes):
            raise Corrupt(f"entry {name} has a malformed ciphertext")
        return row[0]

    def has_entry(self, name: str) -> bool:
        try:
            row = self._db().execute(
                "SELECT 1 FROM entries WHERE name = ?", (name,)
            ).fetchone()
        except sqlite3.DatabaseError as e:
            raise self._storage_error(e) from e
        return row is not None

    def delete_entry(self, name: str) -> None:
        conn = self._db()
        try:
            with conn:
                cursor = conn.execute("DELETE FROM entries WHERE name = ?", (name,))
        except sqlite3.DatabaseError as e:
            raise self._storage_error(e) from e
        if cursor.rowcount == 0:
            raise NotFound(f"entry not found: {name}")

    def list_names(self) -> List[str]:
        try:
            rows = self._db().execute("SELECT name FROM entries ORDER BY name").fetchall()
        except sqlite3.DatabaseError as e:
            raise self._storage_error(e) from e
        return [row[0] for row in rows]
