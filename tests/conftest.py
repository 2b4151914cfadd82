"""Pytest fixtures and utilities for srpk tests."""

import sqlite3
import tempfile
from pathlib import Path

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from srpk import crypto
from srpk.config import Settings
from srpk.session import VaultSession

# Cheapest Argon2id settings so the suite stays fast
FAST_COST = crypto.MIN_COST
FAST_MEMLIMIT = crypto.MIN_MEMLIMIT


@pytest.fixture
def temp_vault_dir():
    """Create a temporary directory for vault files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config_dir(temp_vault_dir, monkeypatch):
    """Point the config directory at a temp location and clear password env."""
    cfg = temp_vault_dir / "config"
    monkeypatch.setenv("SRPK_CONFIG_DIR", str(cfg))
    monkeypatch.delenv("SRPK_PASSWORD", raising=False)
    yield cfg


@pytest.fixture
def settings(config_dir):
    return Settings(config_dir=config_dir)


@pytest.fixture
def test_vault(temp_vault_dir):
    """Create an initialized vault with test data."""
    password = "test_password_123"
    vault_path = VaultSession.init_vault(
        temp_vault_dir / "test.db", password, FAST_COST, FAST_MEMLIMIT
    )

    entries = {
        "github": "gh_pass_123",
        "email": "email_pass_789",
        "bank": "b@nk-p4ss",
    }

    with VaultSession(vault_path) as session:
        session.unlock(password)
        for name, secret in entries.items():
            session.create(name, secret)

    return {
        "path": vault_path,
        "password": password,
        "entries": entries,
    }


@pytest.fixture
def audit_logger(temp_vault_dir):
    """Create an audit logger with temp log path."""
    from srpk.audit import AuditLogger
    log_path = temp_vault_dir / "access.log"
    logger = AuditLogger(log_path)
    yield logger


def read_blob(vault_path, name):
    """Fetch the raw stored ciphertext for an entry."""
    conn = sqlite3.connect(str(vault_path))
    try:
        row = conn.execute("SELECT ciphertext FROM entries WHERE name = ?", (name,)).fetchone()
    finally:
        conn.close()
    return row[0] if row else None


def write_blob(vault_path, name, blob):
    """Overwrite the raw stored ciphertext for an entry, bypassing the store."""
    conn = sqlite3.connect(str(vault_path))
    try:
        with conn:
            conn.execute("UPDATE entries SET ciphertext = ? WHERE name = ?", (blob, name))
    finally:
        conn.close()


def flip_byte(blob, index=-1):
    tampered = bytearray(blob)
    tampered[index] ^= 0x01
    return bytes(tampered)


def damage_entries_table(vault_path):
    """Swap the entries table for one without the expected columns.

    The metadata stays intact, so the vault still opens and unlocks.
    """
    conn = sqlite3.connect(str(vault_path))
    try:
        with conn:
            conn.execute("DROP TABLE entries")
            conn.execute("CREATE TABLE entries (label TEXT)")
    finally:
        conn.close()
