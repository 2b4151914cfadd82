#!/usr/bin/env python3
"""Per-user settings and the active-vault pointer.

The pointer is a plain UTF-8 path string in the config directory naming the
vault that bare commands (ls, mk, rm, <key>) operate on. Settings are
loaded once in main() and handed to every command.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import Corrupt, NotFound

CONFIG_DIR_ENV = "SRPK_CONFIG_DIR"
POINTER_FILE = "active_vault"
LOG_FILE = "access.log"
VAULT_SUFFIX = ".db"


def default_config_dir() -> Path:
    """Config directory: $SRPK_CONFIG_DIR, $XDG_CONFIG_HOME/srpk or ~/.config/srpk."""
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override)
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / "srpk"


def vault_file(path) -> Path:
    """Vault files always carry the .db suffix."""
    path = Path(path)
    if path.name.endswith(VAULT_SUFFIX):
        return path
    return path.with_name(path.name + VAULT_SUFFIX)


@dataclass(frozen=True)
class Settings:
    config_dir: Path

    @classmethod
    def load(cls) -> "Settings":
        return cls(config_dir=default_config_dir())

    @property
    def pointer_path(self) -> Path:
        return self.config_dir / POINTER_FILE

    @property
    def log_path(self) -> Path:
        return self.config_dir / LOG_FILE


def get_active_vault(settings: Settings) -> Optional[Path]:
    """Return the active vault path, or None if none was set."""
    pointer = settings.pointer_path
    if not pointer.exists():
        return None

    try:
        value = pointer.read_bytes().decode('utf-8').strip()
    except UnicodeDecodeError:
        raise Corrupt(f"active vault pointer {pointer} is not valid UTF-8") from None

    return Path(value) if value else None


def require_active_vault(settings: Settings) -> Path:
    vault = get_active_vault(settings)
    if vault is None:
        raise NotFound("no active vault; run 'srpk use <vault>' or 'srpk init <vault>'")
    return vault


def set_active_vault(settings: Settings, vault) -> Path:
    """Point bare commands at vault.

    Relative paths are stored absolute so the pointer keeps working from any
    directory. The vault file must exist.
    """
    path = Path(vault)
    if not path.exists():
        path = vault_file(path)
    if not path.is_file():
        raise NotFound(f"vault not found: {vault}")

    path = path.absolute()
    settings.config_dir.mkdir(parents=True, exist_ok=True)
    fd = os.open(str(settings.pointer_path), os.O_CREAT | os.O_TRUNC | os.O_WRONLY, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(str(path))
    return path
