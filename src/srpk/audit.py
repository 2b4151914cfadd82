#!/usr/bin/env python3
"""Access log for vault commands.

One line per vault-scoped command, appended to a 0600 file in the config
directory and rotated daily:

    2026-10-19T08:15:02.118Z [4242/srpk] OK GET /home/me/main.db github
    2026-10-19T08:15:40.007Z [4250/srpk] AuthenticationFailed LS /home/me/main.db

Only vault paths and entry names are recorded, never secrets or passwords.
"""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

ROTATED_PREFIX = "access.log."
DATE_FORMAT = "%Y%m%d"


class AuditLogger:
    """Append-only command log with daily rotation."""

    def __init__(self, log_path: Path, retention_days: int = 30, program: str = "srpk"):
        self.log_path = Path(log_path)
        self.retention_days = retention_days
        self.program = program

        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.log_path.parent.chmod(0o700)

    def _open_for_append(self):
        fd = os.open(str(self.log_path), os.O_CREAT | os.O_APPEND | os.O_WRONLY, 0o600)
        return os.fdopen(fd, "a", encoding="utf-8")

    def log(
        self,
        result: str,
        action: str,
        vault,
        name: Optional[str] = None,
        reason: Optional[str] = None
    ) -> None:
        """Record one command outcome.

        Args:
            result: OK, or the error class name on failure
            action: INIT | USE | LS | MK | RM | GET
            vault: Vault file path (or '-' when none is known)
            name: Entry name, for entry commands
            reason: Short failure detail

        """
        self._rotate_if_stale()

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
        fields = [timestamp, f"[{os.getpid()}/{self.program}]", result, action, str(vault)]
        if name is not None:
            fields.append(name)
        if reason:
            fields.append(f"({reason})")

        with self._open_for_append() as f:
            f.write(" ".join(fields) + "\n")

    def _rotate_if_stale(self) -> None:
        """Move yesterday's log aside the first time we write on a new day."""
        if not self.log_path.exists():
            return

        now = datetime.now(timezone.utc)
        modified = datetime.fromtimestamp(self.log_path.stat().st_mtime, tz=timezone.utc)
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        if modified >= midnight:
            return

        rotated = self.log_path.parent / (ROTATED_PREFIX + modified.strftime(DATE_FORMAT))
        if not rotated.exists():
            self.log_path.rename(rotated)
        self._prune(now)

    def _prune(self, now: datetime) -> None:
        cutoff = now - timedelta(days=self.retention_days)
        for path in self.rotated_logs():
            stamp = path.name[len(ROTATED_PREFIX):]
            try:
                day = datetime.strptime(stamp, DATE_FORMAT).replace(tzinfo=timezone.utc)
            except ValueError:
                continue
            if day < cutoff:
                path.unlink()

    def rotated_logs(self) -> List[Path]:
        return sorted(self.log_path.parent.glob(ROTATED_PREFIX + "*"))

    def read_recent(self, lines: int = 100) -> List[str]:
        """Last ``lines`` entries of the current log, oldest first."""
        if not self.log_path.exists():
            return []
        with open(self.log_path, encoding="utf-8") as f:
            return f.readlines()[-lines:]
