#!/usr/bin/env python3
"""Clipboard access and the deferred clear.

A secret copied by ``srpk <key>`` is cleared CLEAR_DELAY seconds later by a
detached helper process (``python -m srpk.clipboard``), so the command
itself returns immediately. The helper only receives a SHA-256 digest of
the secret, over stdin. If the user has copied something else in the
meantime the clipboard is left alone.

On WSL the clipboard is never read back: clip.exe mangles non-ASCII text,
so the clear always happens there, even over a newer copy.
"""

import argparse
import hashlib
import os
import subprocess
import sys
import time
from typing import List, Optional

from .errors import ClipboardError

CLEAR_DELAY = 10
TOOL_TIMEOUT = 5


def _is_wsl() -> bool:
    with open("/proc/version") as f:
        version = f.read().lower()
    return "microsoft" in version or "wsl" in version


def copy_command() -> Optional[List[str]]:
    """Pick the clipboard write tool for this environment."""
    if sys.platform == "darwin":
        return ["pbcopy"]
    if os.path.exists("/proc/version"):
        if _is_wsl():
            return ["clip.exe"]
        if os.environ.get("WAYLAND_DISPLAY"):
            return ["wl-copy"]
        return ["xclip", "-selection", "clipboard"]
    return None


def paste_command() -> Optional[List[str]]:
    """Pick the clipboard read tool matching copy_command()."""
    if sys.platform == "darwin":
        return ["pbpaste"]
    if os.path.exists("/proc/version"):
        if _is_wsl():
            # clip.exe does not round-trip non-ASCII UTF-8, so a read-back
            # could never match; treat the clipboard as unreadable
            return None
        if os.environ.get("WAYLAND_DISPLAY"):
            return ["wl-paste", "--no-newline"]
        return ["xclip", "-o", "-selection", "clipboard"]
    return None


def copy(text: str) -> None:
    """Put text on the system clipboard.

    Raises:
        ClipboardError: no tool for this platform, tool missing, or tool failed

    """
    cmd = copy_command()
    if cmd is None:
        raise ClipboardError()

    # xclip forks to own the selection; never wait on its output pipes
    try:
        proc = subprocess.run(
            cmd,
            input=text.encode('utf-8'),
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=TOOL_TIMEOUT,
        )
    except FileNotFoundError:
        raise ClipboardError(f"clipboard tool not found: {cmd[0]}") from None
    except subprocess.TimeoutExpired:
        raise ClipboardError(f"clipboard tool timed out: {cmd[0]}") from None

    if proc.returncode != 0:
        raise ClipboardError(f"{cmd[0]} failed with exit status {proc.returncode}")


def paste() -> Optional[str]:
    """Read the clipboard, or None when it can't be read."""
    cmd = paste_command()
    if cmd is None:
        return None

    try:
        proc = subprocess.run(cmd, capture_output=True, timeout=TOOL_TIMEOUT)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if proc.returncode != 0:
        return None

    return proc.stdout.decode('utf-8', errors='replace')


def digest(text: str) -> str:
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def clear_if_unchanged(expected_digest: str) -> bool:
    """Clear the clipboard unless it now holds something other than the secret.

    An unreadable clipboard is cleared anyway. Returns True if cleared.
    """
    current = paste()
    if current is not None and digest(current) != expected_digest:
        return False
    copy("")
    return True


class ClearTimer:
    """Handle on a pending clipboard clear."""

    def __init__(self, process: subprocess.Popen, delay: float):
        self.process = process
        self.delay = delay

    def cancel(self) -> None:
        if self.process.poll() is None:
            self.process.terminate()


def schedule_clear(text: str, delay: float = CLEAR_DELAY) -> ClearTimer:
    """Start the detached helper that clears text from the clipboard after delay."""
    process = subprocess.Popen(
        [sys.executable, "-m", "srpk.clipboard", "--clear-after", str(delay)],
        stdin=subprocess.PIPE,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
        close_fds=True,
    )
    process.stdin.write(digest(text).encode('ascii') + b"\n")
    process.stdin.close()
    return ClearTimer(process, delay)


def copy_with_expiry(text: str, delay: float = CLEAR_DELAY) -> ClearTimer:
    copy(text)
    return schedule_clear(text, delay)


def main(argv=None) -> int:
    """Entry point of the detached clear helper."""
    parser = argparse.ArgumentParser(
        prog="python -m srpk.clipboard",
        description="Clear the clipboard after a delay if it still holds a secret",
    )
    parser.add_argument('--clear-after', type=float, default=CLEAR_DELAY,
                        help=f'Seconds to wait before clearing (default: {CLEAR_DELAY})')
    args = parser.parse_args(argv)

    expected = sys.stdin.readline().strip()
    time.sleep(args.clear_after)

    try:
        clear_if_unchanged(expected)
    except ClipboardError:
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
