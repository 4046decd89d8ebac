from __future__ import annotations

import shlex
import subprocess
from enum import Enum
from pathlib import Path
from typing import Protocol

from .errors import SyncError


class SyncStatus(str, Enum):
    SYNCED = "up to date"
    SYNCING = "syncing"
    UNKNOWN = "unknown"


def parse_filestatus(output: str) -> SyncStatus:
    """Parse `<path>: <status>` as printed by `dropbox-cli filestatus`."""
    text = output.strip()
    if not text:
        return SyncStatus.UNKNOWN
    status = text.rsplit(":", 1)[-1].strip().lower()
    if status == "up to date":
        return SyncStatus.SYNCED
    if status in {"syncing", "sync"}:
        return SyncStatus.SYNCING
    return SyncStatus.UNKNOWN


class SyncOracle(Protocol):
    def status(self, path: Path) -> SyncStatus: ...


class AlwaysSynced:
    """Oracle for plain filesystems where nothing mirrors files in the background."""

    def status(self, path: Path) -> SyncStatus:
        return SyncStatus.SYNCED


class CommandSyncOracle:
    def __init__(self, command: str, timeout_seconds: float = 10) -> None:
        self.command = shlex.split(command)
        self.timeout_seconds = timeout_seconds

    def _run(self, cmd: list[str]) -> subprocess.CompletedProcess[str]:
        return subprocess.run(cmd, capture_output=True, text=True, check=False, timeout=self.timeout_seconds)

    def status(self, path: Path) -> SyncStatus:
        cmd = [*self.command, str(path)]
        try:
            process = self._run(cmd)
        except FileNotFoundError as exc:
            raise SyncError(f"sync status command not found: {self.command[0]}") from exc
        except subprocess.TimeoutExpired as exc:
            raise SyncError(f"sync status for {path} timed out after {self.timeout_seconds}s") from exc
        if process.returncode != 0:
            stderr = process.stderr.strip()
            raise SyncError(f"sync status for {path} failed: {stderr or 'exit code ' + str(process.returncode)}")
        return parse_filestatus(process.stdout)
