from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

SYNC_MODES = {"dropbox", "none"}


@dataclass(slots=True)
class PathsConfig:
    inbox: Path = Path("/dropbox/Dropbox/inbox")
    queued: Path = Path("/dropbox/Dropbox/queued")
    outbox: Path = Path("/dropbox/mars")
    log: Path | None = None


@dataclass(slots=True)
class PollConfig:
    interval_seconds: float = 0.5


@dataclass(slots=True)
class SlotConfig:
    filename: str = "external.seq"


@dataclass(slots=True)
class SyncConfig:
    mode: str = "dropbox"
    command: str = "dropbox-cli filestatus"
    timeout_seconds: float = 10


@dataclass(slots=True)
class AppConfig:
    paths: PathsConfig = field(default_factory=PathsConfig)
    poll: PollConfig = field(default_factory=PollConfig)
    slot: SlotConfig = field(default_factory=SlotConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)


def default_config() -> AppConfig:
    return AppConfig()


def _section(raw: dict, key: str) -> dict:
    value = raw.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"`{key}` must be a mapping")
    return value


def load_config(path: str | Path) -> AppConfig:
    config_path = Path(path).expanduser().resolve()
    raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError("Config root must be a mapping")

    paths_raw = _section(raw, "paths")
    poll_raw = _section(raw, "poll")
    slot_raw = _section(raw, "slot")
    sync_raw = _section(raw, "sync")

    def to_path(value: object) -> Path:
        output = Path(str(value)).expanduser()
        if not output.is_absolute():
            output = config_path.parent / output
        return output

    defaults = PathsConfig()
    log_raw = paths_raw.get("log")
    paths = PathsConfig(
        inbox=to_path(paths_raw.get("inbox", defaults.inbox)),
        queued=to_path(paths_raw.get("queued", defaults.queued)),
        outbox=to_path(paths_raw.get("outbox", defaults.outbox)),
        log=to_path(log_raw) if log_raw else None,
    )
    if len({paths.inbox, paths.queued, paths.outbox}) != 3:
        raise ValueError("`paths.inbox`, `paths.queued` and `paths.outbox` must be distinct")

    poll = PollConfig(interval_seconds=float(poll_raw.get("interval_seconds", 0.5)))
    if poll.interval_seconds <= 0:
        raise ValueError("`poll.interval_seconds` must be > 0")

    slot = SlotConfig(filename=str(slot_raw.get("filename", "external.seq")))
    if not slot.filename or "/" in slot.filename:
        raise ValueError("`slot.filename` must be a plain file name")

    sync = SyncConfig(
        mode=str(sync_raw.get("mode", "dropbox")).lower(),
        command=str(sync_raw.get("command", "dropbox-cli filestatus")),
        timeout_seconds=float(sync_raw.get("timeout_seconds", 10)),
    )
    if sync.mode not in SYNC_MODES:
        raise ValueError("`sync.mode` must be either `dropbox` or `none`")
    if sync.timeout_seconds <= 0:
        raise ValueError("`sync.timeout_seconds` must be > 0")

    return AppConfig(paths=paths, poll=poll, slot=slot, sync=sync)


def apply_path_overrides(
    config: AppConfig,
    *,
    inbox: str | None = None,
    queued: str | None = None,
    outbox: str | None = None,
) -> AppConfig:
    if inbox:
        config.paths.inbox = Path(inbox).expanduser().resolve()
    if queued:
        config.paths.queued = Path(queued).expanduser().resolve()
    if outbox:
        config.paths.outbox = Path(outbox).expanduser().resolve()
    return config
