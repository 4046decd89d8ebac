from __future__ import annotations

import argparse
import logging
import sys
from collections import Counter

from .app_logging import LOGGER_NAME, log_with_fields, setup_logger
from .backend import FilesystemBackend
from .config import AppConfig, apply_path_overrides, default_config, load_config
from .errors import FunnelError, SyncError
from .scheduler import Scheduler
from .sync import AlwaysSynced, CommandSyncOracle


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="funnel", description="Fair-share single-slot job scheduler")
    parser.add_argument("--config", help="Path to funnel YAML config")
    parser.add_argument("--inbox", help="Override the inbox directory")
    parser.add_argument("--queued", help="Override the queued directory")
    parser.add_argument("--outbox", help="Override the outbox (execution slot) directory")
    parser.add_argument("--verbose", action="store_true", help="Log debug events")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run scheduler polling loop")
    run_parser.add_argument(
        "--once",
        action="store_true",
        help="Run recovery + one polling cycle, then exit",
    )
    subparsers.add_parser("scan", help="Run exactly one polling cycle")
    subparsers.add_parser("status", help="Show queued jobs and the execution slot")
    return parser


def build_backend(config: AppConfig, logger: logging.Logger) -> FilesystemBackend:
    if config.sync.mode == "dropbox":
        oracle = CommandSyncOracle(config.sync.command, config.sync.timeout_seconds)
    else:
        oracle = AlwaysSynced()
    return FilesystemBackend(
        inbox=config.paths.inbox,
        queued=config.paths.queued,
        outbox=config.paths.outbox,
        oracle=oracle,
        logger=logger,
        slot_name=config.slot.filename,
    )


def _open_runtime(config: AppConfig, verbose: bool = False) -> Scheduler:
    logger = setup_logger(config.paths.log, logging.DEBUG if verbose else logging.INFO)
    backend = build_backend(config, logger)
    return Scheduler(config=config, backend=backend, logger=logger)


def report_fatal(exc: BaseException) -> None:
    print(f"fatal: {exc}", file=sys.stderr)
    cause = exc.__cause__ or exc.__context__
    while cause is not None:
        print(f"  caused by: {type(cause).__name__}: {cause}", file=sys.stderr)
        cause = cause.__cause__ or cause.__context__


def cmd_run(config: AppConfig, *, once: bool = False, verbose: bool = False) -> int:
    scheduler = _open_runtime(config, verbose)
    try:
        if once:
            scheduler.run_once()
            return 0
        scheduler.run_forever()
    except KeyboardInterrupt:
        log_with_fields(logging.getLogger(LOGGER_NAME), logging.INFO, "shutdown", reason="keyboard_interrupt")
        return 0
    except (FunnelError, OSError, SyncError) as exc:
        logging.getLogger(LOGGER_NAME).exception("fatal_error")
        report_fatal(exc)
        return 1
    return 0


def cmd_scan(config: AppConfig, *, verbose: bool = False) -> int:
    return cmd_run(config, once=True, verbose=verbose)


def cmd_status(config: AppConfig) -> int:
    logger = setup_logger(None, logging.WARNING)
    backend = build_backend(config, logger)
    try:
        backend.initialize()
        queued = Counter(job.user for job in backend.check_queued())
        inbox = Counter(job.user for job in backend.check_inbox())
        running = backend.something_running()
    except (FunnelError, OSError, SyncError) as exc:
        report_fatal(exc)
        return 1

    print("Queued:")
    if not queued:
        print("  (nothing queued)")
    for user, count in sorted(queued.items()):
        print(f"  {user:20} {count}")

    print("\nInbox (ready for admission):")
    if not inbox:
        print("  (nothing ready)")
    for user, count in sorted(inbox.items()):
        print(f"  {user:20} {count}")

    print(f"\nExecution slot: {'occupied' if running else 'free'} ({config.paths.outbox})")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = load_config(args.config) if args.config else default_config()
    apply_path_overrides(config, inbox=args.inbox, queued=args.queued, outbox=args.outbox)

    if args.command == "run":
        return cmd_run(config, once=bool(args.once), verbose=args.verbose)
    if args.command == "scan":
        return cmd_scan(config, verbose=args.verbose)
    if args.command == "status":
        return cmd_status(config)
    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
