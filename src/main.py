"""Command line entry point: split one tar.gz archive stored in S3.

Example
-------
    python -m src.main \\
        --source-bucket archives --source-region eu-west-1 --source-key data/archive.tar.gz \\
        --target-bucket extracted --target-region eu-west-1 --target-prefix out/2024 \\
        --extra-root-dir basename
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Sequence

import msgspec
from pydantic import ValidationError

from src import add_file_handler, create_logger
from src.config import app_config, app_settings
from src.core.task import TGunzipTask
from src.schemas.task import TaskConfiguration
from src.services.storage import S3ObjectStore
from src.utilities import dumps_report, loads_json

logger = create_logger("main", structured=app_settings.LOG_STRUCTURED)
TASK_LOGGERS: tuple[str, ...] = ("main", "task", "pipeline", "demux", "uploader", "storage", "cancellation")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tgunzip",
        description="Stream a tar.gz archive from object storage and upload each entry as its own object.",
    )
    parser.add_argument("--config", type=Path, help="JSON file holding the task configuration (camelCase keys)")
    parser.add_argument("--source-bucket")
    parser.add_argument("--source-region", default=app_settings.AWS_DEFAULT_REGION)
    parser.add_argument("--source-key")
    parser.add_argument("--target-bucket")
    parser.add_argument("--target-region", default=app_settings.AWS_DEFAULT_REGION)
    parser.add_argument("--target-prefix", default="")
    parser.add_argument(
        "--extra-root-dir",
        default="",
        help="'dirname', 'basename' or both: source key parts appended to the target prefix",
    )
    parser.add_argument("--max-try-time", type=int, default=app_config.task_config.max_try_time)
    parser.add_argument("--log-file", type=Path)
    parser.add_argument(
        "--check-buckets",
        action="store_true",
        help="Verify both buckets are reachable before starting",
    )
    return parser


def load_configuration(args: argparse.Namespace) -> TaskConfiguration:
    """Build the task configuration from a JSON file or from the command line flags."""
    if args.config is not None:
        return TaskConfiguration.model_validate(loads_json(args.config.read_bytes()))

    return TaskConfiguration(
        source={"bucket": args.source_bucket, "region": args.source_region, "key": args.source_key},
        target={"bucket": args.target_bucket, "region": args.target_region, "prefix": args.target_prefix},
        extra_root_dir=args.extra_root_dir,
        max_try_time=args.max_try_time,
    )


def build_report(task: TGunzipTask) -> dict[str, Any]:
    return {
        "succeeded": task.succeeded,
        "cancelled": task.cancelled,
        "attempts": task.attempts,
        "targetPrefix": task.target_prefix,
        "lastError": task.last_error,
        "results": task.results.to_list(),
    }


async def arun(config: TaskConfiguration, check_buckets: bool = False) -> TGunzipTask:
    """Run one task, cancelling it on SIGINT/SIGTERM."""
    store = S3ObjectStore()
    task = TGunzipTask(store=store, config=config)

    if check_buckets:
        for bucket, region in (
            (config.source.bucket, config.source.region),
            (config.target.bucket, config.target.region),
        ):
            if not await store.acheck_bucket_exists(bucket, region):
                raise RuntimeError(f"Bucket '{bucket}' is not reachable")

    def signal_handler(sig: int) -> None:
        """Handle shutdown signals."""
        logger.info(f"[+] Received signal {sig}, cancelling the task...")
        task.cancel()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))

    try:
        await task.arun()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
    return task


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    log_level = logging.DEBUG if app_settings.DEBUG else logging.INFO
    for name in TASK_LOGGERS:
        task_logger = create_logger(name, log_level=log_level, structured=app_settings.LOG_STRUCTURED)
        if args.log_file is not None:
            add_file_handler(task_logger, args.log_file, structured=app_settings.LOG_STRUCTURED)

    try:
        config = load_configuration(args)
    except (ValidationError, msgspec.DecodeError, OSError) as e:
        logger.error(f"[x] Invalid task configuration: {e}")
        return 2

    try:
        task = asyncio.run(arun(config, check_buckets=args.check_buckets))
    except KeyboardInterrupt:
        logger.info("[+] Received KeyboardInterrupt, exiting...")
        return 130
    except Exception as e:
        logger.error(f"[-] Fatal error running task: {e}")
        return 1

    sys.stdout.write(dumps_report(build_report(task)).decode() + "\n")
    return 0 if task.succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
