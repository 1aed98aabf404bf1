"""Command-line interface for the slice uploader.

Provides argument parsing, logging setup and the main entry point for
uploading files from the command line.
"""

import argparse
import logging
import os
import sys
from typing import Optional

from rich.logging import RichHandler

from slice_uploader.config import UploaderSettings, apply_overrides, load_config
from slice_uploader.errors import ConfigError
from slice_uploader.models import StoreConfig
from slice_uploader.reporters import ConsoleReporter, JsonReporter, Reporter
from slice_uploader.runner import FleetRunner
from slice_uploader.s3_client import build_s3_client
from slice_uploader.s3_store import S3ObjectStore

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


class CompositeReporter(Reporter):
    """Reporter that delegates to multiple reporters.

    Allows using both ConsoleReporter and JsonReporter simultaneously.
    """

    def __init__(self, reporters: list[Reporter]):
        self._reporters = reporters

    def on_run_start(self, file_count, settings) -> None:
        for reporter in self._reporters:
            reporter.on_run_start(file_count, settings)

    def on_file_skipped(self, path, reason) -> None:
        for reporter in self._reporters:
            reporter.on_file_skipped(path, reason)

    def on_file_start(self, job) -> None:
        for reporter in self._reporters:
            reporter.on_file_start(job)

    def on_attempt_failed(self, job, attempt, reason) -> None:
        for reporter in self._reporters:
            reporter.on_attempt_failed(job, attempt, reason)

    def on_file_complete(self, result) -> None:
        for reporter in self._reporters:
            reporter.on_file_complete(result)

    def on_run_complete(self, result) -> None:
        for reporter in self._reporters:
            reporter.on_run_complete(result)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="slice-uploader",
        description="Upload large files to an S3-compatible bucket with CRC32C verification",
    )

    parser.add_argument("files", nargs="*", metavar="FILE", help="Files to upload")

    parser.add_argument(
        "-b", "--bucket",
        required=True,
        help="Destination bucket",
    )

    parser.add_argument(
        "-c", "--config",
        metavar="PATH",
        help="Path to configuration file (default: uploader.json if present)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress per-file output, show only summary",
    )

    parser.add_argument(
        "-j", "--json-output",
        metavar="PATH",
        help="Write JSON results to file",
    )

    parser.add_argument(
        "--github-actions",
        action="store_true",
        help="Enable GitHub Actions output mode",
    )

    parser.add_argument("--prefix", dest="key_prefix", help="Prefix for destination keys")
    parser.add_argument("--chunk-size", type=_positive_int, help="Network chunk size in bytes")
    parser.add_argument(
        "--threshold",
        dest="sliced_threshold",
        type=_positive_int,
        help="Files above this many bytes are uploaded in slices",
    )
    parser.add_argument("--max-slices", type=_positive_int, help="Maximum slices per file")
    parser.add_argument(
        "--files",
        dest="simultaneous_files",
        type=_positive_int,
        help="Number of files uploaded at once",
    )
    parser.add_argument(
        "--threads",
        dest="upload_threads",
        type=_positive_int,
        help="Worker threads shared by slice uploads and checksums",
    )
    parser.add_argument(
        "--backoff",
        dest="retry_backoff_seconds",
        type=float,
        help="Seconds to wait between attempts",
    )
    parser.add_argument(
        "--max-attempts",
        type=_positive_int,
        help="Give up on a file after this many attempts (default: retry forever)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: LOG_LEVEL or WARNING)",
    )
    parser.add_argument("--debug", action="store_true", help="Shortcut for --log-level DEBUG")

    return parser.parse_args(argv)


def configure_logging(log_level: Optional[str] = None, debug: bool = False) -> str:
    """Install a Rich log handler on the root logger.

    Returns:
        The name of the effective log level.
    """
    if debug:
        level = logging.DEBUG
    else:
        name = log_level or os.getenv("LOG_LEVEL") or "WARNING"
        level = getattr(logging, name.upper(), logging.WARNING)

    handler = RichHandler(
        rich_tracebacks=True,
        show_time=True,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # boto's own debug output drowns everything else
    logging.getLogger("botocore").setLevel(max(level, logging.INFO))
    logging.getLogger("urllib3").setLevel(max(level, logging.INFO))
    return logging.getLevelName(level)


def create_reporters(args: argparse.Namespace) -> list[Reporter]:
    """Create reporters based on command-line arguments."""
    reporters: list[Reporter] = [ConsoleReporter(quiet=args.quiet)]

    if args.json_output or args.github_actions:
        reporters.append(JsonReporter(
            output_path=args.json_output,
            github_output=args.github_actions,
        ))

    return reporters


def build_store(
    bucket: str,
    store_config: StoreConfig,
    settings: UploaderSettings,
) -> S3ObjectStore:
    """Build the S3 store, sizing the connection pool to the worker count.

    Both pools issue requests: slice uploads on the inner pool, simple
    uploads, compose and head calls on the outer pool.
    """
    max_connections = settings.upload_threads + settings.simultaneous_files
    client = build_s3_client(store_config, max_pool_connections=max_connections)
    return S3ObjectStore(client, bucket)


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code: 0 when every file uploaded, 1 when no file was valid or
        any file failed, 2 for configuration errors, 130 when interrupted
    """
    args = parse_args(argv)
    configure_logging(args.log_level, args.debug)

    if not args.files:
        print("No files provided.", file=sys.stderr)
        return EXIT_FAILED

    try:
        settings, store_config = load_config(args.config)
        settings = apply_overrides(settings, {
            "chunk_size": args.chunk_size,
            "sliced_threshold": args.sliced_threshold,
            "max_slices": args.max_slices,
            "simultaneous_files": args.simultaneous_files,
            "upload_threads": args.upload_threads,
            "retry_backoff_seconds": args.retry_backoff_seconds,
            "max_attempts": args.max_attempts,
            "key_prefix": args.key_prefix,
        })
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    reporters = create_reporters(args)
    if len(reporters) == 1:
        reporter = reporters[0]
    else:
        reporter = CompositeReporter(reporters)

    store = build_store(args.bucket, store_config, settings)
    runner = FleetRunner(args.bucket, store, settings, reporter=reporter)

    try:
        result = runner.run(args.files)
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED

    if not result.files:
        print("No valid files provided.", file=sys.stderr)
        return EXIT_FAILED

    return EXIT_OK if result.all_succeeded else EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
