from __future__ import annotations

import argparse
import logging
import sys
from datetime import timedelta
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from replicaudit.app import compare_history_files, download_histories, run_consistency_check
from replicaudit.config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_EXCLUDED_SERVER_NAMES,
    configure_logging,
    get_audit_config,
)
from replicaudit.config.errors import ConfigurationError
from replicaudit.config.http_resilience import DEFAULT_RETRY_ATTEMPTS

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _add_server_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--server-addresses",
        nargs="+",
        metavar="ADDRESS",
        help="Replica addresses to check. If not set, they are read from the registry",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=None,
        help=f"Attempts per request before giving up (default {DEFAULT_RETRY_ATTEMPTS})",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help=f"Maximum number of concurrent units of work (default {DEFAULT_CONCURRENCY})",
    )
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable progress bars",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Audit consistency between content replicas")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check", help="Compare replicas against each other")
    _add_server_arguments(check)
    check.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Directory for log.txt, failed.txt and results.txt (defaults to config)",
    )
    check.add_argument(
        "--pc",
        type=int,
        default=0,
        help="Percentage of content files to download and compare",
    )
    check.add_argument(
        "--fail-fast",
        action="store_true",
        help="Stop at the first entity mismatch",
    )
    check.add_argument(
        "--ignore",
        nargs="+",
        default=(),
        metavar="ENTITY_ID",
        help="Extra entity ids to drop from every history",
    )
    check.add_argument(
        "--skew-seconds",
        type=float,
        default=None,
        help="Only check deployments older than this many seconds (default 120)",
    )
    check.add_argument(
        "--max-requests-per-second",
        type=int,
        default=None,
        help="Optional rate limit per replica",
    )

    download = subparsers.add_parser(
        "download-history",
        help="Store each replica's history as JSON lines",
    )
    _add_server_arguments(download)
    download.add_argument("output_dir", help="Directory where history files are written")

    compare = subparsers.add_parser(
        "compare-history",
        help="List the events each stored history is missing",
    )
    compare.add_argument("input_dir", help="Directory with one history file per replica")
    compare.add_argument("output_dir", help="Directory where missing-<name> files are written")
    compare.add_argument(
        "--include-all-servers",
        action="store_true",
        help="Also report events deployed by the known faulty servers",
    )

    return parser.parse_args(list(argv))


def _history_skew(seconds: float | None) -> timedelta | None:
    if seconds is None:
        return None
    if seconds < 0:
        raise ValueError("Skew seconds must be non-negative")
    return timedelta(seconds=seconds)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    load_dotenv()
    signal(SIGINT, sigint_handler)
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        audit = None
        if parsed_args.command in {"check", "download-history"}:
            is_check = parsed_args.command == "check"
            audit = get_audit_config(
                retries=parsed_args.retries,
                concurrency=parsed_args.concurrency,
                content_sample_percentage=parsed_args.pc if is_check else None,
                fail_fast=parsed_args.fail_fast if is_check else False,
                extra_ignored_entity_ids=parsed_args.ignore if is_check else (),
                history_skew=_history_skew(parsed_args.skew_seconds) if is_check else None,
                max_requests_per_second=(
                    parsed_args.max_requests_per_second if is_check else None
                ),
                show_progress=not parsed_args.no_progress,
            )
    except (ValueError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "check":
            report = run_consistency_check(
                parsed_args.server_addresses,
                audit=audit,
                output_dir=parsed_args.output,
            )
            log.info(
                "Consistency check finished: %s",
                ", ".join(line for line in report.summary_lines() if ":" in line),
            )
        elif parsed_args.command == "download-history":
            written = download_histories(
                parsed_args.server_addresses,
                output_dir=parsed_args.output_dir,
                audit=audit,
            )
            log.info("Stored %s histories in %s", len(written), parsed_args.output_dir)
        elif parsed_args.command == "compare-history":
            excluded = (
                frozenset() if parsed_args.include_all_servers else DEFAULT_EXCLUDED_SERVER_NAMES
            )
            missing = compare_history_files(
                parsed_args.input_dir,
                parsed_args.output_dir,
                excluded_server_names=excluded,
            )
            log.info("Compared %s histories", len(missing))
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error during audit")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    main()
