import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from .core import FetchClient, collect_links, download_all
from .state import FailedLinkLogger, SessionFactory, UniqueNameAllocator
from .types import (
    DEFAULT_EXTENSIONS,
    FILE_TIMEOUT,
    PAGE_TIMEOUT,
    USER_AGENT,
    DownloadOutcome,
    FilterCriteria,
    LinkConfig,
    LinkDownloadError,
)
from .ui import TerminalUI
from .utils import ensure_url, parse_extensions

EPILOG = """examples:
  link-dl "https://example.com/documents"
  link-dl "https://example.com/page" --ext pdf,docx,zip
  link-dl "https://example.com/page" --all
  link-dl "https://example.com/page" --list
  link-dl "https://example.com/page" --include "2024.*\\.pdf"
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="link-dl",
        description="Download files linked from any webpage.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("url", nargs="?", default="", help="Page whose links should be downloaded")
    parser.add_argument("-o", "--out", default="./downloads", help="Output directory")
    parser.add_argument("-p", "--parallel", type=int, default=5, help="Number of parallel downloads")
    parser.add_argument(
        "--ext",
        default=DEFAULT_EXTENSIONS,
        help="Comma-separated file extensions to download",
    )
    parser.add_argument("--all", action="store_true", help="Download all common file links (ignores --ext)")
    parser.add_argument("--include", default="", help="Regex pattern the file URL must match")
    parser.add_argument("--list", action="store_true", help="List files only, don't download")
    parser.add_argument("--ua", default=USER_AGENT, help="User-Agent header")
    parser.add_argument(
        "--timeout",
        type=float,
        default=FILE_TIMEOUT,
        help="Per-file download timeout in seconds",
    )
    parser.add_argument(
        "--failed-file",
        default="failed_links.txt",
        help="Log of failed downloads, relative to the output directory (empty = disabled)",
    )
    parser.add_argument("--no-pretty", action="store_true", help="Disable coloured terminal output")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def build_config(args: argparse.Namespace) -> LinkConfig:
    criteria = FilterCriteria(
        extensions=frozenset() if args.all else parse_extensions(args.ext),
        all_mode=args.all,
        include=args.include or None,
    )
    out_dir = Path(args.out)
    failed_file = None
    if args.failed_file:
        failed_file = Path(args.failed_file)
        if not failed_file.is_absolute():
            failed_file = out_dir / failed_file
    return LinkConfig(
        url=ensure_url(args.url),
        out_dir=out_dir,
        criteria=criteria,
        parallel=max(1, args.parallel),
        list_only=args.list,
        user_agent=args.ua,
        page_timeout=PAGE_TIMEOUT,
        timeout=max(1.0, args.timeout),
        failed_file=failed_file,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    if not args.url:
        build_parser().print_help()
        return 1

    ui = TerminalUI(pretty=not args.no_pretty)
    try:
        config = build_config(args)
        sessions = SessionFactory(config.user_agent)
        links = collect_links(config, FetchClient(timeout=config.page_timeout, sessions=sessions))
    except LinkDownloadError as exc:
        print(f"Error extracting links: {exc}", file=sys.stderr)
        return 1

    if not links:
        ui.plain("No matching files found.")
        return 0

    ui.list_links(links)
    if config.list_only:
        return 0

    try:
        config.out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        print(f"Error creating directory: {exc}", file=sys.stderr)
        return 1

    failed_logger = FailedLinkLogger(config.failed_file) if config.failed_file else None
    log_errors = []

    def report(outcome: DownloadOutcome) -> None:
        ui.outcome(outcome)
        if failed_logger and not outcome.succeeded:
            try:
                failed_logger.add(
                    page_url=config.url,
                    file_url=outcome.candidate.url,
                    filename=outcome.filename,
                    reason=str(outcome.error),
                )
            except OSError as exc:
                log_errors.append(exc)
                ui.error(f"Cannot write failed links to {config.failed_file}: {exc}")

    counts = download_all(
        links,
        config,
        FetchClient(timeout=config.timeout, sessions=sessions),
        allocator=UniqueNameAllocator(),
        on_outcome=report,
    )
    ui.summary(counts)
    if counts["failed"] and failed_logger and not log_errors:
        ui.info(f"Failed links saved to: {config.failed_file}")
    return 0
