"""CLI for scanning the image tree into the index.

Usage:
    imgindex-scan                  # full scan
    imgindex-scan --recent         # only the most recent date directories
    imgindex-scan --check          # prune records whose file is gone, then scan
    imgindex-scan --fix            # normalize path separators and exit
    imgindex-scan --rebuild-dates  # create the schema, rebuild date buckets, exit
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from imgindex.bootstrap import open_index
from imgindex.config import Settings
from imgindex.exceptions import IndexWriteError
from imgindex.services.sync_engine import ScanMode, ScanReport

_RULE = "=" * 60


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="imgindex-scan",
        description="Scan the image directory and update the index",
    )
    parser.add_argument("--dir", "-d", help="Image directory (default: IMAGES_DIR setting)")
    parser.add_argument("--database", help="Database URL (default: DATABASE_URL setting)")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--recent", action="store_true", help="Scan only the recent date window")
    mode.add_argument("--fix", action="store_true", help="Normalize path separators and exit")
    mode.add_argument(
        "--rebuild-dates",
        action="store_true",
        help="Rebuild date buckets from the index and exit",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Remove records whose file no longer exists before scanning",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    return parser


def _settings_from_args(args: argparse.Namespace) -> Settings:
    overrides: dict[str, object] = {}
    if args.dir:
        overrides["images_dir"] = Path(args.dir)
    if args.database:
        overrides["database_url"] = args.database
    return Settings(**overrides)  # type: ignore[arg-type]


def _print_report(report: ScanReport) -> None:
    if report.mode is ScanMode.FIX:
        print(f"Fixed {report.fixed} record(s)")
    elif report.mode is ScanMode.CHECK:
        print(f"Removed {report.removed} stale record(s)")
    else:
        if report.dates:
            print(f"Dates scanned: {', '.join(report.dates)}")
        print(f"Found {report.discovered} image(s), updated {report.upserted} record(s)")
        print(f"Updated {report.buckets} date bucket(s)")
    if report.error:
        print(f"Error: {report.error}")


async def run_scan(args: argparse.Namespace, settings: Settings) -> int:
    """Run the requested scan and return the process exit code."""
    services = await open_index(settings)
    try:
        if args.rebuild_dates:
            try:
                count = await services.aggregator.rebuild_from_images()
            except IndexWriteError as exc:
                print(f"Error: {exc}")
                return 1
            print(f"Rebuilt date buckets: {count} date(s)")
            return 0

        if args.fix:
            modes = [ScanMode.FIX]
        else:
            modes = [ScanMode.CHECK] if args.check else []
            modes.append(ScanMode.RECENT if args.recent else ScanMode.FULL)

        exit_code = 0
        for mode in modes:
            report = await services.sync_engine.run(mode)
            if report is None:
                continue
            _print_report(report)
            if not report.ok:
                exit_code = 1

        total = await services.store.get_count()
        print(_RULE)
        print(f"Images in index: {total}")
        print(_RULE)
        return exit_code
    finally:
        await services.close()


def main() -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    try:
        settings = _settings_from_args(args)
    except ValueError as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)-8s %(name)s: %(message)s",
    )

    if not settings.images_dir.is_dir() and not (args.fix or args.rebuild_dates):
        print(f"Error: directory does not exist: {settings.images_dir}")
        sys.exit(1)

    print(_RULE)
    print(f"Image directory: {settings.images_dir}")
    print(_RULE)
    sys.exit(asyncio.run(run_scan(args, settings)))


if __name__ == "__main__":
    main()
