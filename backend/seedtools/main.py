"""
seed-tools command line entry point

    seed-tools <input> -SP [-TL]           upload to the selected trackers
    seed-tools <input> -SP -CCTT           custom category (CC) and type (TT) ids
    seed-tools <input> -SP --dupe-check    only check for duplicates (exit 0 / 2, 1 on error)
    seed-tools -sync                       cross-seed completed qBittorrent torrents from Seedpool
    seed-tools --history                   show the latest upload ledger entries

Entry Point:
    Run with: seed-tools ... or python -m seedtools.main ...
"""

import argparse
import logging
import re
import sys
from typing import List, Optional, Sequence, Tuple

from seedtools.adapters.tracker_config_loader import TrackerConfigLoader
from seedtools.config import Config
from seedtools.database import get_session
from seedtools.models.upload_record import UploadRecord
from seedtools.processors.pipeline import EXIT_FAILURE, EXIT_OK, UploadPipeline
from seedtools.schemas.config import RunContext
from seedtools.services.dupe_checker import DupeChecker
from seedtools.services.exceptions import ConfigValidationError
from seedtools.services.structured_logging import setup_logging
from seedtools.services.sync_service import SyncService

logger = logging.getLogger(__name__)

# CLI flag -> tracker slug
TRACKER_FLAGS = {
    "SP": "seedpool",
    "TL": "torrentleech",
}

_CUSTOM_CATEGORY_RE = re.compile(r"^-(\d{2})(\d{2})$")


def split_custom_category(argv: Sequence[str]) -> Tuple[Optional[Tuple[int, int]], List[str]]:
    """
    Pull a -CCTT token out of argv before argparse sees it.

    argparse would read "-0224" as a negative number.
    """
    custom = None
    remaining = []
    for token in argv:
        match = _CUSTOM_CATEGORY_RE.match(token)
        if match and custom is None:
            custom = (int(match.group(1)), int(match.group(2)))
        else:
            remaining.append(token)
    return custom, remaining


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="seed-tools",
        description=Config.APP_DESCRIPTION,
        allow_abbrev=False,
        epilog="A -CCTT argument (e.g. -0224) uploads with category CC and type TT.",
    )
    parser.add_argument("input", nargs="?", help="release file or directory")
    for flag, slug in TRACKER_FLAGS.items():
        parser.add_argument(f"-{flag}", dest=slug, action="store_true", help=f"upload to {slug}")
    parser.add_argument("-sync", dest="sync", action="store_true", help="cross-seed completed torrents from Seedpool")
    parser.add_argument("--dupe-check", action="store_true", help="only check the selected trackers for duplicates")
    parser.add_argument("--history", action="store_true", help="show recent upload ledger entries")
    parser.add_argument("--config-dir", default=None, help=f"configuration directory (default: {Config.CONFIG_DIR})")
    parser.add_argument("--verbose", "-v", action="store_true", help="debug output on the console")
    parser.add_argument("--json-logs", action="store_true", help="log as JSON lines")
    return parser


def selected_trackers(args: argparse.Namespace) -> List[str]:
    return [slug for slug in TRACKER_FLAGS.values() if getattr(args, slug, False)]


def load_context(config_dir: Optional[str]) -> RunContext:
    loader = TrackerConfigLoader(config_dir or Config.CONFIG_DIR)
    context = loader.load_run_context()
    for settings in context.trackers.values():
        for warning in loader.validate_tracker(settings):
            logger.warning(warning)
    return context


def run_sync(context: RunContext) -> int:
    settings = context.tracker("seedpool")
    if not settings.search_url:
        raise ConfigValidationError("Sync needs settings.search_url in the seedpool tracker configuration")

    checker = DupeChecker(settings.search_url, settings.api_key, settings.dupe_match)
    try:
        report = SyncService(context.qbittorrent, checker).run()
    finally:
        checker.close()

    print(f"Sync: {report.checked} checked, {len(report.added)} added, {len(report.errors)} errors")
    return EXIT_OK if report.ok else EXIT_FAILURE


def show_history(limit: int = 20) -> int:
    with get_session() as db:
        records = UploadRecord.recent(db, limit)
        for record in records:
            print(
                f"{record.created_at:%Y-%m-%d %H:%M}  {record.tracker:<14} "
                f"{record.status.value:<10} {record.release_name}"
            )
    if not records:
        print("No uploads recorded yet")
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    custom_category, remaining = split_custom_category(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    args = parser.parse_args(remaining)

    setup_logging(
        level="DEBUG" if args.verbose else Config.LOG_LEVEL,
        log_file=Config.LOG_FILE or None,
        json_output=args.json_logs or Config.LOG_JSON,
    )
    if not Config.validate():
        logger.error(f"Invalid environment configuration: {Config.get_summary()}")
        return EXIT_FAILURE
    logger.debug(f"Configuration: {Config.get_summary()}")

    if args.history:
        return show_history()

    try:
        context = load_context(args.config_dir)
        if args.sync:
            return run_sync(context)
    except ConfigValidationError as e:
        logger.error(f"{e}")
        for error in e.errors:
            logger.error(f"  {error}")
        return EXIT_FAILURE

    if not args.input:
        parser.error("an input path is required unless -sync or --history is given")
    trackers = selected_trackers(args)
    if not trackers:
        parser.error(f"select at least one tracker: {', '.join('-' + f for f in TRACKER_FLAGS)}")

    pipeline = UploadPipeline(context)
    try:
        if args.dupe_check:
            return pipeline.check_duplicates(args.input, trackers)

        summary = pipeline.run(args.input, trackers, custom_category)
        for line in summary.lines():
            print(line)
        return summary.exit_code
    finally:
        pipeline.close()


if __name__ == "__main__":
    sys.exit(main())
