"""Command-line entry point for inspecting sessions and recommendations."""
import argparse
import sys
from typing import List, Optional

from tecken.config import ensure_directories, settings
from tecken.logging_config import setup_logging
from tecken.models.base import SessionLocal, init_db
from tecken.models.progress import Level
from tecken.monitoring import start_monitoring
from tecken.services.catalog_loader import build_phrase_index, load_catalog, load_priorities, load_variant_index
from tecken.services.errors import InsufficientItems
from tecken.services.practice_service import PracticeService, SessionFilters, SessionMode
from tecken.services.progress_store import ProgressStore, SqlProgressBackend


def build_service() -> PracticeService:
    """Create a practice service over the configured catalogs and database."""
    paths = settings.paths
    catalog = load_catalog(paths.words_file, paths.phrases_file)
    init_db()
    store = ProgressStore(SqlProgressBackend(SessionLocal))
    return PracticeService(
        catalog,
        store,
        priorities=load_priorities(paths.priorities_file),
        variant_index=load_variant_index(paths.variants_file, catalog),
        phrase_index=build_phrase_index(catalog),
    )


def cmd_session(service: PracticeService, args: argparse.Namespace) -> int:
    filters = SessionFilters(item_ids=args.items, topic=args.topic) if (args.items or args.topic) else None
    session = service.start_session(SessionMode(args.mode), filters, seed=args.seed)
    if isinstance(session, InsufficientItems):
        print(session.message)
        return 1
    for position, item in enumerate(session.entries, start=1):
        record = service.store.get(item.id)
        print(f"{position:2d}. {item.text} [{item.id}] {Level(record.level).name.lower()} {record.points}/{settings.practice.max_points}")
    return 0


def cmd_recommend(service: PracticeService, args: argparse.Namespace) -> int:
    candidates = service.get_top_candidates(args.count)
    if not candidates:
        print("No recommendations yet. Learn some words first.")
        return 0
    for candidate in candidates:
        item = service.catalog.items.get(candidate.item_id)
        text = item.text if item else candidate.item_id
        print(f"{text} [{candidate.item_id}] completes {candidate.count} phrase(s)")
        if args.verbose:
            for phrase in candidate.phrases:
                print(f"    {phrase.phrase_id}: {phrase.text} ({phrase.level_tag})")
    return 0


def cmd_stats(service: PracticeService, args: argparse.Namespace) -> int:
    for level in Level:
        if level == Level.UNMARKED:
            continue
        print(f"{level.name.lower()}: {len(service.store.items_at(level))}")
    print(f"catalog: {len(service.catalog.items)} items, {len(service.catalog.phrases)} phrases")
    coverage = service.coverage()
    print(f"phrases complete: {coverage.complete}/{coverage.tagged_phrases} ({coverage.complete_percentage:.0f}%)")
    return 0


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="tecken", description="Sign language practice engine")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    session = subparsers.add_parser("session", help="Select items for a practice session")
    session.add_argument("--mode", default=SessionMode.REINFORCEMENT_MIXED.value,
                         choices=[mode.value for mode in SessionMode])
    session.add_argument("--items", nargs="*", help="Restrict the session to these item ids")
    session.add_argument("--topic", help="Restrict the session to items with this topic")
    session.add_argument("--seed", type=int, default=None)
    session.set_defaults(func=cmd_session)

    recommend = subparsers.add_parser("recommend", help="Show which word to learn next")
    recommend.add_argument("--count", type=int, default=settings.ranker.top_candidates)
    recommend.add_argument("-v", "--verbose", action="store_true", help="List the phrases per word")
    recommend.set_defaults(func=cmd_recommend)

    stats = subparsers.add_parser("stats", help="Show progress counts")
    stats.set_defaults(func=cmd_stats)
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    ensure_directories()
    setup_logging("Starting tecken", level=args.log_level)
    if settings.monitoring.enabled:
        start_monitoring(settings.monitoring.port)
    service = build_service()
    return args.func(service, args)


if __name__ == "__main__":
    sys.exit(main())
