"""Command line entry point.

``route-sync demo`` replays fixture map payloads; ``route-sync live`` pulls
maps through the rate-limited API client. Both drive the same orchestrator
against the in-process engine.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import List, Optional, Sequence

from .config import DEMO_FIXTURE_PATH, ROUTE_CACHE_PATH
from .engine import LocalRouteEngine
from .errors import MissingCredentialsError
from .models import Activity
from .storage import RouteCacheStore
from .sync import (
    ApiTraceSource,
    FixtureTraceSource,
    SyncOrchestrator,
    SyncResult,
    TraceSource,
)

LOGGER = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False) -> None:
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO,
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="route-sync", description="Sync GPS traces and detect shared routes."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument(
        "--cache",
        default=ROUTE_CACHE_PATH,
        help=f"Route cache file (default: {ROUTE_CACHE_PATH}). Empty string disables it.",
    )
    parser.add_argument(
        "--sport",
        default=None,
        help="Sport type applied to every activity (default: Ride).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    demo = sub.add_parser("demo", help="Sync from a fixture JSON file.")
    demo.add_argument(
        "--fixtures",
        default=DEMO_FIXTURE_PATH,
        help=f"JSON object of activity id -> map payload (default: {DEMO_FIXTURE_PATH}).",
    )
    demo.add_argument(
        "ids",
        nargs="*",
        help="Activity ids to sync (default: every fixture).",
    )

    live = sub.add_parser("live", help="Sync activity maps from the API.")
    live.add_argument("ids", nargs="+", help="Activity ids to sync.")
    return parser.parse_args(argv)


def _format_result(result: SyncResult, engine: LocalRouteEngine) -> str:
    lines = [
        f"Outcome: {result.outcome}",
        f"Message: {result.message}",
        f"Synced ({len(result.synced_ids)}): {', '.join(result.synced_ids) or '-'}",
        (
            f"Skipped: {result.failed_no_trace} without trace, "
            f"{result.failed_too_few_points} too short"
        ),
    ]
    groups = [group for group in engine.get_groups() if len(group.activity_ids) > 1]
    if groups:
        lines.append(f"Shared routes ({len(groups)}):")
        for group in groups:
            lines.append(
                f"  [{group.sport_type}] {group.group_id}: {', '.join(group.activity_ids)}"
            )
    else:
        lines.append("Shared routes: none")
    return "\n".join(lines)


async def _run(
    source: TraceSource,
    activities: List[Activity],
    store: Optional[RouteCacheStore],
) -> str:
    engine = LocalRouteEngine()
    orchestrator = SyncOrchestrator(engine, source, store=store)
    result = await orchestrator.run(activities)
    return _format_result(result, engine)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    _setup_logging(args.verbose)

    store = RouteCacheStore(args.cache) if args.cache else None
    if args.command == "demo":
        try:
            fixture_source = FixtureTraceSource.from_file(args.fixtures)
        except (OSError, ValueError) as exc:
            LOGGER.error("Failed to load fixtures '%s': %s", args.fixtures, exc)
            return 1
        ids = list(args.ids) or fixture_source.activity_ids()
        source: TraceSource = fixture_source
    else:
        ids = list(args.ids)
        source = ApiTraceSource()

    activities = [Activity(id=activity_id, sport_type=args.sport) for activity_id in ids]
    try:
        print(asyncio.run(_run(source, activities, store)))
    except MissingCredentialsError:
        LOGGER.error("Set INTERVALS_API_KEY or INTERVALS_ACCESS_TOKEN to use live sync")
        return 2
    return 0
