"""Fetch and normalise per-activity map payloads."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional, Sequence

from polyline import decode as polyline_decode

from ..config import FETCH_MAX_CONCURRENCY
from ..errors import APIError, MissingCredentialsError
from ..models import ActivityMapResult, Bounds, RoutePoint
from .client import ThrottledHttpClient

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def decode_polyline(encoded: str) -> List[RoutePoint]:
    """Decode an encoded polyline string into route points."""

    if not encoded:
        return []
    try:
        decoded = polyline_decode(encoded)
    except (ValueError, TypeError, IndexError) as exc:
        raise ValueError("Unable to decode polyline") from exc
    return [RoutePoint(float(lat), float(lng)) for lat, lng in decoded]


def _parse_bounds(raw: Any) -> Optional[Bounds]:
    if not isinstance(raw, dict):
        return None
    ne, sw = raw.get("ne"), raw.get("sw")
    try:
        return Bounds(
            min_lat=float(sw[0]),
            max_lat=float(ne[0]),
            min_lng=float(sw[1]),
            max_lng=float(ne[1]),
        )
    except (TypeError, ValueError, IndexError):
        return None


def _parse_latlngs(raw: Any) -> Optional[List[RoutePoint]]:
    if not isinstance(raw, list):
        return None
    points: List[RoutePoint] = []
    for pair in raw:
        # Null entries mark GPS gaps.
        if not isinstance(pair, (list, tuple)) or len(pair) < 2:
            continue
        try:
            points.append(RoutePoint.from_pair(pair))
        except (TypeError, ValueError):
            continue
    return points


def parse_map_payload(activity_id: str, payload: Any) -> ActivityMapResult:
    """Normalise a map payload; bounds-only payloads yield ``latlngs=None``."""

    if not isinstance(payload, dict):
        return ActivityMapResult(
            activity_id=activity_id,
            error=f"unexpected payload type {type(payload).__name__}",
        )
    latlngs = _parse_latlngs(payload.get("latlngs"))
    if latlngs is None and isinstance(payload.get("polyline"), str):
        try:
            latlngs = decode_polyline(payload["polyline"])
        except ValueError as exc:
            return ActivityMapResult(activity_id=activity_id, error=str(exc))
    return ActivityMapResult(
        activity_id=activity_id,
        bounds=_parse_bounds(payload.get("bounds")),
        latlngs=latlngs,
        success=True,
    )


async def fetch_activity_map(
    client: ThrottledHttpClient, activity_id: str
) -> ActivityMapResult:
    """Fetch one activity map; API failures become ``success=False`` results."""

    context = f"activity_map:{activity_id}"
    try:
        payload = await client.get_json(f"activity/{activity_id}/map", context=context)
    except MissingCredentialsError:
        raise
    except APIError as exc:
        LOGGER.debug("%s failed: %s", context, exc)
        return ActivityMapResult(activity_id=activity_id, error=str(exc))
    return parse_map_payload(activity_id, payload)


async def fetch_activity_maps(
    client: ThrottledHttpClient,
    activity_ids: Sequence[str],
    *,
    on_progress: Optional[ProgressCallback] = None,
    max_concurrency: int = FETCH_MAX_CONCURRENCY,
) -> List[ActivityMapResult]:
    """Fetch maps concurrently, returning results in ``activity_ids`` order."""

    total = len(activity_ids)
    semaphore = asyncio.Semaphore(max(1, max_concurrency))
    completed = 0

    async def _one(activity_id: str) -> ActivityMapResult:
        nonlocal completed
        async with semaphore:
            result = await fetch_activity_map(client, activity_id)
        completed += 1
        if on_progress is not None:
            on_progress(completed, total)
        return result

    results = await asyncio.gather(*(_one(activity_id) for activity_id in activity_ids))
    failed = [r.activity_id for r in results if not r.success]
    LOGGER.info(
        "Fetched activity maps: %d/%d succeeded, %d failed",
        total - len(failed),
        total,
        len(failed),
    )
    return list(results)
