"""Persistent per-activity signature/bounds cache.

Records are keyed by activity id and written to a single JSON file. Corrupt
files and records of the wrong shape are dropped and replaced with defaults;
loading never raises for bad data.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Sequence

from .config import ROUTE_CACHE_AUTOSAVE, ROUTE_CACHE_PATH
from .models import Bounds, RoutePoint, RouteSignature
from .utils import parse_iso_date

LOGGER = logging.getLogger(__name__)

_FORMAT_VERSION = 1


def _bounds_to_record(bounds: Bounds) -> Dict[str, float]:
    return {
        "min_lat": bounds.min_lat,
        "max_lat": bounds.max_lat,
        "min_lng": bounds.min_lng,
        "max_lng": bounds.max_lng,
    }


def _bounds_from_record(record: Any) -> Bounds:
    if not isinstance(record, dict):
        raise TypeError("bounds record must be an object")
    return Bounds(
        min_lat=float(record["min_lat"]),
        max_lat=float(record["max_lat"]),
        min_lng=float(record["min_lng"]),
        max_lng=float(record["max_lng"]),
    )


def signature_to_record(signature: RouteSignature) -> Dict[str, Any]:
    return {
        "activity_id": signature.activity_id,
        "points": [[p.lat, p.lng] for p in signature.points],
        "distance": signature.distance,
        "bounds": _bounds_to_record(signature.bounds),
        "center": [signature.center.lat, signature.center.lng],
        "start_region_hash": signature.start_region_hash,
        "end_region_hash": signature.end_region_hash,
        "is_loop": signature.is_loop,
        "elevation_gain": signature.elevation_gain,
    }


def signature_from_record(record: Any) -> RouteSignature:
    """Rebuild a signature; raises ``TypeError``/``ValueError``/``KeyError`` on bad shape."""

    if not isinstance(record, dict):
        raise TypeError("signature record must be an object")
    points = record["points"]
    if not isinstance(points, list):
        raise TypeError("points must be a list")
    for key in ("start_region_hash", "end_region_hash", "activity_id"):
        if not isinstance(record[key], str):
            raise TypeError(f"{key} must be a string")
    if not isinstance(record["is_loop"], bool):
        raise TypeError("is_loop must be a bool")
    gain = record.get("elevation_gain")
    return RouteSignature(
        activity_id=record["activity_id"],
        points=tuple(RoutePoint.from_pair(pair) for pair in points),
        distance=float(record["distance"]),
        bounds=_bounds_from_record(record["bounds"]),
        center=RoutePoint.from_pair(record["center"]),
        start_region_hash=record["start_region_hash"],
        end_region_hash=record["end_region_hash"],
        is_loop=record["is_loop"],
        elevation_gain=float(gain) if gain is not None else None,
    )


class RouteCacheStore:
    """Signature and bounds records plus the synced date range."""

    def __init__(
        self,
        path: str | Path | None = ROUTE_CACHE_PATH,
        *,
        autosave: bool = ROUTE_CACHE_AUTOSAVE,
    ) -> None:
        self._path = Path(path) if path else None
        self._autosave = autosave and self._path is not None
        self._signatures: Dict[str, RouteSignature] = {}
        self._bounds: Dict[str, Bounds] = {}
        self._oldest: Optional[date] = None
        self._newest: Optional[date] = None
        if self._path is not None:
            self.load()

    # -- queries --------------------------------------------------------
    @property
    def oldest_synced(self) -> Optional[date]:
        return self._oldest

    @property
    def newest_synced(self) -> Optional[date]:
        return self._newest

    def get_signature(self, activity_id: str) -> Optional[RouteSignature]:
        return self._signatures.get(activity_id)

    def get_bounds(self, activity_id: str) -> Optional[Bounds]:
        return self._bounds.get(activity_id)

    def activity_ids(self) -> list[str]:
        return list(self._signatures)

    # -- mutation -------------------------------------------------------
    def record_ingest(
        self,
        signatures: Sequence[RouteSignature],
        dates: Iterable[Optional[date]] = (),
    ) -> None:
        """Store signatures and widen the synced date range."""

        for signature in signatures:
            self._signatures[signature.activity_id] = signature
            self._bounds[signature.activity_id] = signature.bounds
        for day in dates:
            if day is None:
                continue
            if self._oldest is None or day < self._oldest:
                self._oldest = day
            if self._newest is None or day > self._newest:
                self._newest = day
        if self._autosave:
            self.save()

    def clear(self) -> None:
        self._signatures.clear()
        self._bounds.clear()
        self._oldest = None
        self._newest = None
        if self._autosave:
            self.save()

    # -- persistence ----------------------------------------------------
    def load(self) -> None:
        if self._path is None:
            return
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            return
        except (OSError, ValueError) as exc:
            LOGGER.warning("Discarding unreadable route cache %s: %s", self._path, exc)
            return
        if not isinstance(data, dict):
            LOGGER.warning("Discarding route cache %s: not an object", self._path)
            return

        raw_signatures = data.get("signatures")
        if not isinstance(raw_signatures, dict):
            raw_signatures = {}
        dropped = 0
        for activity_id, record in raw_signatures.items():
            try:
                signature = signature_from_record(record)
            except (TypeError, ValueError, KeyError, IndexError) as exc:
                dropped += 1
                LOGGER.debug("Dropping cached signature %s: %s", activity_id, exc)
                continue
            self._signatures[str(activity_id)] = signature

        raw_bounds = data.get("bounds")
        if not isinstance(raw_bounds, dict):
            raw_bounds = {}
        for activity_id, record in raw_bounds.items():
            try:
                self._bounds[str(activity_id)] = _bounds_from_record(record)
            except (TypeError, ValueError, KeyError) as exc:
                dropped += 1
                LOGGER.debug("Dropping cached bounds %s: %s", activity_id, exc)

        self._oldest = parse_iso_date(data.get("oldest_synced"))
        self._newest = parse_iso_date(data.get("newest_synced"))
        if dropped:
            LOGGER.warning("Dropped %d malformed route cache records", dropped)

    def save(self) -> None:
        if self._path is None:
            return
        payload = {
            "version": _FORMAT_VERSION,
            "signatures": {
                key: signature_to_record(value) for key, value in self._signatures.items()
            },
            "bounds": {key: _bounds_to_record(value) for key, value in self._bounds.items()},
            "oldest_synced": self._oldest.isoformat() if self._oldest else None,
            "newest_synced": self._newest.isoformat() if self._newest else None,
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_suffix(".tmp")
        with temp_path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=True, indent=2)
        temp_path.replace(self._path)
