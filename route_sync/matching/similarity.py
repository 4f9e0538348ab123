"""Signature comparison, grouping and caching."""

from __future__ import annotations

from dataclasses import dataclass
from threading import RLock
from typing import Dict, Iterable, List, Optional, Sequence

from cachetools import LRUCache

from ..config import GROUPING_MIN_MATCH, OVERLAP_THRESHOLD_M, SIGNATURE_CACHE_SIZE
from ..geometry import compute_polyline_overlap
from ..models import RouteSignature
from .signature import parse_region_hash


@dataclass(slots=True)
class SignatureMatch:
    """Two-way overlap result for a pair of signatures."""

    activity_id_1: str
    activity_id_2: str
    score: float
    direction: str


def _near(hash_a: str, hash_b: str) -> bool:
    """True when the two grid cells are equal or adjacent (8-neighbourhood)."""

    lat_a, lng_a = parse_region_hash(hash_a)
    lat_b, lng_b = parse_region_hash(hash_b)
    return abs(lat_a - lat_b) <= 1 and abs(lng_a - lng_b) <= 1


def region_direction(a: RouteSignature, b: RouteSignature) -> Optional[str]:
    """Coarse pre-filter on start/end region hashes.

    Returns ``"same"`` when start/end cells line up, ``"reverse"`` when they
    line up swapped and ``None`` when neither pairing is close.
    """

    if _near(a.start_region_hash, b.start_region_hash) and _near(
        a.end_region_hash, b.end_region_hash
    ):
        return "same"
    if _near(a.start_region_hash, b.end_region_hash) and _near(
        a.end_region_hash, b.start_region_hash
    ):
        return "reverse"
    return None


def compare_signatures(
    a: RouteSignature,
    b: RouteSignature,
    *,
    threshold_m: float = OVERLAP_THRESHOLD_M,
) -> SignatureMatch:
    """Score two signatures as the weaker of the two containment overlaps."""

    direction = region_direction(a, b)
    if direction is None:
        return SignatureMatch(a.activity_id, b.activity_id, 0.0, "none")
    forward = compute_polyline_overlap(a.points, b.points, threshold_m)
    if forward == 0.0:
        return SignatureMatch(a.activity_id, b.activity_id, 0.0, direction)
    backward = compute_polyline_overlap(b.points, a.points, threshold_m)
    return SignatureMatch(a.activity_id, b.activity_id, min(forward, backward), direction)


class _UnionFind:
    def __init__(self, items: Iterable[str]) -> None:
        self._parent: Dict[str, str] = {item: item for item in items}

    def find(self, item: str) -> str:
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, a: str, b: str) -> None:
        root_a, root_b = self.find(a), self.find(b)
        if root_a != root_b:
            self._parent[root_b] = root_a


def group_signatures(
    signatures: Sequence[RouteSignature],
    *,
    min_match: float = GROUPING_MIN_MATCH,
    threshold_m: float = OVERLAP_THRESHOLD_M,
) -> List[List[str]]:
    """Cluster activity ids whose signatures match at ``min_match`` or better.

    Groups keep input order; each group's first id is its earliest member.
    """

    ids = [sig.activity_id for sig in signatures]
    uf = _UnionFind(ids)
    for i, first in enumerate(signatures):
        for second in signatures[i + 1 :]:
            if uf.find(first.activity_id) == uf.find(second.activity_id):
                continue
            match = compare_signatures(first, second, threshold_m=threshold_m)
            if match.score >= min_match:
                uf.union(first.activity_id, second.activity_id)

    groups: Dict[str, List[str]] = {}
    for activity_id in ids:
        groups.setdefault(uf.find(activity_id), []).append(activity_id)
    return list(groups.values())


class SignatureCache:
    """LRU cache of signatures keyed by activity id."""

    def __init__(self, max_entries: int = SIGNATURE_CACHE_SIZE) -> None:
        self._cache: LRUCache[str, RouteSignature] = LRUCache(maxsize=max(1, max_entries))
        self._lock = RLock()

    def get(self, activity_id: str) -> Optional[RouteSignature]:
        with self._lock:
            return self._cache.get(activity_id)

    def set(self, signature: RouteSignature) -> None:
        with self._lock:
            self._cache[signature.activity_id] = signature

    def discard(self, activity_id: str) -> None:
        with self._lock:
            self._cache.pop(activity_id, None)

    def clear(self) -> None:
        """Empty the cache (primarily for testing)."""
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


__all__ = [
    "SignatureCache",
    "SignatureMatch",
    "compare_signatures",
    "group_signatures",
    "region_direction",
]
