"""Pure geometry kernel: distances, simplification and overlap scoring."""

from .distance import haversine_distance, polyline_length
from .overlap import compute_polyline_overlap
from .simplify import segment_distance, simplify_polyline

__all__ = [
    "compute_polyline_overlap",
    "haversine_distance",
    "polyline_length",
    "segment_distance",
    "simplify_polyline",
]
