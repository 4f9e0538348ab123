"""Containment-based overlap scoring between two polylines."""

from __future__ import annotations

import numpy as np

from ..config import OVERLAP_THRESHOLD_M
from ..models import Polyline
from .distance import as_radian_array, haversine_matrix

# Rows of ``a`` compared per chunk; bounds the pairwise matrix size.
_CHUNK_ROWS = 512


def compute_polyline_overlap(
    a: Polyline, b: Polyline, threshold_meters: float = OVERLAP_THRESHOLD_M
) -> float:
    """Return the fraction of points in ``a`` lying within ``threshold_meters`` of ``b``.

    The score is asymmetric: a short line fully inside a long one scores 1.0
    one way and only the long line's covered share the other way. Empty input
    on either side scores 0.0.
    """

    if len(a) == 0 or len(b) == 0:
        return 0.0
    a_rad = as_radian_array(a)
    b_rad = as_radian_array(b)
    matched = 0
    for offset in range(0, a_rad.shape[0], _CHUNK_ROWS):
        chunk = a_rad[offset : offset + _CHUNK_ROWS]
        distances = haversine_matrix(chunk, b_rad)
        # NaN distances compare False and never count as a match.
        matched += int(np.count_nonzero(np.any(distances <= threshold_meters, axis=1)))
    return matched / float(a_rad.shape[0])
