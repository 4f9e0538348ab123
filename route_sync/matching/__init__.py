"""Route signatures and signature matching."""

from .signature import (
    RouteSignatureBuilder,
    build_signature,
    elevation_gain,
    region_hash,
)
from .similarity import (
    SignatureCache,
    SignatureMatch,
    compare_signatures,
    group_signatures,
)

__all__ = [
    "RouteSignatureBuilder",
    "SignatureCache",
    "SignatureMatch",
    "build_signature",
    "compare_signatures",
    "elevation_gain",
    "group_signatures",
    "region_hash",
]
