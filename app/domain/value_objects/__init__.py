"""Value objects package."""
from .identity import GuestIdentity, MobileIdentity, SessionIdentity, derive_identity, normalize_mobile
from .rate_limit import RateLimitDecision, RateLimitReason
from .recognition import BoundingBox, FaceMatch, IndexedFace

__all__ = [
    "BoundingBox",
    "FaceMatch",
    "GuestIdentity",
    "IndexedFace",
    "MobileIdentity",
    "RateLimitDecision",
    "RateLimitReason",
    "SessionIdentity",
    "derive_identity",
    "normalize_mobile",
]
