"""Rate limiting value objects."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RateLimitReason(str, Enum):
    """Why a selfie attempt was denied."""
    INVALID_GUEST_SESSION = "INVALID_GUEST_SESSION"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    RATE_LIMITER_UNAVAILABLE = "RATE_LIMITER_UNAVAILABLE"


class RateLimitDecision(BaseModel):
    """Outcome of a rate limit check."""
    allowed: bool = Field(..., description="Whether the attempt may proceed")
    remaining: int = Field(0, description="Attempts left in the current window")
    retry_after_seconds: Optional[int] = Field(None, description="Seconds until an attempt frees up")
    reason: Optional[RateLimitReason] = Field(None, description="Denial reason")
    message: Optional[str] = Field(None, description="Human readable denial message")
