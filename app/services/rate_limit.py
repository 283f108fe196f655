"""Sliding window rate limiting of guest selfie attempts."""
import math
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.logging import get_logger
from app.domain.value_objects.identity import GuestIdentity
from app.domain.value_objects.rate_limit import RateLimitDecision, RateLimitReason
from app.infrastructure.database.unit_of_work import UnitOfWork

logger = get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SelfieRateLimiter:
    """Database-backed sliding window limiter keyed by gallery and guest identity.

    Every call prunes attempts that left the window, counts the rest and either
    rejects with the seconds until the oldest attempt expires or records a new
    attempt. When the attempt store cannot be reached the limiter denies the
    attempt (fails closed).

    Example:
        ```python
        limiter = SelfieRateLimiter(session_factory, max_attempts=10, window_seconds=3600)
        decision = await limiter.check_and_record_attempt(gallery_id, MobileIdentity(mobile="9876543210"))
        ```
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_attempts: int = 10,
        window_seconds: int = 3600,
        unavailable_retry_seconds: int = 30,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            session_factory: Factory producing database sessions
            max_attempts: Attempts allowed per identity within one window
            window_seconds: Window length in seconds
            unavailable_retry_seconds: Retry hint returned when the store is unreachable
            clock: Source of the current UTC time, overridable in tests
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be at least 1")

        self._session_factory = session_factory
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.unavailable_retry_seconds = unavailable_retry_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def check_and_record_attempt(
        self,
        gallery_id: str,
        identity: Optional[GuestIdentity],
    ) -> RateLimitDecision:
        """Admit or reject one selfie attempt.

        Args:
            gallery_id: Gallery the attempt targets
            identity: Guest identity, None when the caller could not derive one

        Returns:
            RateLimitDecision describing whether the attempt may proceed
        """
        if identity is None:
            return RateLimitDecision(
                allowed=False,
                reason=RateLimitReason.INVALID_GUEST_SESSION,
                message="Either mobile number or session token is required",
            )

        identity_key = identity.storage_key(gallery_id)
        now = self._clock()
        window = timedelta(seconds=self.window_seconds)
        cutoff = now - window

        try:
            async with UnitOfWork(self._session_factory) as uow:
                await uow.rate_limit_attempts.prune(identity_key, cutoff)
                count, oldest = await uow.rate_limit_attempts.window_stats(identity_key, cutoff)

                if count >= self.max_attempts:
                    retry_after = self.window_seconds
                    if oldest is not None:
                        expires_at = _as_utc(oldest) + window
                        retry_after = math.ceil((expires_at - now).total_seconds())
                    retry_after = max(1, retry_after)
                    logger.warning(
                        "Selfie rate limit exceeded",
                        gallery_id=gallery_id,
                        identity_kind=identity.kind,
                        attempts=count,
                        retry_after=retry_after
                    )
                    return RateLimitDecision(
                        allowed=False,
                        remaining=0,
                        retry_after_seconds=retry_after,
                        reason=RateLimitReason.RATE_LIMIT_EXCEEDED,
                        message=f"Rate limit exceeded. Try again in {math.ceil(retry_after / 60)} minutes.",
                    )

                await uow.rate_limit_attempts.add(gallery_id, identity_key, now)

        except (SQLAlchemyError, OSError) as e:
            logger.error(
                "Rate limit store unavailable, denying attempt",
                gallery_id=gallery_id,
                error=str(e),
                exc_info=True
            )
            return RateLimitDecision(
                allowed=False,
                retry_after_seconds=self.unavailable_retry_seconds,
                reason=RateLimitReason.RATE_LIMITER_UNAVAILABLE,
                message="Selfie matching is temporarily unavailable",
            )

        return RateLimitDecision(
            allowed=True,
            remaining=self.max_attempts - count - 1,
        )
