"""Selfie matching orchestration for guest gallery access."""
import asyncio
import time
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from app.core.config import Settings
from app.core.exceptions import (
    ConfigurationDisabledError,
    GalleryNotFoundError,
    InvalidGuestSessionError,
    MobileRequiredError,
    NoFaceDetectedError,
    RateLimitedError,
    StorageError,
)
from app.core.logging import get_logger, mask_mobile, short_token
from app.core.utils.image import normalize_selfie
from app.domain.entities.selfie import CachedSelfie, GalleryPolicy
from app.domain.interfaces.gallery import GalleryDirectory, GuestSessionIssuer
from app.domain.interfaces.recognition import FaceRecognitionProvider
from app.domain.interfaces.storage import ObjectStorage
from app.domain.value_objects.identity import derive_identity, normalize_mobile
from app.domain.value_objects.rate_limit import RateLimitReason
from app.domain.value_objects.recognition import FaceMatch
from app.services.hashing import PerceptualHasher
from app.services.models import (
    CacheSource,
    GuestAccessGrant,
    MatchResult,
    MobileCheckResult,
    photo_details,
)
from app.services.rate_limit import SelfieRateLimiter
from app.services.selfie_cache import SelfieCacheService

logger = get_logger(__name__)

NO_MATCH_FACE_PREFIX = "no-match-"


class SelfieMatchingOptions(BaseModel):
    """Tunables of the selfie matching flow."""
    similarity_threshold: float = Field(80.0, ge=0.0, le=100.0)
    max_dimension: int = Field(1000, ge=8)
    jpeg_quality: int = Field(80, ge=1, le=95)
    provider_timeout_seconds: float = Field(10.0, gt=0)
    storage_timeout_seconds: float = Field(15.0, gt=0)
    signed_url_expiry_seconds: int = Field(3600, ge=1)

    @classmethod
    def from_settings(cls, config: Settings) -> "SelfieMatchingOptions":
        return cls(
            similarity_threshold=config.SIMILARITY_THRESHOLD,
            max_dimension=config.SELFIE_MAX_DIMENSION,
            jpeg_quality=config.SELFIE_JPEG_QUALITY,
            provider_timeout_seconds=config.PROVIDER_TIMEOUT_SECONDS,
            storage_timeout_seconds=config.STORAGE_TIMEOUT_SECONDS,
            signed_url_expiry_seconds=config.SIGNED_URL_EXPIRY_SECONDS,
        )


def no_match_face_id() -> str:
    """Sentinel face id stored when a search found nobody."""
    return f"{NO_MATCH_FACE_PREFIX}{int(time.time() * 1000)}"


def select_gallery_matches(matches: Iterable[FaceMatch], gallery_photo_ids: Iterable[str]) -> List[FaceMatch]:
    """Keep matches of the gallery's photos, one per photo, best first.

    When a photo was matched through several faces only the highest
    similarity occurrence is kept.
    """
    allowed = set(gallery_photo_ids)
    best: Dict[str, FaceMatch] = {}
    for match in matches:
        if match.photo_id not in allowed:
            continue
        current = best.get(match.photo_id)
        if current is None or match.similarity > current.similarity:
            best[match.photo_id] = match
    return sorted(best.values(), key=lambda m: m.similarity, reverse=True)


class SelfieMatchingService:
    """Resolves a guest selfie to the gallery photos it appears in.

    The flow is strictly sequential:
    1. Gallery policy check (selfie matching and guest selfie access enabled)
    2. Mobile requirement check
    3. Guest identity derivation (mobile, else session token)
    4. Selfie normalization (bounded size, fixed JPEG quality)
    5. Perceptual hash
    6. Rate limit accounting
    7. Cache lookups: mobile, then session token, then exact hash
    8. On a miss: upload, provider search, cache the result
    9. Best-effort signed selfie URL

    Provider failures never fail the request; they produce an empty,
    uncached result flagged as degraded.

    Example:
        ```python
        service = SelfieMatchingService(
            gallery_directory=directory,
            rate_limiter=limiter,
            selfie_cache=cache,
            storage=storage,
            face_provider=provider,
            guest_sessions=issuer,
        )
        result = await service.resolve(gallery_id, selfie_bytes, mobile_number="+91 98765 43210")
        ```
    """

    def __init__(
        self,
        gallery_directory: GalleryDirectory,
        rate_limiter: SelfieRateLimiter,
        selfie_cache: SelfieCacheService,
        storage: ObjectStorage,
        face_provider: FaceRecognitionProvider,
        guest_sessions: GuestSessionIssuer,
        hasher: Optional[PerceptualHasher] = None,
        options: Optional[SelfieMatchingOptions] = None,
    ) -> None:
        """Initialize the selfie matching service.

        Args:
            gallery_directory: Gallery policy and photo membership lookup
            rate_limiter: Sliding window limiter for selfie attempts
            selfie_cache: Store of previous match results
            storage: Object storage for selfie uploads and signed URLs
            face_provider: External face search provider
            guest_sessions: Issuer of guest session tokens
            hasher: Perceptual hasher for selfies
            options: Thresholds, image limits and timeouts
        """
        self.gallery_directory = gallery_directory
        self.rate_limiter = rate_limiter
        self.selfie_cache = selfie_cache
        self.storage = storage
        self.face_provider = face_provider
        self.guest_sessions = guest_sessions
        self.hasher = hasher or PerceptualHasher()
        self.options = options or SelfieMatchingOptions()

    async def resolve(
        self,
        gallery_id: str,
        selfie_bytes: bytes,
        mobile_number: Optional[str] = None,
        session_token: Optional[str] = None,
    ) -> MatchResult:
        """Match a selfie against a gallery, reusing cached results when possible.

        Args:
            gallery_id: Gallery to match against
            selfie_bytes: Uploaded selfie image
            mobile_number: Guest mobile number in any formatting
            session_token: Browser-generated guest session token

        Returns:
            MatchResult with the matched photos and cache information

        Raises:
            GalleryNotFoundError: If the gallery does not exist
            ConfigurationDisabledError: If selfie matching or guest selfie access is off
            MobileRequiredError: If the gallery requires a mobile number and none was given
            InvalidGuestSessionError: If neither a mobile number nor a session token was given
            InvalidImageError: If the selfie cannot be decoded
            RateLimitedError: If the rate limiter denies the attempt
            StorageError: If the selfie cannot be uploaded on a cache miss
        """
        policy = await self._require_selfie_policy(gallery_id)

        normalized_mobile = normalize_mobile(mobile_number)
        if policy.require_mobile_for_selfie and not normalized_mobile:
            raise MobileRequiredError(
                "Mobile number is required for selfie access",
                details={"gallery_id": gallery_id}
            )

        identity = derive_identity(normalized_mobile, session_token)
        if identity is None:
            raise InvalidGuestSessionError(
                "Either mobile number or session token is required",
                details={"gallery_id": gallery_id}
            )
        logger.info(
            "Resolving guest selfie",
            gallery_id=gallery_id,
            identity_kind=identity.kind,
            mobile=mask_mobile(normalized_mobile),
            session_token=short_token(session_token),
        )

        normalized = await asyncio.to_thread(
            normalize_selfie,
            selfie_bytes,
            self.options.max_dimension,
            self.options.jpeg_quality,
        )
        image_hash = await asyncio.to_thread(self.hasher.hash, normalized)
        logger.debug("Hashed selfie", gallery_id=gallery_id, image_hash=image_hash)

        decision = await self.rate_limiter.check_and_record_attempt(gallery_id, identity)
        if not decision.allowed:
            if decision.reason == RateLimitReason.INVALID_GUEST_SESSION:
                raise InvalidGuestSessionError(decision.message or "Invalid guest session")
            raise RateLimitedError(
                decision.message or "Rate limit exceeded",
                retry_after_seconds=decision.retry_after_seconds or 1,
                reason=decision.reason.value if decision.reason else RateLimitReason.RATE_LIMIT_EXCEEDED.value,
                details={"gallery_id": gallery_id},
            )

        cached, source = await self._lookup_cached(gallery_id, normalized_mobile, session_token, image_hash)
        photo_names = await self.gallery_directory.list_photos(gallery_id)

        if cached is not None:
            await self.selfie_cache.touch(cached.id)
            logger.info(
                "Reusing cached selfie match",
                gallery_id=gallery_id,
                source=source.value,
                face_id=cached.face_id,
                matched_count=len(cached.matched_photo_ids),
            )
            result = MatchResult(
                gallery_id=gallery_id,
                gallery_name=policy.name,
                mobile_number=normalized_mobile,
                session_token=session_token,
                image_hash=image_hash,
                face_id=cached.face_id,
                matched_photo_ids=list(cached.matched_photo_ids),
                selfie_key=cached.selfie_s3_key,
                cache_hit=True,
                cache_source=source,
            )
        else:
            result = await self._match_with_provider(
                policy=policy,
                normalized=normalized,
                image_hash=image_hash,
                normalized_mobile=normalized_mobile,
                session_token=session_token,
                photo_names=photo_names,
            )

        result.matched_photos = photo_details(result.matched_photo_ids, photo_names)
        result.selfie_url = await self._signed_url(result.selfie_key)
        return result

    async def open_guest_session(
        self,
        gallery_id: str,
        selfie_bytes: bytes,
        mobile_number: Optional[str] = None,
        session_token: Optional[str] = None,
    ) -> GuestAccessGrant:
        """Resolve a selfie and create a guest session for the matched photos.

        A selfie that matches nobody still yields a valid session with zero
        matched photos.
        """
        result = await self.resolve(gallery_id, selfie_bytes, mobile_number, session_token)
        token = await self.guest_sessions.create_session(
            gallery_id=gallery_id,
            matched_photo_ids=result.matched_photo_ids,
            mobile_number=result.mobile_number,
            selfie_key=result.selfie_key,
        )
        return GuestAccessGrant(session_token=token, match=result)

    async def check_mobile(self, gallery_id: str, mobile_number: str) -> MobileCheckResult:
        """Let a returning guest in by mobile number without a new selfie.

        Returns ``found=False`` when the gallery is missing or closed to
        selfie access, or when no selfie was cached for the mobile number.
        """
        policy = await self.gallery_directory.get_policy(gallery_id)
        if policy is None or not policy.selfie_matching_enabled or not policy.allows_guest_selfie:
            return MobileCheckResult(found=False)

        normalized_mobile = normalize_mobile(mobile_number)
        if not normalized_mobile:
            return MobileCheckResult(found=False)

        cached = await self.selfie_cache.lookup_by_mobile(gallery_id, normalized_mobile)
        if cached is None:
            logger.info("Mobile reuse miss", gallery_id=gallery_id, mobile=mask_mobile(normalized_mobile))
            return MobileCheckResult(found=False)

        logger.info("Mobile reuse hit", gallery_id=gallery_id, mobile=mask_mobile(normalized_mobile))
        await self.selfie_cache.touch(cached.id)
        token = await self.guest_sessions.create_session(
            gallery_id=gallery_id,
            matched_photo_ids=cached.matched_photo_ids,
            mobile_number=normalized_mobile,
            selfie_key=cached.selfie_s3_key,
        )
        return MobileCheckResult(
            found=True,
            session_token=token,
            matched_photo_ids=list(cached.matched_photo_ids),
            gallery_id=policy.gallery_id,
            gallery_name=policy.name,
            selfie_url=await self._signed_url(cached.selfie_s3_key),
        )

    async def invalidate_selfie(self, gallery_id: str, mobile_number: str) -> int:
        """Forget a guest's cached selfie for one gallery ("change selfie").

        Returns:
            int: Number of deleted cache records
        """
        normalized_mobile = normalize_mobile(mobile_number)
        if not normalized_mobile:
            return 0
        return await self.selfie_cache.invalidate_mobile(gallery_id, normalized_mobile)

    async def _require_selfie_policy(self, gallery_id: str) -> GalleryPolicy:
        policy = await self.gallery_directory.get_policy(gallery_id)
        if policy is None:
            raise GalleryNotFoundError("Gallery not found", details={"gallery_id": gallery_id})

        if not policy.selfie_matching_enabled:
            logger.info("Selfie matching disabled", gallery_id=gallery_id)
            raise ConfigurationDisabledError(
                "Selfie matching is disabled for this gallery",
                details={"gallery_id": gallery_id}
            )
        if not policy.allows_guest_selfie:
            raise ConfigurationDisabledError(
                "Guest access is not enabled for this gallery",
                details={"gallery_id": gallery_id}
            )
        return policy

    async def _lookup_cached(
        self,
        gallery_id: str,
        normalized_mobile: Optional[str],
        session_token: Optional[str],
        image_hash: str,
    ) -> Tuple[Optional[CachedSelfie], Optional[CacheSource]]:
        """Try the cache lookups from the strongest identity signal to the weakest."""
        if normalized_mobile:
            cached = await self.selfie_cache.lookup_by_mobile(gallery_id, normalized_mobile)
            if cached is not None:
                return cached, CacheSource.MOBILE

        if session_token:
            cached = await self.selfie_cache.lookup_by_session_token(gallery_id, session_token)
            if cached is not None:
                return cached, CacheSource.SESSION

        cached = await self.selfie_cache.lookup_by_hash(gallery_id, image_hash)
        if cached is not None:
            return cached, CacheSource.HASH

        return None, None

    async def _match_with_provider(
        self,
        policy: GalleryPolicy,
        normalized: bytes,
        image_hash: str,
        normalized_mobile: Optional[str],
        session_token: Optional[str],
        photo_names: Dict[str, str],
    ) -> MatchResult:
        gallery_id = policy.gallery_id
        logger.info("Selfie cache miss, calling face provider", gallery_id=gallery_id)

        selfie_key = await self._upload_selfie(normalized)
        raw_matches, degraded = await self._search_faces(normalized, gallery_id)
        matches = select_gallery_matches(raw_matches, photo_names.keys())

        matched_photo_ids = [match.photo_id for match in matches]
        face_id = matches[0].matched_face_id if matches else no_match_face_id()
        logger.info(
            "Face search finished",
            gallery_id=gallery_id,
            provider=self.face_provider.provider_name,
            raw_matches=len(raw_matches),
            matched_count=len(matched_photo_ids),
            degraded=degraded,
        )

        if not degraded:
            await self.selfie_cache.store(
                gallery_id=gallery_id,
                image_hash=image_hash,
                face_id=face_id,
                matched_photo_ids=matched_photo_ids,
                mobile_number=normalized_mobile,
                session_token=session_token,
                selfie_key=selfie_key,
            )

        return MatchResult(
            gallery_id=gallery_id,
            gallery_name=policy.name,
            mobile_number=normalized_mobile,
            session_token=session_token,
            image_hash=image_hash,
            face_id=face_id,
            matched_photo_ids=matched_photo_ids,
            selfie_key=selfie_key,
            cache_hit=False,
            provider_degraded=degraded,
        )

    async def _upload_selfie(self, normalized: bytes) -> str:
        try:
            upload = await asyncio.wait_for(
                self.storage.upload(normalized, f"selfie-{int(time.time() * 1000)}.jpg", "selfies"),
                timeout=self.options.storage_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error("Selfie upload timed out", timeout=self.options.storage_timeout_seconds)
            raise StorageError("Selfie upload timed out") from e

        logger.info("Uploaded selfie", key=upload.key)
        return upload.key

    async def _search_faces(self, image_bytes: bytes, gallery_id: str) -> Tuple[List[FaceMatch], bool]:
        """Run the provider search, absorbing failures.

        Returns:
            Tuple of the raw matches and whether the provider was degraded
        """
        try:
            matches = await asyncio.wait_for(
                self.face_provider.search_faces(
                    image_bytes,
                    gallery_id,
                    self.options.similarity_threshold,
                ),
                timeout=self.options.provider_timeout_seconds,
            )
            return list(matches), False
        except NoFaceDetectedError:
            logger.info("No face detected in selfie", gallery_id=gallery_id)
            return [], False
        except asyncio.TimeoutError:
            logger.warning(
                "Face provider timed out",
                gallery_id=gallery_id,
                timeout=self.options.provider_timeout_seconds
            )
            return [], True
        except Exception as e:
            logger.error(
                "Face provider failed, returning no matches",
                gallery_id=gallery_id,
                error=str(e),
                exc_info=True
            )
            return [], True

    async def _signed_url(self, key: Optional[str]) -> Optional[str]:
        if not key:
            return None
        try:
            return await asyncio.wait_for(
                self.storage.get_signed_url(key, self.options.signed_url_expiry_seconds),
                timeout=self.options.storage_timeout_seconds,
            )
        except Exception as e:
            logger.warning("Failed to sign selfie URL", key=key, error=str(e))
            return None
