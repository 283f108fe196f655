"""Guest identity value objects.

A guest is identified either by a normalized mobile number or, when no
mobile number is given, by a browser-generated session token. The two
variants are kept apart at the type level; the string key is only built
when an identity has to be persisted.
"""
import re
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

_NON_DIGITS = re.compile(r"\D")


def normalize_mobile(mobile: Optional[str]) -> Optional[str]:
    """Strip every non-digit character from a mobile number.

    Returns:
        The digits-only mobile number, or None if nothing is left
    """
    if not mobile:
        return None
    digits = _NON_DIGITS.sub("", mobile)
    return digits or None


class MobileIdentity(BaseModel):
    """Guest identified by a digits-only mobile number."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["mobile"] = "mobile"
    mobile: str = Field(..., min_length=1, description="Normalized mobile number")

    def storage_key(self, gallery_id: str) -> str:
        return f"{gallery_id}:m:{self.mobile}"


class SessionIdentity(BaseModel):
    """Guest identified by a client-generated session token."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["session"] = "session"
    token: str = Field(..., min_length=1, description="Opaque guest session token")

    def storage_key(self, gallery_id: str) -> str:
        return f"{gallery_id}:s:{self.token}"


GuestIdentity = Union[MobileIdentity, SessionIdentity]


def derive_identity(
    normalized_mobile: Optional[str],
    session_token: Optional[str]
) -> Optional[GuestIdentity]:
    """Pick the strongest available guest identity.

    The mobile number wins over the session token. Returns None when neither
    is available.
    """
    if normalized_mobile:
        return MobileIdentity(mobile=normalized_mobile)
    if session_token:
        return SessionIdentity(token=session_token)
    return None
