"""
Security Utilities

JWT decoding for identity-provider tokens and role normalisation.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from jose import JWTError, jwt

from app.core.config import settings
from app.models.enums import UserRole


_ROLE_TOKEN_SEPARATORS = re.compile(r"[\s,|]+")


def create_access_token(
    subject: str | Any,
    expires_delta: timedelta | None = None,
    extra_claims: Optional[dict[str, Any]] = None,
) -> str:
    """
    Create a JWT access token.

    Tokens are normally minted by the identity provider; this helper signs
    tokens with the same shared secret for local development and tests.

    Args:
        subject: The subject of the token (user ID).
        expires_delta: Optional custom expiration time.
        extra_claims: Additional claims such as email, name and role.

    Returns:
        str: Encoded JWT token.
    """
    now = datetime.now(timezone.utc)
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode: dict[str, Any] = {
        "sub": str(subject),
        "exp": expire,
        "iat": now,
    }
    if settings.JWT_ISSUER:
        to_encode["iss"] = settings.JWT_ISSUER
    if extra_claims:
        to_encode.update(extra_claims)

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )


def decode_access_token(token: str) -> dict | None:
    """
    Decode and validate a JWT access token.

    Issuer and audience are only enforced when configured.

    Args:
        token: JWT token string to decode.

    Returns:
        dict: Decoded token payload if valid, None otherwise.
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            issuer=settings.JWT_ISSUER,
            options={"verify_aud": False},
        )
    except JWTError:
        return None

    audiences = settings.jwt_audience_list
    if audiences:
        claimed = payload.get("aud")
        claimed_list = [claimed] if isinstance(claimed, str) else list(claimed or [])
        if not any(aud in audiences for aud in claimed_list):
            return None

    return payload


def parse_role_tokens(raw_role: str | Iterable[str] | None) -> frozenset[UserRole]:
    """
    Convert the identity provider's role claim into a set of roles.

    The provider encodes roles as one delimited string ("user,admin",
    "user admin", "user|admin"); a list of tokens is accepted as well.
    Unknown tokens are ignored and every authenticated caller is a USER.

    Args:
        raw_role: Role claim as found in the token payload.

    Returns:
        frozenset[UserRole]: Normalised roles.
    """
    if raw_role is None:
        tokens: list[str] = []
    elif isinstance(raw_role, str):
        tokens = _ROLE_TOKEN_SEPARATORS.split(raw_role)
    else:
        tokens = [str(token) for token in raw_role]

    roles = {UserRole.USER}
    for token in tokens:
        normalized = token.strip().upper()
        if normalized in UserRole.__members__:
            roles.add(UserRole[normalized])

    return frozenset(roles)
