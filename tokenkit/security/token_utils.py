"""
Token Utilities

Convenience operations built on the repository contract: re-issuing a
verified token with a fresh window, password-reset checks, and expiry or
subject lookups.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog

from ..config import get_settings
from .claims_builder import build_claims
from .errors import AuthenticationError, TokenError
from .repository import TokenRepository

logger = structlog.get_logger(__name__)


def refresh_token(
    repository: TokenRepository,
    key: Any,
    token: str,
    period_seconds: int | None = None,
    algorithm: str | None = None,
) -> str:
    """
    Re-issue a token with a new validity window.

    ``period_seconds`` defaults to the configured ``default_period_seconds``.

    The signature must verify; the old window is ignored so an expired
    token can still be refreshed by the holder of the key. Identity claims
    (jti, sub, iss, aud, roles, perms and extras) are carried over.

    Raises:
        AuthenticationError: Signature mismatch or malformed token
        UnsupportedAlgorithm, IssuanceError: As for ``repository.issue``
    """
    claims = repository.get_claims(key, token)
    if period_seconds is None:
        period_seconds = get_settings().default_period_seconds
    refreshed = build_claims(
        claims.token_id,
        claims.subject,
        claims.issuer,
        claims.audience,
        claims.roles,
        claims.permissions,
        period_seconds,
        extra=claims.extra,
        clock=repository.clock,
    )
    logger.debug("token_refreshed", subject=claims.subject, jti=claims.token_id)
    return repository.issue(key, refreshed, algorithm)


def is_created_before_last_password_reset(
    created: datetime | None, last_password_reset: datetime | None
) -> bool:
    """True if the token was issued before the last password reset."""
    return created is not None and last_password_reset is not None and created < last_password_reset


def can_token_be_refreshed(
    repository: TokenRepository,
    key: Any,
    token: str,
    last_password_reset: datetime | None = None,
) -> bool:
    """
    Check whether a token may be exchanged for a fresh one.

    Returns:
        True if the token verifies (signature and window) and was not
        issued before the last password reset
    """
    try:
        if not repository.verify(key, token, check_expiry=True):
            return False
        claims = repository.get_claims(key, token)
    except AuthenticationError:
        return False
    return not is_created_before_last_password_reset(claims.issued_at, last_password_reset)


def get_expiration(repository: TokenRepository, key: Any, token: str) -> datetime | None:
    """
    Get the expiration time of a verified token.

    Returns:
        Expiration, or None if the token has none or does not verify
    """
    try:
        return repository.get_claims(key, token).expiration
    except TokenError:
        return None


def is_token_expired(repository: TokenRepository, key: Any, token: str) -> bool:
    """
    Check if a token is expired.

    Tokens that do not verify are reported as expired.
    """
    try:
        claims = repository.get_claims(key, token)
    except TokenError:
        return True
    if claims.expiration is None:
        return False
    return repository.clock() >= claims.expiration


def get_subject(repository: TokenRepository, key: Any, token: str) -> str:
    """
    Subject of a verified token.

    Raises:
        AuthenticationError: Signature mismatch or malformed token
    """
    return repository.get_claims(key, token).subject


__all__ = [
    "can_token_be_refreshed",
    "get_expiration",
    "get_subject",
    "is_created_before_last_password_reset",
    "is_token_expired",
    "refresh_token",
]
