"""
Claims Builder

Assembles a Claims model from caller fields plus timestamps computed from
a single sample of the current time.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from ..models.claims import REGISTERED_CLAIMS, Claims


def utc_now() -> datetime:
    return datetime.now(UTC)


def _has_text(value: str | None) -> bool:
    return value is not None and bool(value.strip())


def _normalize_audience(audience: str | Sequence[str] | None) -> tuple[str, ...]:
    if audience is None:
        return ()
    if isinstance(audience, str):
        audience = [audience]
    return tuple(a.strip() for a in audience if _has_text(a))


def build_claims(
    token_id: str | None,
    subject: str,
    issuer: str | None = None,
    audience: str | Sequence[str] | None = None,
    roles: str | None = None,
    permissions: str | None = None,
    period_seconds: int = -1,
    extra: Mapping[str, Any] | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> Claims:
    """
    Build the claim set for a new token.

    Args:
        token_id: JWT ID (omitted when blank)
        subject: Subject, typically the principal name
        issuer: Issuer (omitted when blank)
        audience: One audience or a sequence of audiences (blank entries dropped)
        roles: Comma-delimited roles (omitted when blank)
        permissions: Comma-delimited permissions (omitted when blank)
        period_seconds: Validity period. Positive values set
            ``not_before = now`` and ``expiration = now + period``; negative
            values leave both unset so the token never expires by time.
            Zero is rejected instead of issuing a token that is already
            expired, since ``not_before < expiration`` must hold.
        extra: Custom claims (may not reuse registered claim names)
        clock: Source of the current time, sampled once

    Returns:
        Immutable Claims with ``issued_at`` set to now (whole seconds)

    Raises:
        ValueError: If the subject is blank, the period is zero, or extra
            claims clash with registered names
    """
    if not _has_text(subject):
        raise ValueError("Subject is required")
    if period_seconds == 0:
        raise ValueError("period_seconds must be positive, or negative for no expiry")

    extra = dict(extra or {})
    clashing = sorted(REGISTERED_CLAIMS.intersection(extra))
    if clashing:
        raise ValueError(f"Extra claims may not use registered names: {clashing}")

    now = clock().astimezone(UTC).replace(microsecond=0)

    not_before = expiration = None
    if period_seconds > 0:
        not_before = now
        expiration = now + timedelta(seconds=period_seconds)

    return Claims(
        token_id=token_id.strip() if _has_text(token_id) else None,
        subject=subject,
        issuer=issuer.strip() if _has_text(issuer) else None,
        audience=_normalize_audience(audience),
        issued_at=now,
        not_before=not_before,
        expiration=expiration,
        roles=roles if _has_text(roles) else None,
        permissions=permissions if _has_text(permissions) else None,
        extra=extra,
    )


__all__ = ["build_claims", "utc_now"]
