"""
Claims Model

Immutable value object for a token payload. Built once by the claims
builder at issuance, or once by a repository from a verified token.
"""

from __future__ import annotations

from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Registered claim names written into the payload
CLAIM_TOKEN_ID = "jti"
CLAIM_SUBJECT = "sub"
CLAIM_ISSUER = "iss"
CLAIM_AUDIENCE = "aud"
CLAIM_ISSUED_AT = "iat"
CLAIM_NOT_BEFORE = "nbf"
CLAIM_EXPIRATION = "exp"
CLAIM_ROLES = "roles"
CLAIM_PERMISSIONS = "perms"

REGISTERED_CLAIMS = frozenset(
    {
        CLAIM_TOKEN_ID,
        CLAIM_SUBJECT,
        CLAIM_ISSUER,
        CLAIM_AUDIENCE,
        CLAIM_ISSUED_AT,
        CLAIM_NOT_BEFORE,
        CLAIM_EXPIRATION,
        CLAIM_ROLES,
        CLAIM_PERMISSIONS,
    }
)


def to_numeric_date(value: datetime) -> int:
    """Convert a datetime to a JWT NumericDate (whole seconds since epoch)."""
    return int(value.timestamp())


def from_numeric_date(value: Any) -> datetime:
    """Convert a JWT NumericDate to an aware UTC datetime."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"NumericDate must be a number, got {type(value).__name__}")
    try:
        return datetime.fromtimestamp(value, UTC)
    except (OverflowError, OSError) as e:
        raise ValueError(f"NumericDate out of range: {value!r}") from e


def split_delimited(value: str | None) -> frozenset[str]:
    if not value:
        return frozenset()
    return frozenset(part.strip() for part in value.split(",") if part.strip())


class TokenModel(BaseModel):
    """Base model for token value objects."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="forbid",
    )


class Claims(TokenModel):
    """JWT claim set (registered claims plus roles, perms and extras)."""

    token_id: str | None = Field(default=None, description="JWT ID (jti)")
    subject: str = Field(description="Subject (sub)")
    issuer: str | None = Field(default=None, description="Issuer (iss)")
    audience: tuple[str, ...] = Field(default=(), description="Audience (aud)")
    issued_at: datetime = Field(description="Issued at (iat)")
    not_before: datetime | None = Field(default=None, description="Not before (nbf)")
    expiration: datetime | None = Field(default=None, description="Expiration (exp)")
    roles: str | None = Field(default=None, description="Comma-delimited roles")
    permissions: str | None = Field(default=None, description="Comma-delimited permissions")
    extra: dict[str, Any] = Field(default_factory=dict, description="Custom claims")

    @field_validator("issued_at", "not_before", "expiration")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        if v is None:
            return v
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v.astimezone(UTC)

    @field_validator("extra")
    @classmethod
    def validate_extra(cls, v: dict[str, Any]) -> dict[str, Any]:
        clashing = sorted(REGISTERED_CLAIMS.intersection(v))
        if clashing:
            raise ValueError(f"Extra claims may not use registered names: {clashing}")
        return dict(v)

    @model_validator(mode="after")
    def validate_window(self) -> Claims:
        """Ensure not_before < expiration when both are set."""
        if self.not_before is not None and self.expiration is not None:
            if self.not_before >= self.expiration:
                raise ValueError("not_before must be earlier than expiration")
        return self

    @property
    def role_set(self) -> frozenset[str]:
        return split_delimited(self.roles)

    @property
    def permission_set(self) -> frozenset[str]:
        return split_delimited(self.permissions)

    @property
    def extras(self) -> MappingProxyType[str, Any]:
        """Read-only view of the custom claims."""
        return MappingProxyType(self.extra)

    def to_payload(self) -> dict[str, Any]:
        """
        Serialize to a JWT payload dict.

        Unset optional claims are omitted. A single audience is written as a
        string, several as an array.
        """
        payload: dict[str, Any] = dict(self.extra)
        if self.token_id:
            payload[CLAIM_TOKEN_ID] = self.token_id
        payload[CLAIM_SUBJECT] = self.subject
        if self.issuer:
            payload[CLAIM_ISSUER] = self.issuer
        if len(self.audience) == 1:
            payload[CLAIM_AUDIENCE] = self.audience[0]
        elif self.audience:
            payload[CLAIM_AUDIENCE] = list(self.audience)
        payload[CLAIM_ISSUED_AT] = to_numeric_date(self.issued_at)
        if self.not_before is not None:
            payload[CLAIM_NOT_BEFORE] = to_numeric_date(self.not_before)
        if self.expiration is not None:
            payload[CLAIM_EXPIRATION] = to_numeric_date(self.expiration)
        if self.roles:
            payload[CLAIM_ROLES] = self.roles
        if self.permissions:
            payload[CLAIM_PERMISSIONS] = self.permissions
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Claims:
        """
        Build claims from a decoded JWT payload.

        Raises:
            ValueError: If a registered claim has the wrong type
                (pydantic's ValidationError is a ValueError)
        """
        if not isinstance(payload, dict):
            raise ValueError("Token payload must be a JSON object")

        audience = payload.get(CLAIM_AUDIENCE)
        if audience is None:
            audience = ()
        elif isinstance(audience, str):
            audience = (audience,)
        elif isinstance(audience, list) and all(isinstance(a, str) for a in audience):
            audience = tuple(audience)
        else:
            raise ValueError("aud must be a string or an array of strings")

        if CLAIM_ISSUED_AT not in payload:
            raise ValueError("Token payload is missing iat")

        not_before = payload.get(CLAIM_NOT_BEFORE)
        expiration = payload.get(CLAIM_EXPIRATION)

        return cls(
            token_id=payload.get(CLAIM_TOKEN_ID),
            subject=payload.get(CLAIM_SUBJECT),
            issuer=payload.get(CLAIM_ISSUER),
            audience=audience,
            issued_at=from_numeric_date(payload[CLAIM_ISSUED_AT]),
            not_before=from_numeric_date(not_before) if not_before is not None else None,
            expiration=from_numeric_date(expiration) if expiration is not None else None,
            roles=payload.get(CLAIM_ROLES),
            permissions=payload.get(CLAIM_PERMISSIONS),
            extra={k: v for k, v in payload.items() if k not in REGISTERED_CLAIMS},
        )
