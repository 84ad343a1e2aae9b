"""
tokenkit Configuration

Settings loaded from ``TOKENKIT_*`` environment variables (or a ``.env``
file) with pydantic-settings validation.
"""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Kept in sync with tokenkit.security.algorithms; duplicated to keep config import-light
_SHARED_ALGORITHMS = ("HS256", "HS384", "HS512")
_KEYPAIR_ALGORITHMS = (
    "RS256", "RS384", "RS512",
    "PS256", "PS384", "PS512",
    "ES256", "ES384", "ES512",
    "EdDSA",
)


class Settings(BaseSettings):
    """Token settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TOKENKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ═══════════════════════════════════════════════════════════════
    # SIGNING
    # ═══════════════════════════════════════════════════════════════
    shared_algorithm: str = Field(default="HS256", description="Default HMAC algorithm")
    keypair_algorithm: str = Field(default="RS256", description="Default asymmetric algorithm")
    default_period_seconds: int = Field(
        default=3600, description="Token validity period; negative disables expiry"
    )
    allowed_clock_skew_seconds: int | None = Field(
        default=None, ge=0, le=300, description="Clock skew tolerance (0/None disables)"
    )
    compression: Literal["none", "deflate", "gzip"] = Field(
        default="deflate", description="Payload compression"
    )
    max_token_size_bytes: int = Field(
        default=16 * 1024, ge=256, description="Reject tokens larger than this"
    )

    # ═══════════════════════════════════════════════════════════════
    # NESTED (SIGNED + ENCRYPTED)
    # ═══════════════════════════════════════════════════════════════
    nested_signing_algorithm: str = Field(default="EdDSA", description="Inner JWS algorithm")
    nested_encryption_method: Literal["A128GCM", "A192GCM", "A256GCM"] = Field(
        default="A128GCM", description="JWE content encryption (alg=dir)"
    )

    # ═══════════════════════════════════════════════════════════════
    # LOGGING
    # ═══════════════════════════════════════════════════════════════
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_json: bool = Field(default=False, description="Render logs as JSON")

    @field_validator("shared_algorithm")
    @classmethod
    def validate_shared_algorithm(cls, v: str) -> str:
        if v not in _SHARED_ALGORITHMS:
            raise ValueError(f"shared_algorithm must be one of {_SHARED_ALGORITHMS}")
        return v

    @field_validator("keypair_algorithm", "nested_signing_algorithm")
    @classmethod
    def validate_keypair_algorithm(cls, v: str) -> str:
        if v not in _KEYPAIR_ALGORITHMS:
            raise ValueError(f"Asymmetric algorithm must be one of {_KEYPAIR_ALGORITHMS}")
        return v

    @field_validator("default_period_seconds")
    @classmethod
    def validate_period(cls, v: int) -> int:
        if v == 0:
            raise ValueError("default_period_seconds must be positive, or negative for no expiry")
        if v < 0:
            logger.warning("Tokens will be issued without expiry (default_period_seconds < 0)")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
