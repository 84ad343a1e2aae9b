"""
Nested (Signed-then-Encrypted) Token Repository

Issue:  claims -> JWS (signing repository) -> JWE(alg=dir, enc=AxxxGCM)
Verify: JWE -> decrypt -> JWS -> signature (+ validity window)

Decryption always happens first, and the inner signature is always checked:
a successful decrypt only proves possession of the shared encryption key,
not who signed the claims.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog
from jwcrypto import jwe, jwk
from jwcrypto.common import JWException, json_encode
from jwt.utils import base64url_encode

from ..config import Settings, get_settings
from ..models.claims import Claims
from ..models.keys import SharedKey
from .claims_builder import utc_now
from .errors import (
    AuthenticationError,
    InvalidToken,
    IssuanceError,
    KeyLengthError,
    UnsupportedAlgorithm,
)
from .repository import (
    MAX_TOKEN_SIZE_BYTES,
    KeyPairTokenRepository,
    TokenRepository,
    decode_segment,
)

logger = structlog.get_logger(__name__)

KEY_MANAGEMENT_ALGORITHM = "dir"

# Content encryption method -> required key length in bytes
ENCRYPTION_KEY_LENGTHS: dict[str, int] = {
    "A128GCM": 16,
    "A192GCM": 24,
    "A256GCM": 32,
}


def _secret_bytes(encryption_key: SharedKey | bytes) -> bytes:
    if isinstance(encryption_key, SharedKey):
        return encryption_key.secret
    if isinstance(encryption_key, bytes):
        return encryption_key
    raise UnsupportedAlgorithm(
        f"Encryption key must be SharedKey or bytes, got {type(encryption_key).__name__}"
    )


class NestedTokenRepository:
    """
    Signs claims with an asymmetric key, then encrypts the signed token
    under a shared content-encryption key.

    Signing, expiry and skew policy come from the wrapped signing
    repository.
    """

    def __init__(
        self,
        signing_repository: TokenRepository | None = None,
        *,
        signing_algorithm: str = "EdDSA",
        encryption_method: str = "A128GCM",
        allowed_clock_skew_seconds: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            signing_repository: Repository for the inner JWS; defaults to an
                uncompressed KeyPairTokenRepository using ``signing_algorithm``
            signing_algorithm: Inner algorithm when no repository is given
            encryption_method: A128GCM, A192GCM or A256GCM
            allowed_clock_skew_seconds: Skew for the default signing repository
            clock: Clock for the default signing repository

        Raises:
            UnsupportedAlgorithm: Unknown encryption method or signing algorithm
        """
        if encryption_method not in ENCRYPTION_KEY_LENGTHS:
            raise UnsupportedAlgorithm(
                f"Unsupported encryption method: {encryption_method!r}",
                algorithm=encryption_method,
            )
        self.encryption_method = encryption_method
        self.signing_repository = signing_repository or KeyPairTokenRepository(
            signing_algorithm,
            compression=None,
            allowed_clock_skew_seconds=allowed_clock_skew_seconds,
            clock=clock,
        )
        self._allowed_algs = [KEY_MANAGEMENT_ALGORITHM, encryption_method]

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **overrides: Any) -> NestedTokenRepository:
        """Build a nested repository from application settings."""
        settings = settings or get_settings()
        options: dict[str, Any] = {
            "signing_algorithm": settings.nested_signing_algorithm,
            "encryption_method": settings.nested_encryption_method,
            "allowed_clock_skew_seconds": settings.allowed_clock_skew_seconds,
        }
        options.update(overrides)
        return cls(**options)

    @property
    def key_length(self) -> int:
        return ENCRYPTION_KEY_LENGTHS[self.encryption_method]

    def _content_key(self, secret: bytes) -> jwk.JWK:
        return jwk.JWK(kty="oct", k=base64url_encode(secret).decode("ascii"))

    # ═══════════════════════════════════════════════════════════════
    # ISSUE
    # ═══════════════════════════════════════════════════════════════

    def issue(
        self,
        signing_key: Any,
        encryption_key: SharedKey | bytes,
        claims: Claims,
        algorithm: str | None = None,
    ) -> str:
        """
        Sign then encrypt.

        Returns:
            5-segment JWE compact token whose payload is the signed token

        Raises:
            KeyLengthError: Encryption key length does not fit the method
            IssuanceError: Signing or encryption failed
            UnsupportedAlgorithm: Key shape mismatch
        """
        self._check_key_length(_secret_bytes(encryption_key))
        inner = self.signing_repository.issue(signing_key, claims, algorithm)
        return self.encrypt(encryption_key, inner)

    def encrypt(self, encryption_key: SharedKey | bytes, inner_token: str) -> str:
        """Wrap an already signed token in a JWE envelope."""
        secret = _secret_bytes(encryption_key)
        self._check_key_length(secret)

        protected = {
            "alg": KEY_MANAGEMENT_ALGORITHM,
            "enc": self.encryption_method,
            "cty": "JWT",
        }
        try:
            envelope = jwe.JWE(
                inner_token.encode("utf-8"),
                protected=json_encode(protected),
                algs=self._allowed_algs,
            )
            envelope.add_recipient(self._content_key(secret))
            token: str = envelope.serialize(compact=True)
        except (JWException, ValueError, TypeError) as e:
            logger.warning("token_encryption_failed", method=self.encryption_method, error=str(e))
            raise IssuanceError(f"Token encryption failed: {e}") from e

        logger.debug("token_encrypted", method=self.encryption_method)
        return token

    def _check_key_length(self, secret: bytes) -> None:
        if len(secret) != self.key_length:
            raise KeyLengthError(
                f"{self.encryption_method} requires a {self.key_length * 8}-bit key, "
                f"got {len(secret) * 8} bits"
            )

    # ═══════════════════════════════════════════════════════════════
    # DECRYPT / VERIFY / GET CLAIMS
    # ═══════════════════════════════════════════════════════════════

    def decrypt(self, encryption_key: SharedKey | bytes, token: str) -> str:
        """
        Open the JWE envelope and return the inner signed token.

        The inner signature is NOT checked here.

        Raises:
            InvalidToken: Malformed envelope or inner token
            AuthenticationError: Decryption or tag check failed
        """
        self._check_envelope(token)
        secret = _secret_bytes(encryption_key)

        envelope = jwe.JWE(algs=self._allowed_algs)
        try:
            envelope.deserialize(token)
        except (JWException, ValueError, TypeError) as e:
            raise InvalidToken(f"Encrypted token could not be parsed: {e}") from e

        try:
            envelope.decrypt(self._content_key(secret))
            plaintext = envelope.payload
        except (JWException, ValueError, TypeError) as e:
            logger.info("token_decryption_failed", method=self.encryption_method)
            raise AuthenticationError("Token decryption failed") from e

        try:
            inner = plaintext.decode("ascii")
        except UnicodeDecodeError as e:
            raise InvalidToken("Decrypted payload is not a compact token") from e
        if inner.count(".") != 2:
            raise InvalidToken("Decrypted payload is not a signed token")
        return inner

    def _check_envelope(self, token: str) -> None:
        if not isinstance(token, str) or not token:
            raise InvalidToken("Token must be a non-empty string")
        if not token.isascii():
            raise InvalidToken("Encrypted token is not ASCII")
        if len(token) > MAX_TOKEN_SIZE_BYTES * 2:
            raise InvalidToken("Encrypted token exceeds maximum allowed size")

        segments = token.split(".")
        if len(segments) != 5:
            raise InvalidToken(f"Expected 5 encrypted token segments, got {len(segments)}")
        header_bytes = decode_segment(segments[0])
        for segment in segments[1:]:
            decode_segment(segment)
        try:
            header = json.loads(header_bytes)
        except (ValueError, RecursionError) as e:
            raise InvalidToken(f"Encrypted token header could not be decoded: {e}") from e
        if not isinstance(header, dict):
            raise InvalidToken("Encrypted token header must be a JSON object")
        if header.get("alg") != KEY_MANAGEMENT_ALGORITHM or header.get("enc") != self.encryption_method:
            raise InvalidToken(
                f"Encrypted token uses alg={header.get('alg')!r} enc={header.get('enc')!r}, "
                f"expected {KEY_MANAGEMENT_ALGORITHM}/{self.encryption_method}"
            )

    def verify(
        self,
        signing_key: Any,
        encryption_key: SharedKey | bytes,
        token: str,
        check_expiry: bool = True,
        clock_skew_seconds: int | None = None,
    ) -> bool:
        """
        Decrypt, then verify the inner signature (and window when requested).

        Raises:
            InvalidToken: Malformed envelope or inner token
            AuthenticationError: Decryption failed or the crypto layer
                rejected the signing key
        """
        inner = self.decrypt(encryption_key, token)
        return self.signing_repository.verify(signing_key, inner, check_expiry, clock_skew_seconds)

    def get_claims(self, signing_key: Any, encryption_key: SharedKey | bytes, token: str) -> Claims:
        """
        Decrypt, verify the inner signature, and return the claims.

        Raises:
            AuthenticationError: Decryption or signature verification failed
        """
        inner = self.decrypt(encryption_key, token)
        return self.signing_repository.get_claims(signing_key, inner)

    def __repr__(self) -> str:
        return (
            f"NestedTokenRepository(signing={self.signing_repository!r}, "
            f"alg={KEY_MANAGEMENT_ALGORITHM!r}, enc={self.encryption_method!r})"
        )


__all__ = [
    "ENCRYPTION_KEY_LENGTHS",
    "KEY_MANAGEMENT_ALGORITHM",
    "NestedTokenRepository",
]
