"""
Token Repositories

Issue, verify and extract claims from compact JWS tokens.

One repository per key shape:
- SharedSecretTokenRepository: HS256 / HS384 / HS512
- KeyPairTokenRepository: RS*, PS*, ES*, EdDSA

Both share one verification path, so claims are never handed out for a
token whose signature has not been checked. Time-window checks go through
ExpiryCheckedVerifier for every algorithm family.
"""

from __future__ import annotations

import binascii
import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar

import structlog
from cryptography.exceptions import UnsupportedAlgorithm as CryptoUnsupportedAlgorithm
from jwt.api_jws import PyJWS
from jwt.exceptions import PyJWTError
from jwt.utils import base64url_decode

from ..config import Settings, get_settings
from ..models.claims import Claims
from ..models.keys import KeyMaterial, KeyPair, KeyShape, SharedKey
from .algorithms import (
    AlgorithmDescriptor,
    algorithms_for_shape,
    require_key_shape,
    resolve_algorithm,
)
from .claims_builder import utc_now
from .compression import (
    DEFAULT_RESOLVER,
    DEFLATE,
    CompressionCodec,
    CompressionCodecResolver,
    CompressionError,
    codec_for_setting,
)
from .errors import AuthenticationError, InvalidToken, IssuanceError, UnsupportedAlgorithm
from .verifier import ExpiryCheckedVerifier, RawSignatureVerifier, SignatureVerifier

logger = structlog.get_logger(__name__)

# A typical token is well under 1KB; anything past this is rejected unparsed
MAX_TOKEN_SIZE_BYTES = 16 * 1024

# Exceptions the PyJWT / cryptography layers raise for bad keys or input
_CRYPTO_ERRORS = (PyJWTError, CryptoUnsupportedAlgorithm, TypeError, ValueError)

# Unpadded base64url alphabet (RFC 7515 section 2)
_SEGMENT_PATTERN = re.compile(r"[A-Za-z0-9_-]*")


def decode_segment(segment: str) -> bytes:
    """
    Strictly decode one base64url token segment.

    Raises:
        InvalidToken: Characters outside the base64url alphabet, or a
            length no encoder produces
    """
    if not _SEGMENT_PATTERN.fullmatch(segment):
        raise InvalidToken("Token segment is not base64url")
    try:
        return base64url_decode(segment)
    except (binascii.Error, ValueError) as e:
        raise InvalidToken(f"Token segment could not be decoded: {e}") from e


@dataclass(frozen=True)
class ParsedToken:
    """Decoded but not yet verified single-layer token."""

    descriptor: AlgorithmDescriptor
    header: dict[str, Any]
    signing_input: bytes
    signature: bytes
    claims: Claims


class TokenRepository:
    """
    Base repository for single-layer signed tokens.

    Configuration is fixed at construction; instances are safe to share
    between threads.
    """

    key_shape: ClassVar[KeyShape]
    default_algorithm: ClassVar[str]
    settings_algorithm_field: ClassVar[str]

    def __init__(
        self,
        algorithm: str | None = None,
        *,
        compression: CompressionCodec | None = DEFLATE,
        compression_resolver: CompressionCodecResolver = DEFAULT_RESOLVER,
        allowed_clock_skew_seconds: int | None = None,
        max_token_size: int = MAX_TOKEN_SIZE_BYTES,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            algorithm: Default issuing algorithm; must fit this repository's
                key shape
            compression: Payload codec applied on issue (None disables)
            compression_resolver: Maps a ``zip`` header back to a codec
            allowed_clock_skew_seconds: Tolerance for window checks; only
                positive values take effect
            max_token_size: Tokens longer than this are rejected unparsed
            clock: Source of the current UTC time

        Raises:
            UnsupportedAlgorithm: If the algorithm is unknown or needs a
                different key shape
        """
        self.descriptor = resolve_algorithm(algorithm or self.default_algorithm)
        require_key_shape(self.descriptor, self.key_shape)
        self.compression = compression
        self.compression_resolver = compression_resolver
        self.allowed_clock_skew_seconds = allowed_clock_skew_seconds
        self.max_token_size = max_token_size
        self.clock = clock
        self._jws = PyJWS()

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **overrides: Any) -> TokenRepository:
        """Build a repository from application settings."""
        settings = settings or get_settings()
        options: dict[str, Any] = {
            "algorithm": getattr(settings, cls.settings_algorithm_field),
            "compression": codec_for_setting(settings.compression),
            "allowed_clock_skew_seconds": settings.allowed_clock_skew_seconds,
            "max_token_size": settings.max_token_size_bytes,
        }
        options.update(overrides)
        return cls(**options)

    @property
    def algorithm(self) -> str:
        return self.descriptor.name

    @property
    def supported_algorithms(self) -> tuple[str, ...]:
        return algorithms_for_shape(self.key_shape)

    # ═══════════════════════════════════════════════════════════════
    # KEY HANDLING
    # ═══════════════════════════════════════════════════════════════

    def _coerce_key(self, key: Any) -> KeyMaterial:
        shape = getattr(key, "shape", None)
        if shape is None:
            raise UnsupportedAlgorithm(
                f"{type(self).__name__} expects {self.key_shape.value} key material, "
                f"got {type(key).__name__}"
            )
        if shape is not self.key_shape:
            raise UnsupportedAlgorithm(
                f"{type(self).__name__} requires a {self.key_shape.value} key, "
                f"got a {shape.value} key"
            )
        return key

    def _signing_key(self, key: KeyMaterial) -> Any:
        raise NotImplementedError

    def _verification_key(self, key: KeyMaterial) -> Any:
        raise NotImplementedError

    def _effective_skew(self, clock_skew_seconds: int | None) -> int:
        skew = clock_skew_seconds if clock_skew_seconds is not None else self.allowed_clock_skew_seconds
        return skew if skew and skew > 0 else 0

    # ═══════════════════════════════════════════════════════════════
    # ISSUE
    # ═══════════════════════════════════════════════════════════════

    def issue(self, key: Any, claims: Claims, algorithm: str | None = None) -> str:
        """
        Sign the claims and return the compact token.

        Args:
            key: Key material of this repository's shape
            claims: Claim set to sign
            algorithm: Overrides the repository's default algorithm

        Returns:
            ``header.payload.signature``

        Raises:
            UnsupportedAlgorithm: Unknown algorithm or key shape mismatch
            IssuanceError: Serialization or signing failed
        """
        descriptor = resolve_algorithm(algorithm) if algorithm else self.descriptor
        key = self._coerce_key(key)
        require_key_shape(descriptor, key.shape)
        signing_key = self._signing_key(key)

        try:
            payload = json.dumps(claims.to_payload(), separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise IssuanceError(f"Claims could not be serialized: {e}") from e

        headers: dict[str, Any] = {"typ": "JWT"}
        if key.key_id:
            headers["kid"] = key.key_id
        if self.compression is not None:
            payload = self.compression.compress(payload)
            headers["zip"] = self.compression.name

        try:
            token = self._jws.encode(payload, signing_key, algorithm=descriptor.name, headers=headers)
        except _CRYPTO_ERRORS as e:
            logger.warning("token_signing_failed", algorithm=descriptor.name, error=str(e))
            raise IssuanceError(f"Token signing failed with {descriptor.name}: {e}") from e

        logger.debug(
            "token_issued",
            algorithm=descriptor.name,
            subject=claims.subject,
            jti=claims.token_id,
            compressed=self.compression is not None,
        )
        return token

    # ═══════════════════════════════════════════════════════════════
    # VERIFY / GET CLAIMS
    # ═══════════════════════════════════════════════════════════════

    def verify(
        self,
        key: Any,
        token: str,
        check_expiry: bool = True,
        clock_skew_seconds: int | None = None,
    ) -> bool:
        """
        Verify the signature and, optionally, the validity window.

        Args:
            key: Key material of this repository's shape
            token: Compact token
            check_expiry: Also require ``not_before <= now < expiration``
            clock_skew_seconds: Overrides the configured skew for this call

        Returns:
            True only if the signature matches (and the window holds when
            ``check_expiry`` is set)

        Raises:
            InvalidToken: Malformed token
            AuthenticationError: The crypto layer rejected the key or token
        """
        valid, _ = self._verify(key, token, check_expiry, self._effective_skew(clock_skew_seconds))
        return valid

    def get_claims(self, key: Any, token: str) -> Claims:
        """
        Return the claims of a token whose signature verifies.

        The validity window is not checked here; use ``verify`` for that.

        Raises:
            AuthenticationError: Signature mismatch or malformed token
        """
        valid, parsed = self._verify(key, token, check_expiry=False, skew_seconds=0)
        if not valid:
            raise AuthenticationError("Token signature verification failed")
        return parsed.claims

    def _verify(
        self, key: Any, token: str, check_expiry: bool, skew_seconds: int
    ) -> tuple[bool, ParsedToken]:
        key = self._coerce_key(key)
        parsed = self._parse(token)
        now = self.clock()

        try:
            verifier: SignatureVerifier = RawSignatureVerifier(
                parsed.descriptor, self._verification_key(key)
            )
            if check_expiry:
                verifier = ExpiryCheckedVerifier(verifier, parsed.claims, now, skew_seconds)
            valid = verifier.verify(parsed.header, parsed.signing_input, parsed.signature)
        except _CRYPTO_ERRORS as e:
            logger.warning(
                "token_verification_error", algorithm=parsed.descriptor.name, error=str(e)
            )
            raise AuthenticationError(f"Token verification failed: {e}") from e

        if not valid:
            logger.info(
                "token_rejected",
                algorithm=parsed.descriptor.name,
                check_expiry=check_expiry,
            )
        return valid, parsed

    def _parse(self, token: str) -> ParsedToken:
        """Split and decode a compact token. Nothing here is trusted yet."""
        if isinstance(token, bytes):
            try:
                token = token.decode("ascii")
            except UnicodeDecodeError as e:
                raise InvalidToken("Token is not ASCII") from e
        if not isinstance(token, str) or not token:
            raise InvalidToken("Token must be a non-empty string")
        if not token.isascii():
            raise InvalidToken("Token is not ASCII")

        if len(token) > self.max_token_size:
            logger.warning("token_too_large", size=len(token), max_size=self.max_token_size)
            raise InvalidToken(
                f"Token size ({len(token)} bytes) exceeds maximum allowed ({self.max_token_size} bytes)"
            )

        segments = token.split(".")
        if len(segments) != 3:
            raise InvalidToken(f"Expected 3 token segments, got {len(segments)}")
        header_segment, payload_segment, signature_segment = segments

        header_bytes = decode_segment(header_segment)
        payload_bytes = decode_segment(payload_segment)
        signature = decode_segment(signature_segment)
        try:
            header = json.loads(header_bytes)
        except (ValueError, RecursionError) as e:
            raise InvalidToken(f"Token header is not valid JSON: {e}") from e

        if not isinstance(header, dict) or not isinstance(header.get("alg"), str):
            raise InvalidToken("Token header is missing alg")

        try:
            descriptor = resolve_algorithm(header["alg"])
        except UnsupportedAlgorithm as e:
            raise InvalidToken(f"Token uses unsupported algorithm {header['alg']!r}") from e
        if descriptor.key_shape is not self.key_shape:
            raise AuthenticationError(
                f"Token algorithm {descriptor.name} does not fit a {self.key_shape.value} key"
            )

        zip_name = header.get("zip")
        if zip_name is not None:
            if not isinstance(zip_name, str):
                raise InvalidToken("Token header zip must be a string")
            try:
                codec = self.compression_resolver.resolve(zip_name)
                payload_bytes = codec.decompress(payload_bytes)
            except CompressionError as e:
                raise InvalidToken(str(e)) from e

        try:
            claims = Claims.from_payload(json.loads(payload_bytes))
        except (ValueError, RecursionError) as e:
            raise InvalidToken(f"Token payload is not a valid claim set: {e}") from e

        return ParsedToken(
            descriptor=descriptor,
            header=header,
            signing_input=f"{header_segment}.{payload_segment}".encode("ascii"),
            signature=signature,
            claims=claims,
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(algorithm={self.algorithm!r}, "
            f"compression={self.compression!r}, "
            f"allowed_clock_skew_seconds={self.allowed_clock_skew_seconds!r})"
        )


class SharedSecretTokenRepository(TokenRepository):
    """HMAC-signed tokens with a shared secret."""

    key_shape = KeyShape.SHARED
    default_algorithm = "HS256"
    settings_algorithm_field = "shared_algorithm"

    def _coerce_key(self, key: Any) -> KeyMaterial:
        if isinstance(key, (str, bytes)):
            key = SharedKey(key)
        return super()._coerce_key(key)

    def _signing_key(self, key: SharedKey) -> bytes:
        return key.secret

    def _verification_key(self, key: SharedKey) -> bytes:
        return key.secret


class KeyPairTokenRepository(TokenRepository):
    """Tokens signed with a private key and verified with the public key."""

    key_shape = KeyShape.ASYMMETRIC
    default_algorithm = "RS256"
    settings_algorithm_field = "keypair_algorithm"

    def _signing_key(self, key: KeyPair) -> Any:
        if not key.can_sign:
            raise IssuanceError("Key pair has no private key; cannot sign")
        return key.private_key

    def _verification_key(self, key: KeyPair) -> Any:
        return key.public_key


__all__ = [
    "MAX_TOKEN_SIZE_BYTES",
    "KeyPairTokenRepository",
    "ParsedToken",
    "SharedSecretTokenRepository",
    "TokenRepository",
    "decode_segment",
]
