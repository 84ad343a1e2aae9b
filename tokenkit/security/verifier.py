"""
Signature Verifiers

A raw verifier only asserts cryptographic validity. ExpiryCheckedVerifier
wraps any verifier and additionally requires the claim set's time window,
so every algorithm family gets the same time-based trust decision.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Protocol

import structlog

from ..models.claims import Claims
from .algorithms import AlgorithmDescriptor

logger = structlog.get_logger(__name__)


class SignatureVerifier(Protocol):
    def verify(self, header: dict[str, Any], signing_input: bytes, signature: bytes) -> bool: ...


def within_window(claims: Claims, now: datetime, skew_seconds: int = 0) -> bool:
    """
    Check ``not_before - skew <= now < expiration + skew``.

    An absent bound is unconstrained.
    """
    skew = timedelta(seconds=max(skew_seconds, 0))
    if claims.not_before is not None and now < claims.not_before - skew:
        return False
    if claims.expiration is not None and now >= claims.expiration + skew:
        return False
    return True


class RawSignatureVerifier:
    """Verifies a JWS signature with the registry algorithm's PyJWT strategy."""

    def __init__(self, descriptor: AlgorithmDescriptor, key: Any):
        self.descriptor = descriptor
        self._prepared_key = descriptor.prepare_key(key)

    def verify(self, header: dict[str, Any], signing_input: bytes, signature: bytes) -> bool:
        if header.get("alg") != self.descriptor.name:
            return False
        return self.descriptor.verify(signing_input, self._prepared_key, signature)

    def __repr__(self) -> str:
        return f"RawSignatureVerifier(algorithm={self.descriptor.name!r})"


class ExpiryCheckedVerifier:
    """
    Decorates a verifier with the claim set's validity window.

    ``verify`` returns ``delegate.verify(...) and within_window(...)``. The
    delegate always runs first so a bad signature is never masked by the
    window check.
    """

    def __init__(
        self,
        delegate: SignatureVerifier,
        claims: Claims,
        now: datetime,
        skew_seconds: int = 0,
    ):
        self.delegate = delegate
        self.claims = claims
        self.now = now
        self.skew_seconds = skew_seconds

    def verify(self, header: dict[str, Any], signing_input: bytes, signature: bytes) -> bool:
        if not self.delegate.verify(header, signing_input, signature):
            return False
        if not within_window(self.claims, self.now, self.skew_seconds):
            logger.info(
                "token_outside_validity_window",
                subject=self.claims.subject,
                not_before=self.claims.not_before.isoformat() if self.claims.not_before else None,
                expiration=self.claims.expiration.isoformat() if self.claims.expiration else None,
                skew_seconds=self.skew_seconds,
            )
            return False
        return True

    def check(self, header: dict[str, Any], signing_input: bytes, signature: bytes) -> bool:
        """Alias of :meth:`verify`."""
        return self.verify(header, signing_input, signature)

    def __repr__(self) -> str:
        return f"ExpiryCheckedVerifier(delegate={self.delegate!r}, skew_seconds={self.skew_seconds})"


__all__ = [
    "ExpiryCheckedVerifier",
    "RawSignatureVerifier",
    "SignatureVerifier",
    "within_window",
]
