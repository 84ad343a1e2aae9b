"""
Key Material

Keys are opaque to the token layer apart from their shape: a shared secret
for HMAC, or an asymmetric public/private pair for RSA, ECDSA and EdDSA.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from enum import Enum
from typing import Any

from cryptography.hazmat.primitives import serialization


class KeyShape(str, Enum):
    """Shape of key an algorithm requires."""

    SHARED = "shared"
    ASYMMETRIC = "asymmetric"


@dataclass(frozen=True, repr=False)
class SharedKey:
    """Symmetric secret used for HMAC signing and verification."""

    secret: bytes
    key_id: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.secret, str):
            object.__setattr__(self, "secret", self.secret.encode("utf-8"))
        if not self.secret:
            raise ValueError("Shared secret must not be empty")

    @property
    def shape(self) -> KeyShape:
        return KeyShape.SHARED

    @classmethod
    def from_base64(cls, value: str, key_id: str | None = None) -> SharedKey:
        """Build a shared key from a standard or url-safe base64 secret."""
        padded = value + "=" * (-len(value) % 4)
        try:
            if "-" in value or "_" in value:
                secret = base64.urlsafe_b64decode(padded)
            else:
                secret = base64.b64decode(padded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid base64 secret: {e}") from e
        return cls(secret=secret, key_id=key_id)

    def __repr__(self) -> str:
        return f"SharedKey(key_id={self.key_id!r}, length={len(self.secret)})"


@dataclass(frozen=True, repr=False)
class KeyPair:
    """
    Asymmetric key pair.

    ``private_key`` may be omitted for verify-only use. Keys are
    ``cryptography`` key objects or PEM bytes; both are accepted by the
    signing layer.
    """

    public_key: Any
    private_key: Any | None = None
    key_id: str | None = None

    @property
    def shape(self) -> KeyShape:
        return KeyShape.ASYMMETRIC

    @property
    def can_sign(self) -> bool:
        return self.private_key is not None

    def public_only(self) -> KeyPair:
        """Return a copy without the private half."""
        return KeyPair(public_key=self.public_key, key_id=self.key_id)

    @classmethod
    def from_private_key(cls, private_key: Any, key_id: str | None = None) -> KeyPair:
        """Derive the pair from a private key object."""
        return cls(public_key=private_key.public_key(), private_key=private_key, key_id=key_id)

    @classmethod
    def from_pem(
        cls,
        public_pem: bytes | str,
        private_pem: bytes | str | None = None,
        password: bytes | None = None,
        key_id: str | None = None,
    ) -> KeyPair:
        """
        Load a key pair from PEM-encoded keys.

        Args:
            public_pem: SubjectPublicKeyInfo PEM
            private_pem: PKCS#8 / traditional PEM (optional)
            password: Passphrase for an encrypted private key

        Returns:
            KeyPair holding ``cryptography`` key objects
        """
        if isinstance(public_pem, str):
            public_pem = public_pem.encode("utf-8")
        public_key = serialization.load_pem_public_key(public_pem)

        private_key = None
        if private_pem is not None:
            if isinstance(private_pem, str):
                private_pem = private_pem.encode("utf-8")
            private_key = serialization.load_pem_private_key(private_pem, password=password)

        return cls(public_key=public_key, private_key=private_key, key_id=key_id)

    def __repr__(self) -> str:
        return (
            f"KeyPair(key_id={self.key_id!r}, public={type(self.public_key).__name__}, "
            f"can_sign={self.can_sign})"
        )


KeyMaterial = SharedKey | KeyPair


__all__ = ["KeyShape", "SharedKey", "KeyPair", "KeyMaterial"]
