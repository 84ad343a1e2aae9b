"""
Algorithm Registry

Maps canonical JWS algorithm names to a signing strategy (the PyJWT
algorithm of the same name) and the key shape the algorithm requires.
The table is built once at import and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from jwt.algorithms import Algorithm, get_default_algorithms

from ..models.keys import KeyShape
from .errors import UnsupportedAlgorithm


class AlgorithmFamily(str, Enum):
    HMAC = "HMAC"
    RSA = "RSA"
    ECDSA = "ECDSA"
    EDDSA = "EdDSA"


@dataclass(frozen=True)
class AlgorithmDescriptor:
    """Canonical algorithm name, family and required key shape."""

    name: str
    family: AlgorithmFamily
    key_shape: KeyShape
    description: str
    strategy: Algorithm

    def prepare_key(self, key: Any) -> Any:
        return self.strategy.prepare_key(key)

    def sign(self, signing_input: bytes, prepared_key: Any) -> bytes:
        return self.strategy.sign(signing_input, prepared_key)

    def verify(self, signing_input: bytes, prepared_key: Any, signature: bytes) -> bool:
        return bool(self.strategy.verify(signing_input, prepared_key, signature))


_TABLE: tuple[tuple[str, AlgorithmFamily, str], ...] = (
    ("HS256", AlgorithmFamily.HMAC, "HMAC using SHA-256"),
    ("HS384", AlgorithmFamily.HMAC, "HMAC using SHA-384"),
    ("HS512", AlgorithmFamily.HMAC, "HMAC using SHA-512"),
    ("RS256", AlgorithmFamily.RSA, "RSASSA-PKCS-v1_5 using SHA-256"),
    ("RS384", AlgorithmFamily.RSA, "RSASSA-PKCS-v1_5 using SHA-384"),
    ("RS512", AlgorithmFamily.RSA, "RSASSA-PKCS-v1_5 using SHA-512"),
    ("PS256", AlgorithmFamily.RSA, "RSASSA-PSS using SHA-256 and MGF1 with SHA-256"),
    ("PS384", AlgorithmFamily.RSA, "RSASSA-PSS using SHA-384 and MGF1 with SHA-384"),
    ("PS512", AlgorithmFamily.RSA, "RSASSA-PSS using SHA-512 and MGF1 with SHA-512"),
    ("ES256", AlgorithmFamily.ECDSA, "ECDSA using P-256 and SHA-256"),
    ("ES384", AlgorithmFamily.ECDSA, "ECDSA using P-384 and SHA-384"),
    ("ES512", AlgorithmFamily.ECDSA, "ECDSA using P-521 and SHA-512"),
    ("EdDSA", AlgorithmFamily.EDDSA, "Edwards-curve signatures (Ed25519 / Ed448)"),
)


def _build_registry() -> MappingProxyType[str, AlgorithmDescriptor]:
    strategies = get_default_algorithms()
    registry: dict[str, AlgorithmDescriptor] = {}
    for name, family, description in _TABLE:
        registry[name] = AlgorithmDescriptor(
            name=name,
            family=family,
            key_shape=KeyShape.SHARED if family is AlgorithmFamily.HMAC else KeyShape.ASYMMETRIC,
            description=description,
            strategy=strategies[name],
        )
    return MappingProxyType(registry)


ALGORITHMS = _build_registry()

SUPPORTED_ALGORITHMS: tuple[str, ...] = tuple(ALGORITHMS)


def resolve_algorithm(name: str) -> AlgorithmDescriptor:
    """
    Look up an algorithm by its canonical (case-sensitive) name.

    Raises:
        UnsupportedAlgorithm: If the name is not in the registry
    """
    try:
        return ALGORITHMS[name]
    except (KeyError, TypeError):
        raise UnsupportedAlgorithm(f"Unsupported algorithm: {name!r}", algorithm=str(name)) from None


def algorithms_for_shape(shape: KeyShape) -> tuple[str, ...]:
    """Names of every algorithm that accepts the given key shape."""
    return tuple(name for name, desc in ALGORITHMS.items() if desc.key_shape is shape)


def require_key_shape(descriptor: AlgorithmDescriptor, shape: KeyShape) -> None:
    """
    Fail before any crypto call if the key shape does not fit the algorithm.

    Raises:
        UnsupportedAlgorithm: On shape mismatch
    """
    if descriptor.key_shape is not shape:
        raise UnsupportedAlgorithm(
            f"Algorithm {descriptor.name} requires a {descriptor.key_shape.value} key, "
            f"got a {shape.value} key",
            algorithm=descriptor.name,
        )


__all__ = [
    "ALGORITHMS",
    "SUPPORTED_ALGORITHMS",
    "AlgorithmDescriptor",
    "AlgorithmFamily",
    "algorithms_for_shape",
    "require_key_shape",
    "resolve_algorithm",
]
