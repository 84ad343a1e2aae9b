"""
tokenkit - Test Fixtures

Shared pytest fixtures for all test modules.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta

import pytest
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from tokenkit.models import KeyPair, SharedKey

# =============================================================================
# TEST ENVIRONMENT SETUP
# =============================================================================
# Keep developer TOKENKIT_* variables from leaking into settings tests

for _name in list(os.environ):
    if _name.startswith("TOKENKIT_"):
        del os.environ[_name]


# TEST ONLY - not a real secret
TEST_SECRET = b"s3cr3t-256bit-key-for-tokenkit-tests-only!"
TEST_ENCRYPTION_KEY = bytes(range(16))  # 128-bit AES key, TEST ONLY


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2024, 6, 1, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    """Clock frozen at 2024-06-01T12:00:00Z; call advance() to move it."""
    return FakeClock()


# =============================================================================
# Keys
# =============================================================================


@pytest.fixture
def shared_key() -> SharedKey:
    return SharedKey(TEST_SECRET, key_id="hmac-1")


@pytest.fixture
def encryption_key() -> bytes:
    return TEST_ENCRYPTION_KEY


@pytest.fixture(scope="session")
def rsa_key_pair() -> KeyPair:
    return KeyPair.from_private_key(
        rsa.generate_private_key(public_exponent=65537, key_size=2048), key_id="rsa-1"
    )


@pytest.fixture(scope="session")
def ec_key_pairs() -> dict[str, KeyPair]:
    """ECDSA key pair per ES* algorithm."""
    curves = {"ES256": ec.SECP256R1(), "ES384": ec.SECP384R1(), "ES512": ec.SECP521R1()}
    return {
        name: KeyPair.from_private_key(ec.generate_private_key(curve), key_id=name.lower())
        for name, curve in curves.items()
    }


@pytest.fixture(scope="session")
def ed25519_key_pair() -> KeyPair:
    return KeyPair.from_private_key(Ed25519PrivateKey.generate(), key_id="ed-1")


@pytest.fixture(scope="session")
def key_for_algorithm(rsa_key_pair, ec_key_pairs, ed25519_key_pair):
    """Return a matching key for any registry algorithm."""

    def _key(algorithm: str):
        if algorithm.startswith("HS"):
            return SharedKey(TEST_SECRET)
        if algorithm.startswith(("RS", "PS")):
            return rsa_key_pair
        if algorithm.startswith("ES"):
            return ec_key_pairs[algorithm]
        return ed25519_key_pair

    return _key
