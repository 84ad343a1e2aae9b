"""
Nested Token Repository Tests

Tests for sign-then-encrypt tokens including:
- EdDSA + dir/A128GCM round trip
- Decrypt-before-verify ordering
- Inner signature enforcement
- Key length and envelope checks
"""

import json
from unittest.mock import patch

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from jwt.utils import base64url_decode, base64url_encode

from tokenkit.config import Settings
from tokenkit.models.keys import KeyPair, SharedKey
from tokenkit.security.claims_builder import build_claims
from tokenkit.security.errors import (
    AuthenticationError,
    InvalidToken,
    IssuanceError,
    KeyLengthError,
    UnsupportedAlgorithm,
)
from tokenkit.security.nested import NestedTokenRepository
from tokenkit.security.repository import KeyPairTokenRepository


def flip_char(segment: str) -> str:
    index = len(segment) // 2
    replacement = "A" if segment[index] != "A" else "B"
    return segment[:index] + replacement + segment[index + 1 :]


def replace_segment(token: str, index: int, value: str) -> str:
    parts = token.split(".")
    parts[index] = value
    return ".".join(parts)


@pytest.fixture
def nested(clock):
    return NestedTokenRepository(clock=clock)


@pytest.fixture
def claims(clock):
    return build_claims("tok-1", "alice", roles="user", period_seconds=60, clock=clock)


# =============================================================================
# Round trip
# =============================================================================


class TestNestedRoundTrip:
    """Tests for issue / verify / get_claims."""

    def test_eddsa_a128gcm_scenario(self, clock, nested, ed25519_key_pair, encryption_key, claims):
        token = nested.issue(ed25519_key_pair, encryption_key, claims)
        verify_key = ed25519_key_pair.public_only()

        assert nested.verify(verify_key, encryption_key, token, True)
        clock.advance(61)
        assert nested.verify(verify_key, encryption_key, token, True) is False

    def test_five_segment_envelope(self, nested, ed25519_key_pair, encryption_key, claims):
        token = nested.issue(ed25519_key_pair, encryption_key, claims)
        header = json.loads(base64url_decode(token.split(".")[0]))

        assert token.count(".") == 4
        assert header == {"alg": "dir", "enc": "A128GCM", "cty": "JWT"}

    def test_get_claims(self, nested, ed25519_key_pair, encryption_key, claims):
        token = nested.issue(ed25519_key_pair, encryption_key, claims)
        assert nested.get_claims(ed25519_key_pair, encryption_key, token) == claims

    def test_decrypt_returns_inner_signed_token(self, nested, ed25519_key_pair, encryption_key, claims):
        token = nested.issue(ed25519_key_pair, encryption_key, claims)
        inner = nested.decrypt(encryption_key, token)

        assert inner.count(".") == 2
        assert nested.signing_repository.verify(ed25519_key_pair, inner)

    def test_shared_key_wrapper_for_encryption_key(self, nested, ed25519_key_pair, claims):
        key = SharedKey(bytes(range(16)))
        token = nested.issue(ed25519_key_pair, key, claims)

        assert nested.verify(ed25519_key_pair, key, token)

    @pytest.mark.parametrize("method,length", [("A192GCM", 24), ("A256GCM", 32)])
    def test_other_encryption_methods(self, clock, ed25519_key_pair, claims, method, length):
        nested = NestedTokenRepository(encryption_method=method, clock=clock)
        key = bytes(length)

        assert nested.key_length == length
        assert nested.verify(ed25519_key_pair, key, nested.issue(ed25519_key_pair, key, claims))

    def test_custom_signing_repository(self, clock, rsa_key_pair, encryption_key, claims):
        nested = NestedTokenRepository(KeyPairTokenRepository("PS256", clock=clock))
        token = nested.issue(rsa_key_pair, encryption_key, claims)

        assert nested.verify(rsa_key_pair, encryption_key, token)

    def test_verify_without_expiry(self, clock, nested, ed25519_key_pair, encryption_key, claims):
        token = nested.issue(ed25519_key_pair, encryption_key, claims)
        clock.advance(3600)

        assert nested.verify(ed25519_key_pair, encryption_key, token, check_expiry=False)

    def test_skew_applies_to_inner_window(self, clock, ed25519_key_pair, encryption_key, claims):
        nested = NestedTokenRepository(allowed_clock_skew_seconds=10, clock=clock)
        token = nested.issue(ed25519_key_pair, encryption_key, claims)
        clock.advance(65)

        assert nested.verify(ed25519_key_pair, encryption_key, token)
        assert nested.verify(ed25519_key_pair, encryption_key, token, clock_skew_seconds=0) is False

    def test_from_settings(self, clock):
        settings = Settings(nested_signing_algorithm="ES256", nested_encryption_method="A256GCM")
        nested = NestedTokenRepository.from_settings(settings, clock=clock)

        assert nested.signing_repository.algorithm == "ES256"
        assert nested.encryption_method == "A256GCM"


# =============================================================================
# Ordering and inner signature
# =============================================================================


class TestNestedVerification:
    """Decryption happens first; the inner signature is always checked."""

    def test_corrupt_ciphertext_never_reaches_signature_check(
        self, nested, ed25519_key_pair, encryption_key, claims
    ):
        token = nested.issue(ed25519_key_pair, encryption_key, claims)
        corrupted = replace_segment(token, 3, flip_char(token.split(".")[3]))

        with patch.object(nested.signing_repository, "verify") as inner_verify:
            with pytest.raises(AuthenticationError):
                nested.verify(ed25519_key_pair, encryption_key, corrupted)
            inner_verify.assert_not_called()

    def test_corrupt_tag(self, nested, ed25519_key_pair, encryption_key, claims):
        token = nested.issue(ed25519_key_pair, encryption_key, claims)
        corrupted = replace_segment(token, 4, flip_char(token.split(".")[4]))

        with pytest.raises(AuthenticationError):
            nested.get_claims(ed25519_key_pair, encryption_key, corrupted)

    def test_wrong_encryption_key(self, nested, ed25519_key_pair, encryption_key, claims):
        token = nested.issue(ed25519_key_pair, encryption_key, claims)

        with pytest.raises(AuthenticationError):
            nested.verify(ed25519_key_pair, bytes(16), token)

    def test_tampered_inner_signature_is_rejected(
        self, nested, ed25519_key_pair, encryption_key, claims
    ):
        inner = nested.signing_repository.issue(ed25519_key_pair, claims)
        header, payload, signature = inner.split(".")
        token = nested.encrypt(encryption_key, f"{header}.{payload}.{flip_char(signature)}")

        assert nested.verify(ed25519_key_pair, encryption_key, token) is False
        with pytest.raises(AuthenticationError):
            nested.get_claims(ed25519_key_pair, encryption_key, token)

    def test_inner_token_from_other_signer_is_rejected(
        self, nested, ed25519_key_pair, encryption_key, claims
    ):
        impostor = KeyPair.from_private_key(Ed25519PrivateKey.generate())
        token = nested.issue(impostor, encryption_key, claims)

        assert nested.verify(ed25519_key_pair, encryption_key, token) is False

    def test_encrypted_payload_must_be_signed_token(self, nested, encryption_key):
        token = nested.encrypt(encryption_key, "just some text")

        with pytest.raises(InvalidToken):
            nested.decrypt(encryption_key, token)


# =============================================================================
# Key length and envelope
# =============================================================================


class TestNestedErrors:
    """Tests for configuration and envelope errors."""

    @pytest.mark.parametrize("length", [0, 15, 17, 32])
    def test_wrong_key_length_on_issue(self, nested, ed25519_key_pair, claims, length):
        with pytest.raises(KeyLengthError):
            nested.issue(ed25519_key_pair, bytes(length), claims)

    def test_key_length_error_is_issuance_error(self, nested, ed25519_key_pair, claims):
        with pytest.raises(IssuanceError):
            nested.issue(ed25519_key_pair, bytes(8), claims)

    def test_key_length_checked_before_signing(self, nested, ed25519_key_pair, claims):
        with patch.object(nested.signing_repository, "issue") as inner_issue:
            with pytest.raises(KeyLengthError):
                nested.issue(ed25519_key_pair, bytes(8), claims)
            inner_issue.assert_not_called()

    def test_shared_signing_key_rejected(self, nested, shared_key, encryption_key, claims):
        with pytest.raises(UnsupportedAlgorithm):
            nested.issue(shared_key, encryption_key, claims)

    def test_unsupported_encryption_method(self):
        with pytest.raises(UnsupportedAlgorithm):
            NestedTokenRepository(encryption_method="A128CBC-HS256")

    def test_hmac_signing_algorithm_rejected(self):
        with pytest.raises(UnsupportedAlgorithm):
            NestedTokenRepository(signing_algorithm="HS256")

    def test_invalid_encryption_key_type(self, nested, ed25519_key_pair, claims):
        with pytest.raises(UnsupportedAlgorithm):
            nested.issue(ed25519_key_pair, "0123456789abcdef", claims)

    @pytest.mark.parametrize("token", ["", "a.b.c", "a.b.c.d.e.f", "!!!.b.c.d.e"])
    def test_malformed_envelope(self, nested, ed25519_key_pair, encryption_key, token):
        with pytest.raises(InvalidToken):
            nested.verify(ed25519_key_pair, encryption_key, token)

    def test_deeply_nested_envelope_header(self, nested, ed25519_key_pair, encryption_key):
        depth = 10_000
        header = base64url_encode(b"[" * depth + b"]" * depth).decode()

        with pytest.raises(InvalidToken):
            nested.verify(ed25519_key_pair, encryption_key, f"{header}.e30.e30.e30.e30")

    @pytest.mark.parametrize("index", [0, 1, 2, 3, 4])
    @pytest.mark.parametrize("junk", ["\u00e9", "!", "="])
    def test_junk_in_envelope_segment(
        self, nested, ed25519_key_pair, encryption_key, claims, index, junk
    ):
        token = nested.issue(ed25519_key_pair, encryption_key, claims)
        segment = token.split(".")[index]

        with pytest.raises(InvalidToken):
            nested.verify(
                ed25519_key_pair, encryption_key, replace_segment(token, index, segment + junk)
            )

    def test_signed_token_is_not_an_envelope(self, nested, ed25519_key_pair, encryption_key, claims):
        inner = nested.signing_repository.issue(ed25519_key_pair, claims)

        with pytest.raises(InvalidToken):
            nested.verify(ed25519_key_pair, encryption_key, inner)

    def test_envelope_with_other_method_rejected(
        self, nested, ed25519_key_pair, encryption_key, claims
    ):
        token = nested.issue(ed25519_key_pair, encryption_key, claims)
        header = base64url_encode(
            json.dumps({"alg": "dir", "enc": "A256GCM", "cty": "JWT"}).encode()
        ).decode()

        with pytest.raises(InvalidToken):
            nested.verify(ed25519_key_pair, encryption_key, replace_segment(token, 0, header))

    def test_envelope_with_key_wrapping_rejected(
        self, nested, ed25519_key_pair, encryption_key, claims
    ):
        token = nested.issue(ed25519_key_pair, encryption_key, claims)
        header = base64url_encode(
            json.dumps({"alg": "A128KW", "enc": "A128GCM"}).encode()
        ).decode()

        with pytest.raises(InvalidToken):
            nested.verify(ed25519_key_pair, encryption_key, replace_segment(token, 0, header))
