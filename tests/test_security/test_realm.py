"""
Token Realm Tests
"""

import json
from unittest.mock import MagicMock

import pytest
from jwt.utils import base64url_encode

from tokenkit.security.claims_builder import build_claims
from tokenkit.security.errors import AuthenticationError
from tokenkit.security.nested import NestedTokenRepository
from tokenkit.security.realm import (
    AuthenticationInfo,
    BoundNestedTokenRepository,
    BoundTokenRepository,
    StatelessToken,
    TokenPrincipalRepository,
    TokenRealm,
)
from tokenkit.security.repository import SharedSecretTokenRepository


@pytest.fixture
def repo(clock):
    return SharedSecretTokenRepository(clock=clock)


@pytest.fixture
def bound(repo, shared_key):
    return BoundTokenRepository(repo, shared_key)


@pytest.fixture
def token(clock, repo, shared_key):
    return repo.issue(shared_key, build_claims("tok-1", "alice", period_seconds=60, clock=clock))


def lookup_alice(token: StatelessToken) -> AuthenticationInfo:
    return AuthenticationInfo(principal="alice", credentials=token.token)


# =============================================================================
# Realm
# =============================================================================


class TestTokenRealm:
    """Tests for TokenRealm.authenticate."""

    def test_valid_token_and_account(self, bound, token):
        realm = TokenRealm(bound, lookup_alice, name="api")
        account = realm.authenticate(StatelessToken(token))

        assert account is not None
        assert account.principal == "alice"
        assert account.credentials == token
        assert account.realm_name == "api"

    def test_no_account(self, bound, token):
        realm = TokenRealm(bound, lambda t: None)
        assert realm.authenticate(StatelessToken(token)) is None

    def test_repository_not_consulted_without_account(self, token):
        principals = MagicMock(spec=TokenPrincipalRepository)
        realm = TokenRealm(principals, lambda t: None)

        assert realm.authenticate(StatelessToken(token)) is None
        principals.validate_token.assert_not_called()

    def test_expired_token(self, clock, bound, token):
        realm = TokenRealm(bound, lookup_alice)
        clock.advance(61)

        assert realm.authenticate(StatelessToken(token)) is None

    def test_forged_token(self, bound, token):
        realm = TokenRealm(bound, lookup_alice)
        header, payload, signature = token.split(".")
        forged = f"{header}.{payload}.{signature[::-1]}"

        assert realm.authenticate(StatelessToken(forged)) is None

    def test_malformed_token(self, bound):
        realm = TokenRealm(bound, lookup_alice)
        assert realm.authenticate(StatelessToken("not-a-token")) is None

    @pytest.mark.parametrize(
        "header, payload",
        [
            ({"alg": "HS256"}, {"sub": "alice", "iat": 1717243200, "exp": 1e30}),
            ({"alg": "HS256", "zip": ["DEF"]}, {"sub": "alice", "iat": 1717243200}),
        ],
    )
    def test_hostile_token_is_rejected(self, bound, header, payload):
        realm = TokenRealm(bound, lookup_alice)
        token = ".".join(
            base64url_encode(json.dumps(part).encode()).decode() for part in (header, payload)
        )

        assert realm.authenticate(StatelessToken(f"{token}.c2ln")) is None
        assert realm.authenticate(StatelessToken(f"{token}.c2ln!")) is None

    def test_only_stateless_tokens_supported(self, bound):
        realm = TokenRealm(bound, lookup_alice)

        assert realm.supports(StatelessToken("x"))
        assert not realm.supports("x")
        assert realm.authenticate("x") is None  # type: ignore[arg-type]

    def test_get_claims(self, bound, token):
        realm = TokenRealm(bound, lookup_alice)
        assert realm.get_claims(StatelessToken(token)).subject == "alice"

    def test_get_claims_invalid(self, bound):
        realm = TokenRealm(bound, lookup_alice)
        with pytest.raises(AuthenticationError):
            realm.get_claims(StatelessToken("not-a-token"))

    def test_token_repr_hides_token(self, token):
        assert token not in repr(StatelessToken(token, host="10.0.0.1"))


# =============================================================================
# Bound repositories
# =============================================================================


class TestBoundRepositories:
    """Repositories bound to their keys satisfy the realm protocol."""

    def test_bound_repository_is_principal_repository(self, bound):
        assert isinstance(bound, TokenPrincipalRepository)

    def test_bound_nested_repository(self, clock, ed25519_key_pair, encryption_key):
        nested = NestedTokenRepository(clock=clock)
        token = nested.issue(
            ed25519_key_pair,
            encryption_key,
            build_claims(None, "bob", period_seconds=60, clock=clock),
        )
        bound = BoundNestedTokenRepository(nested, ed25519_key_pair.public_only(), encryption_key)
        realm = TokenRealm(bound, lambda t: AuthenticationInfo("bob", t.token))

        assert isinstance(bound, TokenPrincipalRepository)
        assert realm.authenticate(StatelessToken(token)).principal == "bob"
        assert bound.get_claims(token).subject == "bob"

        clock.advance(61)
        assert realm.authenticate(StatelessToken(token)) is None

    def test_bound_nested_repository_wrong_encryption_key(
        self, clock, ed25519_key_pair, encryption_key
    ):
        nested = NestedTokenRepository(clock=clock)
        token = nested.issue(
            ed25519_key_pair, encryption_key, build_claims(None, "bob", clock=clock)
        )
        bound = BoundNestedTokenRepository(nested, ed25519_key_pair, bytes(16))

        assert TokenRealm(bound, lambda t: AuthenticationInfo("bob", t.token)).authenticate(
            StatelessToken(token)
        ) is None
