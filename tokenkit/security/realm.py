"""
Token Realm Bridge

Connects the token repositories to an authentication framework. The realm
asks a delegate for the account behind a token and only accepts it if the
token itself validates. It never looks accounts up on its own.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import structlog

from ..models.claims import Claims
from ..models.keys import SharedKey
from .errors import AuthenticationError
from .nested import NestedTokenRepository
from .repository import TokenRepository

logger = structlog.get_logger(__name__)


@runtime_checkable
class TokenPrincipalRepository(Protocol):
    """What the realm needs from a repository bound to its keys."""

    def validate_token(self, token: str) -> bool: ...

    def get_claims(self, token: str) -> Claims: ...


class BoundTokenRepository:
    """Single-layer repository bound to one key; validation checks expiry."""

    def __init__(self, repository: TokenRepository, key: Any):
        self.repository = repository
        self._key = key

    def validate_token(self, token: str) -> bool:
        return self.repository.verify(self._key, token, check_expiry=True)

    def get_claims(self, token: str) -> Claims:
        return self.repository.get_claims(self._key, token)

    def __repr__(self) -> str:
        return f"BoundTokenRepository(repository={self.repository!r})"


class BoundNestedTokenRepository:
    """Nested repository bound to its signing and encryption keys."""

    def __init__(
        self,
        repository: NestedTokenRepository,
        signing_key: Any,
        encryption_key: SharedKey | bytes,
    ):
        self.repository = repository
        self._signing_key = signing_key
        self._encryption_key = encryption_key

    def validate_token(self, token: str) -> bool:
        return self.repository.verify(
            self._signing_key, self._encryption_key, token, check_expiry=True
        )

    def get_claims(self, token: str) -> Claims:
        return self.repository.get_claims(self._signing_key, self._encryption_key, token)

    def __repr__(self) -> str:
        return f"BoundNestedTokenRepository(repository={self.repository!r})"


@dataclass(frozen=True)
class StatelessToken:
    """Credential presented by a client: the compact token itself."""

    token: str
    host: str | None = None

    def __repr__(self) -> str:
        return f"StatelessToken(host={self.host!r})"


@dataclass(frozen=True)
class AuthenticationInfo:
    """What the delegate credential lookup returns for a token."""

    principal: Any
    credentials: Any
    credentials_salt: bytes | None = None


@dataclass(frozen=True)
class Account:
    """Authenticated account produced by the realm."""

    principal: Any
    credentials: Any = field(repr=False)
    credentials_salt: bytes | None = field(default=None, repr=False)
    realm_name: str = "token"


CredentialLookup = Callable[[StatelessToken], AuthenticationInfo | None]


class TokenRealm:
    """
    Authenticates StatelessTokens.

    An account is produced only if the delegate lookup returns info AND
    the token validates. Token errors are reported as a failed attempt
    (None) without saying which check failed.
    """

    def __init__(
        self,
        principal_repository: TokenPrincipalRepository,
        credential_lookup: CredentialLookup,
        name: str = "token",
    ):
        self.principal_repository = principal_repository
        self.credential_lookup = credential_lookup
        self.name = name

    def supports(self, token: object) -> bool:
        return isinstance(token, StatelessToken)

    def authenticate(self, token: StatelessToken) -> Account | None:
        """
        Returns:
            Account if the lookup succeeds and the token validates, else None
        """
        if not self.supports(token):
            return None

        info = self.credential_lookup(token)
        if info is None:
            logger.info("token_authentication_failed", realm=self.name, reason="no_account")
            return None

        try:
            valid = self.principal_repository.validate_token(token.token)
        except AuthenticationError:
            valid = False

        if not valid:
            logger.info("token_authentication_failed", realm=self.name, reason="invalid_token")
            return None

        logger.debug("token_authenticated", realm=self.name)
        return Account(
            principal=info.principal,
            credentials=info.credentials,
            credentials_salt=info.credentials_salt,
            realm_name=self.name,
        )

    def get_claims(self, token: StatelessToken) -> Claims:
        """
        Claims of a presented token.

        Raises:
            AuthenticationError: The token does not verify
        """
        return self.principal_repository.get_claims(token.token)


__all__ = [
    "Account",
    "AuthenticationInfo",
    "BoundNestedTokenRepository",
    "BoundTokenRepository",
    "CredentialLookup",
    "StatelessToken",
    "TokenPrincipalRepository",
    "TokenRealm",
]
