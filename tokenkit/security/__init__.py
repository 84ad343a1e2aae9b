"""
tokenkit Security Module

Issues, signs, encrypts and verifies compact tokens.
"""

from .algorithms import (
    ALGORITHMS,
    SUPPORTED_ALGORITHMS,
    AlgorithmDescriptor,
    AlgorithmFamily,
    algorithms_for_shape,
    require_key_shape,
    resolve_algorithm,
)
from .claims_builder import build_claims
from .compression import (
    DEFAULT_RESOLVER,
    DEFLATE,
    GZIP,
    CompressionCodec,
    CompressionCodecResolver,
    CompressionError,
)
from .errors import (
    AuthenticationError,
    InvalidToken,
    IssuanceError,
    KeyLengthError,
    TokenError,
    UnsupportedAlgorithm,
)
from .nested import NestedTokenRepository
from .realm import (
    Account,
    AuthenticationInfo,
    BoundNestedTokenRepository,
    BoundTokenRepository,
    StatelessToken,
    TokenPrincipalRepository,
    TokenRealm,
)
from .repository import (
    KeyPairTokenRepository,
    SharedSecretTokenRepository,
    TokenRepository,
)
from .token_utils import (
    can_token_be_refreshed,
    get_expiration,
    get_subject,
    is_created_before_last_password_reset,
    is_token_expired,
    refresh_token,
)
from .verifier import (
    ExpiryCheckedVerifier,
    RawSignatureVerifier,
    SignatureVerifier,
    within_window,
)

__all__ = [
    # Algorithms
    "ALGORITHMS",
    "SUPPORTED_ALGORITHMS",
    "AlgorithmDescriptor",
    "AlgorithmFamily",
    "algorithms_for_shape",
    "require_key_shape",
    "resolve_algorithm",
    # Claims
    "build_claims",
    # Compression
    "DEFAULT_RESOLVER",
    "DEFLATE",
    "GZIP",
    "CompressionCodec",
    "CompressionCodecResolver",
    "CompressionError",
    # Errors
    "AuthenticationError",
    "InvalidToken",
    "IssuanceError",
    "KeyLengthError",
    "TokenError",
    "UnsupportedAlgorithm",
    # Repositories
    "KeyPairTokenRepository",
    "NestedTokenRepository",
    "SharedSecretTokenRepository",
    "TokenRepository",
    # Verifiers
    "ExpiryCheckedVerifier",
    "RawSignatureVerifier",
    "SignatureVerifier",
    "within_window",
    # Realm
    "Account",
    "AuthenticationInfo",
    "BoundNestedTokenRepository",
    "BoundTokenRepository",
    "StatelessToken",
    "TokenPrincipalRepository",
    "TokenRealm",
    # Utilities
    "can_token_be_refreshed",
    "get_expiration",
    "get_subject",
    "is_created_before_last_password_reset",
    "is_token_expired",
    "refresh_token",
]
