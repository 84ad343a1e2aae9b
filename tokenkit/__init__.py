"""
tokenkit - Signed and Encrypted Identity Tokens

Issue, verify and extract claims from compact JWS tokens (HMAC, RSA,
ECDSA, EdDSA), optionally wrapped in a JWE envelope.
"""

__version__ = "1.0.0"

from tokenkit.models import Claims, KeyPair, KeyShape, SharedKey
from tokenkit.security import (
    AuthenticationError,
    InvalidToken,
    IssuanceError,
    KeyPairTokenRepository,
    NestedTokenRepository,
    SharedSecretTokenRepository,
    TokenError,
    UnsupportedAlgorithm,
    build_claims,
)

__all__ = [
    "__version__",
    "Claims",
    "KeyPair",
    "KeyShape",
    "SharedKey",
    "build_claims",
    "SharedSecretTokenRepository",
    "KeyPairTokenRepository",
    "NestedTokenRepository",
    "TokenError",
    "UnsupportedAlgorithm",
    "IssuanceError",
    "AuthenticationError",
    "InvalidToken",
]
