"""
Token Error Taxonomy

Every exception raised by the PyJWT, jwcrypto, cryptography and pydantic
layers is re-raised at the repository boundary as one of these types.

    TokenError
    ├── UnsupportedAlgorithm      configuration: unknown algorithm / key shape
    ├── IssuanceError             signing or encryption failed
    │   └── KeyLengthError        key too short/long for the declared algorithm
    └── AuthenticationError       signature, decryption or validity failure
        └── InvalidToken          structurally malformed input
"""


class TokenError(Exception):
    """Base exception for token-related errors."""

    pass


class UnsupportedAlgorithm(TokenError):
    """Algorithm is not in the registry or does not fit the supplied key."""

    def __init__(self, message: str, algorithm: str | None = None):
        super().__init__(message)
        self.algorithm = algorithm


class IssuanceError(TokenError):
    """Token could not be signed, serialized or encrypted."""

    pass


class KeyLengthError(IssuanceError):
    """Key length does not match the declared algorithm."""

    pass


class AuthenticationError(TokenError):
    """Token failed cryptographic verification, decryption or claim checks."""

    pass


class InvalidToken(AuthenticationError):
    """Token is malformed (segments, base64url, JSON or claim types)."""

    pass


__all__ = [
    "TokenError",
    "UnsupportedAlgorithm",
    "IssuanceError",
    "KeyLengthError",
    "AuthenticationError",
    "InvalidToken",
]
