"""
tokenkit Models

Value objects shared by the token repositories.
"""

from .claims import REGISTERED_CLAIMS, Claims, TokenModel
from .keys import KeyMaterial, KeyPair, KeyShape, SharedKey

__all__ = [
    "Claims",
    "TokenModel",
    "REGISTERED_CLAIMS",
    "KeyShape",
    "SharedKey",
    "KeyPair",
    "KeyMaterial",
]
