"""
Payload Compression

Codecs applied to the JWS payload before signing. The codec name is written
into the ``zip`` header so the verifier can resolve the inverse.
"""

from __future__ import annotations

import gzip
import zlib
from collections.abc import Iterable
from typing import Protocol

# Upper bound on inflated payloads (decompression bombs)
MAX_DECOMPRESSED_BYTES = 1024 * 1024


class CompressionError(ValueError):
    """Payload could not be decompressed."""

    pass


class CompressionCodec(Protocol):
    name: str

    def compress(self, data: bytes) -> bytes: ...

    def decompress(self, data: bytes, max_size: int = MAX_DECOMPRESSED_BYTES) -> bytes: ...


def _inflate(data: bytes, wbits: int, max_size: int) -> bytes:
    inflater = zlib.decompressobj(wbits)
    try:
        result = inflater.decompress(data, max_size)
        if inflater.unconsumed_tail:
            raise CompressionError(f"Decompressed payload exceeds {max_size} bytes")
        result += inflater.flush()
    except zlib.error as e:
        raise CompressionError(f"Corrupt compressed payload: {e}") from e
    if len(result) > max_size:
        raise CompressionError(f"Decompressed payload exceeds {max_size} bytes")
    if not inflater.eof:
        raise CompressionError("Truncated compressed payload")
    return result


class DeflateCodec:
    """Raw DEFLATE (RFC 1951), header value ``DEF``."""

    name = "DEF"

    def __init__(self, level: int = 9):
        self.level = level

    def compress(self, data: bytes) -> bytes:
        deflater = zlib.compressobj(self.level, zlib.DEFLATED, -zlib.MAX_WBITS)
        return deflater.compress(data) + deflater.flush()

    def decompress(self, data: bytes, max_size: int = MAX_DECOMPRESSED_BYTES) -> bytes:
        return _inflate(data, -zlib.MAX_WBITS, max_size)

    def __repr__(self) -> str:
        return f"DeflateCodec(level={self.level})"


class GzipCodec:
    """GZIP framing, header value ``GZIP``."""

    name = "GZIP"

    def compress(self, data: bytes) -> bytes:
        return gzip.compress(data, mtime=0)

    def decompress(self, data: bytes, max_size: int = MAX_DECOMPRESSED_BYTES) -> bytes:
        return _inflate(data, 16 + zlib.MAX_WBITS, max_size)

    def __repr__(self) -> str:
        return "GzipCodec()"


DEFLATE = DeflateCodec()
GZIP = GzipCodec()


class CompressionCodecResolver:
    """Resolves a ``zip`` header value to a codec."""

    def __init__(self, codecs: Iterable[CompressionCodec] = (DEFLATE, GZIP)):
        self._codecs = {codec.name: codec for codec in codecs}

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._codecs)

    def resolve(self, name: str) -> CompressionCodec:
        """
        Raises:
            CompressionError: If no codec is registered under ``name``
        """
        codec = self._codecs.get(name)
        if codec is None:
            raise CompressionError(f"Unsupported compression algorithm: {name!r}")
        return codec


DEFAULT_RESOLVER = CompressionCodecResolver()


def codec_for_setting(value: str) -> CompressionCodec | None:
    """Map a settings value (none, deflate, gzip) to a codec."""
    normalized = value.strip().lower()
    if normalized == "none":
        return None
    if normalized == "deflate":
        return DEFLATE
    if normalized == "gzip":
        return GZIP
    raise ValueError(f"Unknown compression setting: {value!r}")


__all__ = [
    "CompressionCodec",
    "CompressionCodecResolver",
    "CompressionError",
    "DEFAULT_RESOLVER",
    "DEFLATE",
    "DeflateCodec",
    "GZIP",
    "GzipCodec",
    "MAX_DECOMPRESSED_BYTES",
    "codec_for_setting",
]
