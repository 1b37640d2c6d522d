"""PlantUML text encoding.

Implements the URL-safe token format understood by PlantUML servers
(``<server>/<format>/<token>``):

1. UTF-8 encode the diagram source.
2. Compress with raw DEFLATE (zlib level 9 without the 2-byte zlib header
   and the 4-byte Adler-32 trailer).
3. Encode the compressed bytes with PlantUML's base64 variant, which uses
   the alphabet ``0-9A-Za-z-_`` and emits four characters for every
   three-byte group.  A short final group is zero-padded, so tokens are
   always a multiple of four characters long.

The tokens are byte-identical to those of the ``plantuml-encoder``
JavaScript package.

Usage::

    from plantuml_exporter.encoder import decode, encode

    token = encode("@startuml\\nAlice -> Bob: hi\\n@enduml")
    decode(token)  # round-trips back to the source
"""

from __future__ import annotations

import zlib

from plantuml_exporter.errors import EncodingError

ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz-_"
"""PlantUML's 64-character encoding alphabet (index = 6-bit value)."""

_ALPHABET_INDEX = {ch: i for i, ch in enumerate(ALPHABET)}

_COMPRESSION_LEVEL = 9
_RAW_DEFLATE_WBITS = -15
"""Negative window bits select a raw DEFLATE stream (no zlib wrapper)."""


def _deflate(data: bytes) -> bytes:
    compressor = zlib.compressobj(_COMPRESSION_LEVEL, zlib.DEFLATED, _RAW_DEFLATE_WBITS)
    return compressor.compress(data) + compressor.flush()


def _encode_group(b1: int, b2: int, b3: int) -> str:
    return (
        ALPHABET[b1 >> 2]
        + ALPHABET[((b1 & 0x3) << 4) | (b2 >> 4)]
        + ALPHABET[((b2 & 0xF) << 2) | (b3 >> 6)]
        + ALPHABET[b3 & 0x3F]
    )


def encode_bytes(data: bytes) -> str:
    """Encode raw bytes with the PlantUML base64 alphabet."""
    parts: list[str] = []
    for i in range(0, len(data), 3):
        group = data[i:i + 3].ljust(3, b"\x00")
        parts.append(_encode_group(group[0], group[1], group[2]))
    return "".join(parts)


def decode_bytes(token: str) -> bytes:
    """Inverse of :func:`encode_bytes`.

    Raises:
        EncodingError: If *token* contains characters outside the
            alphabet or its length is not a multiple of four.
    """
    if len(token) % 4:
        raise EncodingError(
            f"Token length must be a multiple of 4, got {len(token)}"
        )
    out = bytearray()
    for i in range(0, len(token), 4):
        try:
            c1, c2, c3, c4 = (_ALPHABET_INDEX[ch] for ch in token[i:i + 4])
        except KeyError as exc:
            raise EncodingError(f"Invalid character in token: {exc.args[0]!r}") from exc
        out.append((c1 << 2) | (c2 >> 4))
        out.append(((c2 & 0xF) << 4) | (c3 >> 2))
        out.append(((c3 & 0x3) << 6) | c4)
    return bytes(out)


def encode(source: str) -> str:
    """Encode diagram *source* into a URL-safe PlantUML token.

    Pure and deterministic.  The empty string encodes to a valid
    (non-empty) token.

    Raises:
        EncodingError: If *source* is not a string or cannot be
            represented as UTF-8 (e.g. it contains lone surrogates).
    """
    if not isinstance(source, str):
        raise EncodingError(
            f"Diagram source must be str, got {type(source).__name__}"
        )
    try:
        data = source.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise EncodingError(f"Diagram source is not valid UTF-8 text: {exc}") from exc
    try:
        compressed = _deflate(data)
    except zlib.error as exc:
        raise EncodingError(f"Compression failed: {exc}") from exc
    return encode_bytes(compressed)


def decode(token: str) -> str:
    """Decode a PlantUML *token* back into diagram source.

    Zero padding added by :func:`encode` after the end of the DEFLATE
    stream is ignored.

    Raises:
        EncodingError: If the token is malformed, does not inflate, or
            the inflated bytes are not UTF-8.
    """
    data = decode_bytes(token.strip())
    decompressor = zlib.decompressobj(_RAW_DEFLATE_WBITS)
    try:
        inflated = decompressor.decompress(data)
    except zlib.error as exc:
        raise EncodingError(f"Token does not contain a valid DEFLATE stream: {exc}") from exc
    if not decompressor.eof:
        raise EncodingError("Token is truncated (DEFLATE stream incomplete)")
    try:
        return inflated.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise EncodingError(f"Decoded diagram is not valid UTF-8: {exc}") from exc
