"""
PNG Chunk Codec
===============

Chunk-level reading and rewriting of PNG containers for character card metadata.

Layout of every chunk after the 8-byte signature:

    u32 length (big-endian) | 4-byte type | <length> bytes payload | u32 CRC-32

Character data lives in ``tEXt`` chunks keyed ``chara`` (v2), ``ccv3`` (v3)
and ``chara-ext-asset_:<path>`` (v3 assets). Every other chunk is copied
through byte-for-byte.
"""

import base64
import binascii
import logging
import struct
import zlib
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple, Union

from .errors import CardCodecError, CardFormatError, CardStructureError

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

TEXT_CHUNK = b"tEXt"
IEND_CHUNK = b"IEND"

KEYWORD_V2 = "chara"
KEYWORD_V3 = "ccv3"
ASSET_KEYWORD_PREFIX = "chara-ext-asset_:"

CARD_VERSIONS = ("v2", "v3")

# length + type + CRC
CHUNK_OVERHEAD = 12


@dataclass(frozen=True)
class PngChunk:
    """A single chunk as found in (or destined for) a PNG container."""
    type: bytes
    payload: bytes
    crc: int
    offset: int = -1

    @property
    def length(self) -> int:
        return len(self.payload)

    @property
    def type_name(self) -> str:
        return self.type.decode("latin-1")

    def crc_valid(self) -> bool:
        return compute_crc(self.type, self.payload) == self.crc

    def text_entry(self) -> Optional[Tuple[str, bytes]]:
        """
        Split a ``tEXt`` payload into ``(keyword, text)``.

        The keyword terminator is searched for inside this chunk's payload only.
        Returns None for non-text chunks and for payloads without a NUL.
        """
        if self.type != TEXT_CHUNK:
            return None
        separator = self.payload.find(b"\x00")
        if separator < 0:
            return None
        return self.payload[:separator].decode("latin-1"), self.payload[separator + 1:]

    def to_bytes(self) -> bytes:
        return struct.pack(">I", self.length) + self.type + self.payload + struct.pack(">I", self.crc)


@dataclass
class CharacterPayload:
    """Raw character data located in a PNG container."""
    version: str  # "v2" | "v3"
    payload: str
    assets: Dict[str, str] = field(default_factory=dict)

    @property
    def keyword(self) -> str:
        return KEYWORD_V3 if self.version == "v3" else KEYWORD_V2


def compute_crc(chunk_type: bytes, payload: bytes) -> int:
    """CRC-32 over ``type ++ payload`` (reflected 0xEDB88320, as PNG requires)."""
    return zlib.crc32(payload, zlib.crc32(chunk_type)) & 0xFFFFFFFF


def is_png(data: bytes) -> bool:
    return len(data) >= len(PNG_SIGNATURE) and data[:len(PNG_SIGNATURE)] == PNG_SIGNATURE


def is_card_keyword(keyword: str) -> bool:
    """True for keywords owned by character card data."""
    return keyword in (KEYWORD_V2, KEYWORD_V3) or keyword.startswith(ASSET_KEYWORD_PREFIX)


def iter_chunks(data: bytes) -> Iterator[PngChunk]:
    """
    Walk the chunks of a PNG container in file order.

    Raises:
        CardStructureError: On a bad signature, or when a chunk header or a
            declared chunk length runs past the end of the buffer.
    """
    if not is_png(data):
        raise CardStructureError("Not a PNG container: invalid signature", 0)

    total = len(data)
    offset = len(PNG_SIGNATURE)

    while offset < total:
        if offset + 8 > total:
            raise CardStructureError(
                f"Truncated chunk header: {total - offset} trailing byte(s)", offset
            )

        length, chunk_type = struct.unpack(">I4s", data[offset:offset + 8])
        end = offset + CHUNK_OVERHEAD + length
        if end > total:
            raise CardStructureError(
                f"Chunk {chunk_type!r} declares {length} bytes, "
                f"only {max(total - offset - CHUNK_OVERHEAD, 0)} available",
                offset,
            )

        payload = data[offset + 8:offset + 8 + length]
        (crc,) = struct.unpack(">I", data[end - 4:end])
        yield PngChunk(type=chunk_type, payload=payload, crc=crc, offset=offset)
        offset = end


def list_chunks(data: bytes) -> List[PngChunk]:
    return list(iter_chunks(data))


def build_chunk(chunk_type: bytes, payload: bytes) -> PngChunk:
    return PngChunk(type=chunk_type, payload=payload, crc=compute_crc(chunk_type, payload))


def build_text_chunk(keyword: str, text: Union[str, bytes]) -> bytes:
    """
    Encode a ``tEXt`` chunk.

    Keyword and string text are encoded as Latin-1; pass bytes to embed text
    that is already encoded.

    Raises:
        CardFormatError: If the keyword is empty, contains NUL, or either
            value cannot be represented in Latin-1.
    """
    if not keyword or "\x00" in keyword:
        raise CardFormatError(f"Invalid tEXt keyword: {keyword!r}", keyword)

    try:
        keyword_bytes = keyword.encode("latin-1")
        text_bytes = text if isinstance(text, bytes) else text.encode("latin-1")
    except UnicodeEncodeError as e:
        raise CardFormatError(
            f"tEXt chunk '{keyword}' must be Latin-1 encodable "
            f"(Base64-encode card JSON before embedding): {e}",
            keyword,
        )

    return build_chunk(TEXT_CHUNK, keyword_bytes + b"\x00" + text_bytes).to_bytes()


def _decode_base64_text(text: bytes, keyword: str) -> str:
    try:
        return base64.b64decode(b"".join(text.split()), validate=True).decode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise CardFormatError(f"Failed to decode Base64 data in '{keyword}' chunk: {e}", keyword)


def parse(data: bytes) -> Optional[CharacterPayload]:
    """
    Locate character card data in a PNG container.

    ``ccv3`` data is Base64-decoded here; ``chara`` data is returned as the
    opaque Latin-1 string found in the chunk (conventionally Base64 JSON, decoded
    by the caller). When both are present ``ccv3`` wins.

    Returns:
        CharacterPayload, or None when the container holds no card keyword

    Raises:
        CardStructureError: If the container is malformed
        CardFormatError: If a ``ccv3`` chunk is not valid Base64 / UTF-8
    """
    chara_data: Optional[str] = None
    ccv3_data: Optional[str] = None
    assets: Dict[str, str] = {}

    for chunk in iter_chunks(data):
        if chunk.type != TEXT_CHUNK:
            continue

        entry = chunk.text_entry()
        if entry is None:
            logger.warning(f"Skipping tEXt chunk at offset {chunk.offset}: keyword has no NUL terminator")
            continue

        keyword, text = entry
        if keyword == KEYWORD_V3:
            ccv3_data = _decode_base64_text(text, keyword)
            logger.debug(f"Found ccv3 chunk at offset {chunk.offset}")
        elif keyword == KEYWORD_V2:
            chara_data = text.decode("latin-1")
            logger.debug(f"Found chara chunk at offset {chunk.offset}")
        elif keyword.startswith(ASSET_KEYWORD_PREFIX):
            assets[keyword[len(ASSET_KEYWORD_PREFIX):]] = text.decode("latin-1")

    if ccv3_data is not None:
        if chara_data is not None:
            logger.debug("Both ccv3 and chara chunks present, using ccv3")
        return CharacterPayload(version="v3", payload=ccv3_data, assets=assets)

    if chara_data is not None:
        return CharacterPayload(version="v2", payload=chara_data, assets=assets)

    logger.debug("No character data found in PNG")
    return None


def _card_chunks(card_json: str, version: str, assets: Optional[Dict[str, str]]) -> List[bytes]:
    if version == "v3":
        try:
            card_bytes = card_json.encode("utf-8")
        except UnicodeEncodeError as e:
            raise CardFormatError(f"Card JSON for '{KEYWORD_V3}' is not encodable as UTF-8: {e}", KEYWORD_V3)
        encoded = base64.b64encode(card_bytes).decode("ascii")
        chunks = [build_text_chunk(KEYWORD_V3, encoded)]
        for path, value in (assets or {}).items():
            chunks.append(build_text_chunk(f"{ASSET_KEYWORD_PREFIX}{path}", value))
        return chunks

    return [build_text_chunk(KEYWORD_V2, card_json)]


def generate(
    original: bytes,
    card_json: str,
    version: str = "v2",
    assets: Optional[Dict[str, str]] = None,
) -> bytes:
    """
    Rebuild a PNG with new character card chunks.

    Existing ``chara``/``ccv3``/asset chunks are dropped; every other chunk is
    kept in order. The new chunks are written immediately before ``IEND``.

    Args:
        original: Source PNG bytes
        card_json: Card JSON. For v2 this is embedded as-is (callers Base64
            it first by convention); for v3 it is Base64-encoded here.
        version: "v2" (default) or "v3"
        assets: v3 asset map of path -> already-encoded value

    Raises:
        ValueError: On an unknown version
        CardStructureError: If the source is malformed or IEND is not last
        CardFormatError: If chunk text cannot be encoded
    """
    if version not in CARD_VERSIONS:
        raise ValueError(f"Unsupported card version: {version!r}")

    if version == "v2" and assets:
        logger.warning(f"Ignoring {len(assets)} asset(s): assets are only embedded for v3 cards")

    parts = [original[:len(PNG_SIGNATURE)]]
    last_type: Optional[bytes] = None
    dropped = 0

    for chunk in iter_chunks(original):
        entry = chunk.text_entry()
        if entry is not None and is_card_keyword(entry[0]):
            dropped += 1
            continue

        if chunk.type == IEND_CHUNK:
            parts.extend(_card_chunks(card_json, version, assets))

        parts.append(chunk.to_bytes())
        last_type = chunk.type

    if last_type != IEND_CHUNK:
        raise CardStructureError("Invalid chunk structure: IEND must be the last chunk")

    result = b"".join(parts)
    logger.debug(f"Generated {version} PNG: {len(result)} bytes, replaced {dropped} card chunk(s)")

    _verify_generated(result, card_json, version)
    return result


def _verify_generated(result: bytes, card_json: str, version: str) -> None:
    """Re-read freshly generated bytes; problems are logged, never raised."""
    try:
        parsed = parse(result)
    except CardCodecError as e:
        logger.warning(f"PNG generation validation warning: {e}")
        return

    if parsed is None:
        logger.warning("PNG generation validation warning: no character data recoverable")
    elif parsed.version != version or parsed.payload != card_json:
        logger.warning(
            f"PNG generation validation warning: expected {version} payload, "
            f"recovered {parsed.version} payload of {len(parsed.payload)} chars"
        )


def insert_text_chunk(data: bytes, keyword: str, text: Union[str, bytes]) -> bytes:
    """
    Insert one ``tEXt`` chunk directly before ``IEND``, leaving all others intact.

    Raises:
        CardStructureError: If the container is malformed or has no IEND
    """
    new_chunk = build_text_chunk(keyword, text)
    for chunk in iter_chunks(data):
        if chunk.type == IEND_CHUNK:
            return data[:chunk.offset] + new_chunk + data[chunk.offset:]

    raise CardStructureError("No IEND chunk found")
