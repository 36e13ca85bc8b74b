"""
Character Card Service
=====================

Read and write character cards embedded in PNG images.

Read path:  PNG bytes -> chunk walker -> (Base64) -> JSON -> canonical card
Write path: canonical card -> schema JSON -> (Base64 for v2) -> chunk writer
"""

import base64
import binascii
import json
import logging
from typing import Any, Dict, Mapping, Optional, Union

from . import png_codec
from .errors import CardFormatError
from .models import CardReadResult, CharacterCard
from .png_codec import CharacterPayload
from .schema_mapper import classify, load_card_json, serialize, to_canonical

logger = logging.getLogger(__name__)


def encode_for_chunk(card_json: str, version: str) -> str:
    """
    Apply the per-version embedding convention to card JSON.

    v2 cards are stored as Base64 of the UTF-8 JSON; v3 cards are handed to the
    chunk writer as plain JSON because it Base64-encodes ``ccv3`` itself.
    """
    if version == "v2":
        try:
            return base64.b64encode(card_json.encode("utf-8")).decode("ascii")
        except UnicodeEncodeError as e:
            raise CardFormatError(f"Card JSON is not encodable as UTF-8: {e}", "chara")
    return card_json


def decode_payload(payload: CharacterPayload) -> Dict[str, Any]:
    """
    Turn a located payload into the card JSON document.

    Raises:
        CardFormatError: If the ``chara`` Base64 or the JSON is invalid
    """
    text = payload.payload
    if payload.version == "v2":
        try:
            text = base64.b64decode("".join(text.split()), validate=True).decode("utf-8")
        except (binascii.Error, ValueError) as e:
            raise CardFormatError(f"Invalid chara character data format: {e}", payload.keyword)

    try:
        return load_card_json(text)
    except CardFormatError as e:
        raise CardFormatError(f"Invalid {payload.keyword} character data format: {e}", payload.keyword)


def read_card(png_data: bytes) -> Optional[CardReadResult]:
    """
    Read the embedded card, keeping version, assets and the raw document.

    Returns:
        CardReadResult, or None if the image holds no character data

    Raises:
        CardStructureError: If the PNG is malformed
        CardFormatError: If the embedded data cannot be decoded
    """
    payload = png_codec.parse(png_data)
    if payload is None:
        return None

    document = decode_payload(payload)
    card = to_canonical(classify(document))

    logger.info(f"Read {payload.version} character card '{card.name}' ({len(payload.assets)} asset(s))")
    return CardReadResult(
        version=payload.version,
        card=card,
        assets=payload.assets,
        raw=document,
    )


def extract_character_data(png_data: bytes) -> Optional[CharacterCard]:
    """Extract the canonical card from a PNG, or None when there is none."""
    result = read_card(png_data)
    return result.card if result else None


def embed_character_data(
    png_data: bytes,
    card: Union[CharacterCard, Mapping[str, Any], str],
    version: str = "v2",
    assets: Optional[Dict[str, str]] = None,
) -> bytes:
    """
    Embed a card into a PNG, replacing any card already present.

    ``card`` may be a canonical CharacterCard (serialized into the requested
    schema) or raw card JSON (text or dict) that is embedded unchanged.
    """
    if isinstance(card, CharacterCard):
        card_json = serialize(card, version)
    elif isinstance(card, Mapping):
        card_json = json.dumps(dict(card), ensure_ascii=False)
    else:
        load_card_json(card)
        card_json = card

    return png_codec.generate(
        png_data,
        encode_for_chunk(card_json, version),
        version=version,
        assets=assets if version == "v3" else None,
    )
