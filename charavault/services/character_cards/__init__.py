"""
Character Card System
====================

Character card metadata embedded in PNG images, plus source URL tagging for
PNG and JPEG imports.

Supports:
- SillyTavern V2 cards (``chara`` tEXt chunk, Base64 JSON)
- SillyTavern V3 cards (``ccv3`` tEXt chunk plus ``chara-ext-asset_:`` assets)
- Legacy TavernAI field names, normalized on read
"""

from .card_service import (
    decode_payload,
    embed_character_data,
    encode_for_chunk,
    extract_character_data,
    read_card,
)
from .errors import CardCodecError, CardFormatError, CardStructureError
from .models import CardReadResult, CardSpec, CharacterCard, V2Raw, V3Raw
from .png_codec import CharacterPayload, generate, parse
from .schema_mapper import classify, normalize, serialize
from .source_metadata import add_source_url_metadata, detect_image_type

__all__ = [
    'CardCodecError',
    'CardFormatError',
    'CardStructureError',
    'CardReadResult',
    'CardSpec',
    'CharacterCard',
    'CharacterPayload',
    'V2Raw',
    'V3Raw',
    'add_source_url_metadata',
    'classify',
    'decode_payload',
    'detect_image_type',
    'embed_character_data',
    'encode_for_chunk',
    'extract_character_data',
    'generate',
    'normalize',
    'parse',
    'read_card',
    'serialize',
]
