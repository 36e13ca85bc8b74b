"""
Card Schema Mapper
==================

Normalizes v2/v3 (and legacy TavernAI) card JSON into one canonical
CharacterCard, and serializes a canonical card back into either schema.
"""

import json
import logging
from typing import Any, Dict, Mapping, Union

from pydantic import ValidationError

from .errors import CardFormatError
from .models import CardSpec, CharacterCard, RawCard, V2Raw, V3Raw

logger = logging.getLogger(__name__)

SPEC_VERSIONS = {
    "v2": (CardSpec.V2, "2.0"),
    "v3": (CardSpec.V3, "3.0"),
}


def load_card_json(raw: Union[str, bytes, Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Parse card JSON into a dict.

    Raises:
        CardFormatError: If the text is not valid JSON or not a JSON object
    """
    if isinstance(raw, Mapping):
        return dict(raw)

    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CardFormatError(f"Card data is not valid UTF-8: {e}")

    try:
        document = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CardFormatError(f"Invalid character card JSON: {e}")

    if not isinstance(document, dict):
        raise CardFormatError(f"Character card JSON must be an object, got {type(document).__name__}")

    return document


def unwrap(document: Mapping[str, Any]) -> Dict[str, Any]:
    """Return the card body, unwrapping one level of ``data`` when present."""
    data = document.get("data")
    if isinstance(data, dict):
        return data
    return dict(document)


def classify(document: Mapping[str, Any]) -> RawCard:
    """
    Pick the raw schema for a card document.

    ``spec == "chara_card_v3"`` selects V3Raw; everything else (v2, legacy,
    unversioned) is V2Raw.
    """
    body = unwrap(document)
    try:
        if document.get("spec") == CardSpec.V3.value:
            return V3Raw.model_validate(body)
        return V2Raw.model_validate(body)
    except ValidationError as e:
        raise CardFormatError(f"Character card has invalid field types: {e}")


def _first(*values: Any) -> str:
    """First non-empty value, or "" when all are empty."""
    for value in values:
        if value:
            return value
    return ""


def to_canonical(raw: RawCard) -> CharacterCard:
    """Map a raw v2/v3 body onto the canonical card."""
    return CharacterCard(
        name=_first(raw.name),
        gender=_first(raw.gender),
        description=_first(raw.description, raw.char_persona),
        full_description=_first(raw.personality, raw.full_description, raw.char_persona),
        personality=_first(raw.personality, raw.char_persona),
        scenario=_first(raw.scenario, raw.world_scenario),
        example_dialogue=_first(raw.mes_example, raw.example_dialogue),
        creator_notes=_first(raw.creator_notes),
        system_prompt=_first(raw.system_prompt, raw.system),
        post_history_instructions=_first(raw.post_history_instructions),
        alternate_greetings=list(raw.alternate_greetings),
        tags=list(raw.tags),
        creator=_first(raw.creator),
        character_version=_first(raw.character_version),
        first_mes=_first(raw.first_mes),
        character_book=raw.character_book,
        extensions=dict(raw.extensions),
    )


def normalize(raw: Union[str, bytes, Mapping[str, Any]]) -> CharacterCard:
    """
    Normalize card JSON (text or already-parsed) into a CharacterCard.

    Raises:
        CardFormatError: If the JSON is invalid
    """
    card = to_canonical(classify(load_card_json(raw)))
    logger.debug(f"Normalized character card '{card.name}'")
    return card


def to_document(card: CharacterCard, version: str = "v2") -> Dict[str, Any]:
    """Build a ``chara_card_v2``/``chara_card_v3`` document from a canonical card."""
    if version not in SPEC_VERSIONS:
        raise ValueError(f"Unsupported card version: {version!r}")

    spec, spec_version = SPEC_VERSIONS[version]
    data: Dict[str, Any] = {
        "name": card.name,
        "description": card.description,
        "personality": card.personality,
        "scenario": card.scenario,
        "first_mes": card.first_mes,
        "mes_example": card.example_dialogue,
        "creator_notes": card.creator_notes,
        "system_prompt": card.system_prompt,
        "post_history_instructions": card.post_history_instructions,
        "alternate_greetings": list(card.alternate_greetings),
        "tags": list(card.tags),
        "creator": card.creator,
        "character_version": card.character_version,
        "extensions": dict(card.extensions),
    }

    if card.character_book is not None:
        data["character_book"] = card.character_book

    # Not part of either schema; kept so a round trip does not lose them
    if card.gender:
        data["gender"] = card.gender
    if card.full_description and card.full_description != card.personality:
        data["full_description"] = card.full_description

    if version == "v3":
        data["group_only_greetings"] = []

    return {"spec": spec.value, "spec_version": spec_version, "data": data}


def serialize(card: CharacterCard, version: str = "v2") -> str:
    """Serialize a canonical card into card JSON for the requested schema."""
    return json.dumps(to_document(card, version), ensure_ascii=False)
