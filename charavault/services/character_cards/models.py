"""
Character Card Data Models
=========================

Pydantic models for the canonical character card and the two raw schemas it is
normalized from (SillyTavern-style v2 and v3).
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CardSpec(str, Enum):
    """Character card schema identifiers."""
    V2 = "chara_card_v2"
    V3 = "chara_card_v3"


CardVersion = Literal["v2", "v3"]


# ===========================
# Canonical Card
# ===========================

class CharacterCard(BaseModel):
    """
    Canonical character card record.

    Every field is present; absent source fields resolve to "" or [] ({} and
    None for the pass-through extensions and character book).
    Serialized with camelCase aliases for API consumers.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    gender: str = ""
    description: str = ""
    full_description: str = Field(default="", alias="fullDescription")
    personality: str = ""
    scenario: str = ""
    example_dialogue: str = Field(default="", alias="exampleDialogue")
    creator_notes: str = Field(default="", alias="creatorNotes")
    system_prompt: str = Field(default="", alias="systemPrompt")
    post_history_instructions: str = Field(default="", alias="postHistoryInstructions")
    alternate_greetings: List[str] = Field(default_factory=list, alias="alternateGreetings")
    tags: List[str] = Field(default_factory=list)
    creator: str = ""
    character_version: str = Field(default="", alias="characterVersion")
    first_mes: str = Field(default="", alias="firstMes")

    # Carried through unchanged so edits do not drop lorebooks or tool data
    character_book: Optional[Dict[str, Any]] = Field(default=None, alias="characterBook")
    extensions: Dict[str, Any] = Field(default_factory=dict)


# ===========================
# Raw Schemas
# ===========================

def _coerce_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (list, dict)):
        return None
    return str(value)


def _coerce_text_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return []


class _RawCardFields(BaseModel):
    """Fields shared by both raw schemas, including legacy aliases."""
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    gender: Optional[str] = None
    description: Optional[str] = None
    personality: Optional[str] = None
    scenario: Optional[str] = None
    first_mes: Optional[str] = None
    mes_example: Optional[str] = None
    creator_notes: Optional[str] = None
    system_prompt: Optional[str] = None
    post_history_instructions: Optional[str] = None
    alternate_greetings: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    creator: Optional[str] = None
    character_version: Optional[str] = None
    extensions: Dict[str, Any] = Field(default_factory=dict)
    character_book: Optional[Dict[str, Any]] = None

    # Legacy (pre-v2 / TavernAI) field names
    char_persona: Optional[str] = None
    full_description: Optional[str] = None
    world_scenario: Optional[str] = None
    example_dialogue: Optional[str] = None
    system: Optional[str] = None

    @field_validator(
        "name", "gender", "description", "personality", "scenario", "first_mes",
        "mes_example", "creator_notes", "system_prompt", "post_history_instructions",
        "creator", "character_version", "char_persona", "full_description",
        "world_scenario", "example_dialogue", "system",
        mode="before",
    )
    @classmethod
    def coerce_text(cls, v: Any) -> Optional[str]:
        return _coerce_text(v)

    @field_validator("alternate_greetings", "tags", mode="before")
    @classmethod
    def coerce_text_list(cls, v: Any) -> List[str]:
        return _coerce_text_list(v)

    @field_validator("extensions", mode="before")
    @classmethod
    def coerce_extensions(cls, v: Any) -> Dict[str, Any]:
        return v if isinstance(v, dict) else {}

    @field_validator("character_book", mode="before")
    @classmethod
    def coerce_character_book(cls, v: Any) -> Optional[Dict[str, Any]]:
        return v if isinstance(v, dict) else None


class V2Raw(_RawCardFields):
    """Legacy/v2 card body (``chara`` keyword, or unversioned JSON)."""
    schema_version: Literal["v2"] = "v2"


class V3Raw(_RawCardFields):
    """v3 card body (``spec == "chara_card_v3"``)."""
    schema_version: Literal["v3"] = "v3"

    nickname: Optional[str] = None
    source: List[str] = Field(default_factory=list)
    group_only_greetings: List[str] = Field(default_factory=list)
    assets: List[Dict[str, Any]] = Field(default_factory=list)
    creation_date: Optional[int] = None
    modification_date: Optional[int] = None

    @field_validator("nickname", mode="before")
    @classmethod
    def coerce_nickname(cls, v: Any) -> Optional[str]:
        return _coerce_text(v)

    @field_validator("source", "group_only_greetings", mode="before")
    @classmethod
    def coerce_v3_lists(cls, v: Any) -> List[str]:
        return _coerce_text_list(v)

    @field_validator("assets", mode="before")
    @classmethod
    def coerce_assets(cls, v: Any) -> List[Dict[str, Any]]:
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, dict)]

    @field_validator("creation_date", "modification_date", mode="before")
    @classmethod
    def coerce_timestamp(cls, v: Any) -> Optional[int]:
        if isinstance(v, bool):
            return None
        if isinstance(v, (int, float)):
            return int(v)
        return None


RawCard = Union[V2Raw, V3Raw]


# ===========================
# Read/Write DTOs
# ===========================

class CardReadResult(BaseModel):
    """Character data read back from an image container."""
    model_config = ConfigDict(populate_by_name=True)

    version: CardVersion
    card: CharacterCard
    assets: Dict[str, str] = Field(default_factory=dict)
    raw: Dict[str, Any] = Field(default_factory=dict)
