"""API routes for reading and writing embedded character cards."""

import logging
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, model_validator

from charavault.api.deps import get_hasher, get_paths, get_project
from charavault.models.project import Project
from charavault.services.character_cards import (
    CardStructureError,
    CharacterCard,
    embed_character_data,
    normalize,
    read_card,
)
from charavault.services.character_cards.png_codec import is_png
from charavault.services.content_hash import ContentHasher
from charavault.services.project_paths import ProjectPaths, write_atomic

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cards", tags=["cards"])


class CardWriteRequest(BaseModel):
    """Card to embed: a canonical card, or raw card JSON embedded unchanged."""
    card: Optional[CharacterCard] = None
    card_json: Optional[str] = Field(None, alias="cardJson")
    version: Literal["v2", "v3"] = "v2"
    assets: Optional[Dict[str, str]] = None

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def check_card_source(self) -> "CardWriteRequest":
        if (self.card is None) == (self.card_json is None):
            raise ValueError("Provide exactly one of 'card' or 'cardJson'")
        return self


@router.post("/normalize")
def normalize_card(document: Dict[str, Any]):
    """Normalize posted v2/v3/legacy card JSON into the canonical card."""
    return normalize(document).model_dump(by_alias=True)


@router.get("/{project_id}/{file_path:path}")
def get_card(
    file_path: str,
    project: Project = Depends(get_project),
    paths: ProjectPaths = Depends(get_paths),
):
    """Read the character card embedded in a project image."""
    data = paths.resolve_file(project, file_path).read_bytes()
    if not is_png(data):
        raise HTTPException(status_code=404, detail="No character metadata: not a PNG image")

    result = read_card(data)
    if result is None:
        raise HTTPException(status_code=404, detail="No character metadata found")

    return {
        "version": result.version,
        "card": result.card.model_dump(by_alias=True),
        "assets": result.assets,
        "raw": result.raw,
    }


@router.put("/{project_id}/{file_path:path}")
def put_card(
    file_path: str,
    request: CardWriteRequest,
    project: Project = Depends(get_project),
    paths: ProjectPaths = Depends(get_paths),
    hasher: ContentHasher = Depends(get_hasher),
):
    """Embed a character card into a project PNG, replacing any existing card."""
    target = paths.resolve_file(project, file_path)
    original = target.read_bytes()
    if not is_png(original):
        raise HTTPException(status_code=400, detail="Character cards can only be written to PNG images")

    card = request.card if request.card is not None else request.card_json
    try:
        updated = embed_character_data(original, card, version=request.version, assets=request.assets)
    except CardStructureError as e:
        logger.error(f"Failed to generate card PNG for {file_path}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to write character card: {e}")

    write_atomic(target, updated)
    logger.info(f"Wrote {request.version} card into {file_path} ({len(updated)} bytes)")

    return {
        "success": True,
        "version": request.version,
        "size": len(updated),
        "contentHash": hasher.digest(updated),
    }
