"""
Tests for reading and writing embedded character cards.

Tests cover:
- v2 embedding uses Base64 JSON under chara
- v3 embedding round trip with assets
- Decode failures surfacing as CardFormatError
- No card -> None
"""

import base64
import json

import pytest

from charavault.services.character_cards import (
    CardFormatError,
    CharacterCard,
    embed_character_data,
    extract_character_data,
    parse,
    read_card,
)
from charavault.services.character_cards.png_codec import insert_text_chunk


class TestEmbedAndExtract:
    """Full read/write path."""

    def test_v2_card_stored_as_base64(self, pillow_png):
        result = embed_character_data(pillow_png, CharacterCard(name="Nova", personality="calm"))
        payload = parse(result)

        assert payload.version == "v2"
        document = json.loads(base64.b64decode(payload.payload))
        assert document["spec"] == "chara_card_v2"
        assert document["data"]["name"] == "Nova"

    def test_v2_round_trip(self, pillow_png):
        card = CharacterCard(name="夜", first_mes="こんにちは", tags=["a", "b"])
        assert extract_character_data(embed_character_data(pillow_png, card)) == card

    def test_v3_round_trip_with_assets(self, minimal_png):
        card = CharacterCard(name="Nova", scenario="space")
        result = embed_character_data(minimal_png, card, version="v3", assets={"icon": "AAAA"})

        read = read_card(result)
        assert read.version == "v3"
        assert read.card == card
        assert read.assets == {"icon": "AAAA"}
        assert read.raw["spec"] == "chara_card_v3"

    def test_raw_json_embedded_unchanged(self, minimal_png):
        raw = '{"name": "Legacy", "char_persona": "old"}'
        result = embed_character_data(minimal_png, raw)

        assert base64.b64decode(parse(result).payload).decode() == raw
        assert extract_character_data(result).personality == "old"

    def test_mapping_input(self, minimal_png):
        result = embed_character_data(minimal_png, {"name": "Dict"}, version="v3")
        assert extract_character_data(result).name == "Dict"

    def test_invalid_raw_json_rejected(self, minimal_png):
        with pytest.raises(CardFormatError):
            embed_character_data(minimal_png, "{broken")

    def test_rewrite_replaces_card(self, minimal_png):
        first = embed_character_data(minimal_png, CharacterCard(name="One"), version="v3")
        second = embed_character_data(first, CharacterCard(name="Two"))

        assert read_card(second).version == "v2"
        assert extract_character_data(second).name == "Two"


    def test_edit_keeps_character_book_and_extensions(self, pillow_png):
        """Editing a read card and writing it back does not lose the lorebook."""
        book = {"name": "Lore", "entries": [{"keys": ["moon"], "content": "Base on the moon."}]}
        raw = json.dumps({
            "spec": "chara_card_v2",
            "spec_version": "2.0",
            "data": {"name": "Nova", "character_book": book, "extensions": {"fav": True}},
        })
        original = embed_character_data(pillow_png, raw)

        edited = read_card(original).card.model_copy(update={"description": "new"})
        reread = read_card(embed_character_data(original, edited))

        assert reread.card.description == "new"
        assert reread.card.character_book == book
        assert reread.card.extensions == {"fav": True}
        assert reread.raw["data"]["character_book"] == book

    def test_unencodable_text_raises_format_error(self, minimal_png):
        card = CharacterCard(name="broken \ud800")

        with pytest.raises(CardFormatError):
            embed_character_data(minimal_png, card)
        with pytest.raises(CardFormatError):
            embed_character_data(minimal_png, card, version="v3")


class TestReadFailures:

    def test_no_card_returns_none(self, pillow_png):
        assert read_card(pillow_png) is None
        assert extract_character_data(pillow_png) is None

    def test_line_wrapped_chara_base64(self, minimal_png):
        wrapped = base64.encodebytes(json.dumps({"name": "Wrapped", "description": "x" * 200}).encode()).decode()
        assert "\n" in wrapped.strip()

        card = extract_character_data(insert_text_chunk(minimal_png, "chara", wrapped))
        assert card.name == "Wrapped"

    def test_chara_not_base64(self, minimal_png):
        data = insert_text_chunk(minimal_png, "chara", '{"name": "raw"}')

        with pytest.raises(CardFormatError) as exc_info:
            read_card(data)
        assert exc_info.value.keyword == "chara"

    def test_chara_base64_of_invalid_json(self, minimal_png):
        data = insert_text_chunk(minimal_png, "chara", base64.b64encode(b"{oops").decode())

        with pytest.raises(CardFormatError):
            read_card(data)
