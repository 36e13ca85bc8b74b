"""
Tests for JPEG segment walking and XMP injection.

Tests cover:
- Segment walking up to SOS with the scan data kept opaque
- Fill bytes and standalone markers
- XMP injection after SOI / after APP0, without removing segments
- XMP packet contents and escaping
"""

import io
from datetime import datetime, timezone

import pytest
from PIL import Image

from charavault.services.character_cards import CardStructureError
from charavault.services.character_cards.jpeg_codec import (
    MARKER_APP0,
    MARKER_APP1,
    MARKER_EOI,
    MARKER_SOS,
    SOI,
    XMP_NAMESPACE,
    build_segment,
    build_xmp_packet,
    inject_xmp,
    iter_segments,
    read_xmp_packets,
)


def markers(data: bytes):
    return [segment.marker for segment in iter_segments(data)]


def hand_built_jpeg(first_app0: bool = False) -> bytes:
    """Structurally valid (not decodable) JPEG: DQT, SOS, scan bytes, EOI."""
    parts = [SOI]
    if first_app0:
        parts.append(build_segment(MARKER_APP0, b"JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00"))
    parts.append(build_segment(0xDB, b"\x00" + bytes(range(64))))
    parts.append(build_segment(MARKER_SOS, b"\x01\x01\x00\x00\x3f\x00"))
    parts.append(b"\x12\x34\xff\x00\x56")  # entropy-coded data with a stuffed 0xFF
    parts.append(b"\xff\xd9")
    return b"".join(parts)


class TestSegmentWalker:
    """Walking segments."""

    def test_pillow_jpeg_segments(self, pillow_jpeg):
        """A Pillow JPEG starts with APP0 and ends the walk at SOS."""
        found = markers(pillow_jpeg)

        assert found[0] == MARKER_APP0
        assert found[-1] == MARKER_SOS
        assert 0xDB in found and 0xC4 in found

    def test_sos_carries_rest_of_buffer(self):
        data = hand_built_jpeg()
        sos = list(iter_segments(data))[-1]

        assert sos.marker == MARKER_SOS
        assert data.endswith(sos.raw)
        assert sos.raw.endswith(b"\xff\xd9")

    def test_fill_bytes_are_skipped(self):
        data = SOI + b"\xff\xff" + build_segment(0xFE, b"hello") + b"\xff\xd9"

        assert markers(data) == [0xFE, MARKER_EOI]

    def test_missing_soi_raises(self):
        with pytest.raises(CardStructureError):
            list(iter_segments(b"\x89PNG"))

    def test_overrunning_segment_raises(self):
        data = SOI + b"\xff\xe1\x10\x00abc"
        with pytest.raises(CardStructureError):
            list(iter_segments(data))

    def test_missing_marker_prefix_raises(self):
        with pytest.raises(CardStructureError):
            list(iter_segments(SOI + b"\x00\x00"))


class TestXmpInjection:
    """Inserting XMP packets."""

    def test_inserted_after_app0(self, pillow_jpeg):
        result = inject_xmp(pillow_jpeg, build_xmp_packet("https://example.com/a"))
        found = markers(result)

        assert found[:2] == [MARKER_APP0, MARKER_APP1]
        assert found[2:] == markers(pillow_jpeg)[1:]

    def test_inserted_after_soi_without_app0(self):
        data = hand_built_jpeg()
        result = inject_xmp(data, "<x/>")

        assert markers(result)[0] == MARKER_APP1
        assert result.startswith(SOI + b"\xff\xe1")
        assert result.endswith(data[2:])

    def test_no_segment_removed(self):
        data = hand_built_jpeg(first_app0=True)
        once = inject_xmp(data, "<a/>")
        twice = inject_xmp(once, "<b/>")

        assert read_xmp_packets(twice) == ["<b/>", "<a/>"]
        assert len(twice) == len(data) + 2 * (4 + len(XMP_NAMESPACE)) + len("<a/>") + len("<b/>")

    def test_still_decodes_with_pillow(self, pillow_jpeg):
        result = inject_xmp(pillow_jpeg, build_xmp_packet("https://example.com/a"))

        with Image.open(io.BytesIO(result)) as image:
            image.load()
            assert image.size == (8, 8)

    def test_oversized_packet_raises(self, pillow_jpeg):
        with pytest.raises(CardStructureError):
            inject_xmp(pillow_jpeg, "x" * 70000)


class TestXmpPacket:

    def test_contains_source_elements(self):
        stamp = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        packet = build_xmp_packet("https://example.com/card?id=1&v=2", timestamp=stamp)

        assert "<dc:source>https://example.com/card?id=1&amp;v=2</dc:source>" in packet
        assert "<charavault:sourceUrl>https://example.com/card?id=1&amp;v=2</charavault:sourceUrl>" in packet
        assert "2024-05-01T12:00:00+00:00" in packet
        assert packet.startswith("<?xpacket begin=")
        assert packet.endswith('<?xpacket end="w"?>')
