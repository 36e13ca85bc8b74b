"""
JPEG Segment Codec
==================

Segment-level walking of JPEG containers and XMP (APP1) injection.

JPEG files never carry character cards here; the only write path is tagging
an image with its source URL in an XMP packet.
"""

import logging
import struct
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, List, Optional
from xml.sax.saxutils import escape

from .errors import CardStructureError

logger = logging.getLogger(__name__)

SOI = b"\xff\xd8"

MARKER_SOI = 0xD8
MARKER_EOI = 0xD9
MARKER_SOS = 0xDA
MARKER_APP0 = 0xE0
MARKER_APP1 = 0xE1
MARKER_COM = 0xFE

# Markers that are not followed by a length field (RSTn, SOI, EOI, TEM)
STANDALONE_MARKERS = frozenset(range(0xD0, 0xDA)) | {0x01}

XMP_NAMESPACE = b"http://ns.adobe.com/xap/1.0/\x00"

MAX_SEGMENT_LENGTH = 0xFFFF

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


@dataclass(frozen=True)
class JpegSegment:
    """
    One marker segment.

    ``raw`` holds the full bytes including the ``0xFF`` marker prefix. For SOS
    it extends to the end of the buffer (entropy-coded scan data and EOI).
    """
    marker: int
    offset: int
    raw: bytes

    @property
    def length(self) -> Optional[int]:
        if self.marker in STANDALONE_MARKERS:
            return None
        return struct.unpack(">H", self.raw[2:4])[0]

    @property
    def payload(self) -> bytes:
        if self.marker in STANDALONE_MARKERS:
            return b""
        return self.raw[4:]

    @property
    def is_app(self) -> bool:
        return 0xE0 <= self.marker <= 0xEF


def is_jpeg(data: bytes) -> bool:
    return len(data) >= 2 and data[:2] == SOI


def iter_segments(data: bytes) -> Iterator[JpegSegment]:
    """
    Walk JPEG segments after SOI.

    Scanning stops at SOS (yielded once with the rest of the buffer) or EOI.

    Raises:
        CardStructureError: On a missing SOI, a missing marker prefix, or a
            segment that runs past the end of the buffer.
    """
    if not is_jpeg(data):
        raise CardStructureError("Not a JPEG container: missing SOI marker", 0)

    total = len(data)
    offset = 2

    while offset < total:
        if data[offset] != 0xFF:
            raise CardStructureError(f"Expected marker prefix 0xFF, found 0x{data[offset]:02X}", offset)
        if offset + 1 >= total:
            raise CardStructureError("Truncated marker", offset)

        marker = data[offset + 1]

        # Fill byte before a marker
        if marker == 0xFF:
            offset += 1
            continue

        if marker == MARKER_SOS:
            yield JpegSegment(marker=marker, offset=offset, raw=data[offset:])
            return

        if marker in STANDALONE_MARKERS:
            yield JpegSegment(marker=marker, offset=offset, raw=data[offset:offset + 2])
            offset += 2
            if marker == MARKER_EOI:
                return
            continue

        if offset + 4 > total:
            raise CardStructureError(f"Truncated length field for marker 0x{marker:02X}", offset)

        (length,) = struct.unpack(">H", data[offset + 2:offset + 4])
        end = offset + 2 + length
        if length < 2 or end > total:
            raise CardStructureError(
                f"Segment 0x{marker:02X} declares length {length}, "
                f"{total - offset - 2} byte(s) available",
                offset,
            )

        yield JpegSegment(marker=marker, offset=offset, raw=data[offset:end])
        offset = end


def build_segment(marker: int, payload: bytes) -> bytes:
    length = 2 + len(payload)
    if length > MAX_SEGMENT_LENGTH:
        raise CardStructureError(
            f"Segment 0x{marker:02X} payload of {len(payload)} bytes exceeds the 65533 byte limit"
        )
    return bytes((0xFF, marker)) + struct.pack(">H", length) + payload


def build_xmp_packet(source_url: str, timestamp: Optional[datetime] = None) -> str:
    """Build an XMP packet recording where an image was imported from."""
    created = (timestamp or datetime.now(timezone.utc)).isoformat()
    url = escape(source_url, _XML_ENTITIES)

    return (
        '<?xpacket begin="\ufeff" id="W5M0MpCehiHzreSzNTczkc9d"?>\n'
        '<x:xmpmeta xmlns:x="adobe:ns:meta/" x:xmptk="CharaVault">\n'
        '  <rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">\n'
        '    <rdf:Description rdf:about=""\n'
        '        xmlns:dc="http://purl.org/dc/elements/1.1/"\n'
        '        xmlns:xmp="http://ns.adobe.com/xap/1.0/"\n'
        '        xmlns:charavault="https://charavault.dev/ns/1.0/">\n'
        f'      <dc:source>{url}</dc:source>\n'
        '      <dc:description>Image imported from web page</dc:description>\n'
        '      <xmp:CreatorTool>CharaVault</xmp:CreatorTool>\n'
        f'      <xmp:CreateDate>{created}</xmp:CreateDate>\n'
        f'      <charavault:sourceUrl>{url}</charavault:sourceUrl>\n'
        f'      <charavault:importDate>{created}</charavault:importDate>\n'
        '    </rdf:Description>\n'
        '  </rdf:RDF>\n'
        '</x:xmpmeta>\n'
        '<?xpacket end="w"?>'
    )


def inject_xmp(data: bytes, xml_packet: str) -> bytes:
    """
    Insert an APP1/XMP segment after SOI, or after a leading APP0 segment.

    No existing segment is removed.

    Raises:
        CardStructureError: If the data is not a JPEG, a leading APP0 overruns
            the buffer, or the packet is too large for one segment.
    """
    segment = build_segment(MARKER_APP1, XMP_NAMESPACE + xml_packet.encode("utf-8"))

    insert_at = len(SOI)
    first = next(iter_segments(data), None)
    if first is not None and first.marker == MARKER_APP0:
        insert_at = first.offset + len(first.raw)

    logger.debug(f"Injecting {len(segment)} byte XMP segment at offset {insert_at}")
    return data[:insert_at] + segment + data[insert_at:]


def read_xmp_packets(data: bytes) -> List[str]:
    """Return the XML of every XMP APP1 segment before the scan data."""
    packets = []
    for segment in iter_segments(data):
        if segment.marker == MARKER_APP1 and segment.payload.startswith(XMP_NAMESPACE):
            packets.append(segment.payload[len(XMP_NAMESPACE):].decode("utf-8", errors="replace"))
    return packets
