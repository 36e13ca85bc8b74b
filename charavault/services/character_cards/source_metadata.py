"""
Source URL Metadata
===================

Tags imported images with the web page they came from: a ``source_url`` tEXt
chunk for PNG, an XMP packet for JPEG.
"""

import logging
from typing import Optional

from . import jpeg_codec, png_codec
from .errors import CardCodecError
from .png_codec import IEND_CHUNK

logger = logging.getLogger(__name__)

SOURCE_URL_KEYWORD = "source_url"


def detect_image_type(data: bytes, mime_type: Optional[str] = None) -> str:
    """Return "png", "jpeg" or "unknown". The MIME type wins over magic bytes."""
    if mime_type:
        mime = mime_type.lower()
        if "png" in mime:
            return "png"
        if "jpeg" in mime or "jpg" in mime:
            return "jpeg"

    if png_codec.is_png(data):
        return "png"
    if jpeg_codec.is_jpeg(data):
        return "jpeg"
    return "unknown"


def _add_png_source_url(data: bytes, source_url: str) -> bytes:
    chunks = png_codec.list_chunks(data)
    if any(chunk.type == IEND_CHUNK for chunk in chunks):
        return png_codec.insert_text_chunk(data, SOURCE_URL_KEYWORD, source_url.encode("utf-8"))

    logger.warning("PNG has no IEND chunk, appending source_url chunk and IEND")
    iend = png_codec.build_chunk(IEND_CHUNK, b"").to_bytes()
    text_chunk = png_codec.build_text_chunk(SOURCE_URL_KEYWORD, source_url.encode("utf-8"))
    return data + text_chunk + iend


def add_source_url_metadata(data: bytes, source_url: str, mime_type: Optional[str] = None) -> bytes:
    """
    Record ``source_url`` inside the image.

    Unsupported or malformed images are returned unchanged; the failure is logged.
    """
    image_type = detect_image_type(data, mime_type)

    try:
        if image_type == "png":
            return _add_png_source_url(data, source_url)
        if image_type == "jpeg":
            return jpeg_codec.inject_xmp(data, jpeg_codec.build_xmp_packet(source_url))
    except CardCodecError as e:
        logger.error(f"Failed to add {image_type} source URL metadata: {e}")
        return data

    logger.warning(f"Unsupported image format for source URL metadata: {image_type}, returning original image")
    return data


def read_png_source_url(data: bytes) -> Optional[str]:
    """Return the ``source_url`` recorded in a PNG, if any."""
    for chunk in png_codec.iter_chunks(data):
        entry = chunk.text_entry()
        if entry is not None and entry[0] == SOURCE_URL_KEYWORD:
            return entry[1].decode("utf-8", errors="replace")
    return None
