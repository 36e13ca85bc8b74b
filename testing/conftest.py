"""Shared fixtures: image bytes built by hand and with Pillow, plus a temp database."""

import io
import struct
import zlib

import pytest
from PIL import Image
from PIL.PngImagePlugin import PngInfo

from charavault.config import DatabaseConfig
from charavault.db import Database
from charavault.services.character_cards.jpeg_codec import MARKER_COM, build_segment
from charavault.services.character_cards.png_codec import PNG_SIGNATURE, build_chunk


def make_png(*chunks) -> bytes:
    """Assemble a PNG from ``(type, payload)`` pairs."""
    return PNG_SIGNATURE + b"".join(build_chunk(t, p).to_bytes() for t, p in chunks)


def minimal_chunks(pixel: bytes = b"\xff\x00\x00"):
    ihdr = struct.pack(">IIBBBBB", 1, 1, 8, 2, 0, 0, 0)
    idat = zlib.compress(b"\x00" + pixel)
    return [(b"IHDR", ihdr), (b"IDAT", idat)]


@pytest.fixture
def minimal_png() -> bytes:
    """1x1 RGB PNG with only IHDR, IDAT and IEND."""
    return make_png(*minimal_chunks(), (b"IEND", b""))


@pytest.fixture
def pillow_png() -> bytes:
    """Small PNG written by Pillow with an unrelated text chunk."""
    info = PngInfo()
    info.add_text("Comment", "made by pillow")
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), (30, 120, 200)).save(buffer, format="PNG", pnginfo=info)
    return buffer.getvalue()


@pytest.fixture
def pillow_jpeg() -> bytes:
    """Small baseline JPEG written by Pillow (starts with a JFIF APP0)."""
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), (200, 50, 50)).save(buffer, format="JPEG", quality=90)
    return buffer.getvalue()


def with_jpeg_comment(data: bytes, comment: bytes) -> bytes:
    """Insert a COM segment right after SOI."""
    return data[:2] + build_segment(MARKER_COM, comment) + data[2:]


@pytest.fixture
def database(tmp_path):
    """Initialized SQLite database in a temp directory."""
    db = Database(DatabaseConfig(url=f"sqlite:///{tmp_path / 'test.db'}"))
    db.init()
    yield db
    db.dispose()


@pytest.fixture
def session(database):
    db = database.session()
    try:
        yield db
    finally:
        db.close()
