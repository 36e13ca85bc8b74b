"""
Tests for metadata-independent content hashing.

Tests cover:
- PNG digests unaffected by card and other text chunks
- PNG digests changing with pixel data
- JPEG digests unaffected by APPn/COM segments
- Raw-byte fallback for unknown formats and truncated containers
- Parallel file hashing
"""

import hashlib

from charavault.services.character_cards import generate
from charavault.services.character_cards.jpeg_codec import build_xmp_packet, inject_xmp
from charavault.services.character_cards.png_codec import insert_text_chunk
from charavault.services.content_hash import ContentHasher, canonicalize, canonicalize_png

from conftest import make_png, minimal_chunks, with_jpeg_comment


class TestPngDigest:
    """PNG canonicalization."""

    def test_card_payload_does_not_change_digest(self, minimal_png):
        a = generate(minimal_png, "card-A")
        b = generate(minimal_png, "card-B", version="v3", assets={"x": "y"})

        assert ContentHasher.digest(a) == ContentHasher.digest(b) == ContentHasher.digest(minimal_png)

    def test_other_text_chunks_ignored(self, pillow_png):
        tagged = insert_text_chunk(pillow_png, "source_url", "https://example.com")
        assert ContentHasher.digest(tagged) == ContentHasher.digest(pillow_png)

    def test_pixel_change_changes_digest(self):
        red = make_png(*minimal_chunks(b"\xff\x00\x00"), (b"IEND", b""))
        blue = make_png(*minimal_chunks(b"\x00\x00\xff"), (b"IEND", b""))

        assert ContentHasher.digest(red) != ContentHasher.digest(blue)

    def test_render_chunks_are_kept(self):
        ihdr, idat = minimal_chunks()
        plain = make_png(ihdr, idat, (b"IEND", b""))
        with_gamma = make_png(ihdr, (b"gAMA", b"\x00\x00\xb1\x8f"), idat, (b"IEND", b""))

        assert ContentHasher.digest(plain) != ContentHasher.digest(with_gamma)

    def test_bytes_after_iend_ignored(self, minimal_png):
        assert canonicalize_png(minimal_png + b"garbage") == canonicalize_png(minimal_png)

    def test_truncated_png_does_not_raise(self, minimal_png):
        truncated = minimal_png[:-6]
        assert ContentHasher.digest(truncated) == ContentHasher.digest(minimal_png[:-12])


class TestJpegDigest:
    """JPEG canonicalization."""

    def test_xmp_does_not_change_digest(self, pillow_jpeg):
        tagged = inject_xmp(pillow_jpeg, build_xmp_packet("https://example.com"))
        assert ContentHasher.digest(tagged) == ContentHasher.digest(pillow_jpeg)

    def test_comment_does_not_change_digest(self, pillow_jpeg):
        assert ContentHasher.digest(with_jpeg_comment(pillow_jpeg, b"hi")) == ContentHasher.digest(pillow_jpeg)

    def test_app0_is_dropped(self, pillow_jpeg):
        canonical = canonicalize(pillow_jpeg)

        assert canonical.startswith(b"\xff\xd8")
        assert b"JFIF" not in canonical
        assert canonical.endswith(b"\xff\xd9")


class TestFallback:

    def test_unknown_format_hashes_raw_bytes(self):
        data = b"GIF89a not really"
        assert ContentHasher.digest(data) == hashlib.sha256(data).hexdigest()

    def test_empty_input(self):
        assert ContentHasher.digest(b"") == hashlib.sha256(b"").hexdigest()


class TestFileHashing:
    """Hashing files from disk."""

    def test_digest_files(self, tmp_path, minimal_png, pillow_png):
        a = tmp_path / "a.png"
        b = tmp_path / "b.png"
        c = tmp_path / "c.png"
        a.write_bytes(minimal_png)
        b.write_bytes(generate(minimal_png, "card"))
        c.write_bytes(pillow_png)

        hasher = ContentHasher(max_workers=2)
        results = hasher.digest_files([a, b, c, tmp_path / "missing.png"])

        assert set(results) == {a, b, c}
        assert results[a] == results[b] != results[c]
        assert hasher.digest_file(a) == results[a]

    def test_find_by_hash(self, tmp_path, minimal_png, pillow_png):
        (tmp_path / "one.png").write_bytes(generate(minimal_png, "x"))
        (tmp_path / "two.png").write_bytes(pillow_png)
        hasher = ContentHasher()

        matches = hasher.find_by_hash(tmp_path.iterdir(), ContentHasher.digest(minimal_png))
        assert matches == [tmp_path / "one.png"]

    def test_empty_input_list(self):
        assert ContentHasher().digest_files([]) == {}
