"""
Content Hashing
===============

Metadata-independent content identifiers for image files.

PNG and JPEG containers are canonicalized (text, EXIF, XMP and other ancillary
blocks removed) before hashing, so editing an embedded character card or
re-tagging an image does not change its identity. Anything else is hashed
as-is.
"""

import hashlib
import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

from charavault.services.character_cards.errors import CardStructureError
from charavault.services.character_cards.jpeg_codec import SOI, is_jpeg, iter_segments
from charavault.services.character_cards.png_codec import IEND_CHUNK, PNG_SIGNATURE, is_png, iter_chunks

logger = logging.getLogger(__name__)

# Chunks needed to render the image; everything else is metadata
PNG_KEEP_CHUNKS = frozenset({
    b"IHDR", b"PLTE", b"IDAT", b"IEND",
    b"tRNS", b"gAMA", b"cHRM", b"sRGB", b"iCCP",
})

# SOF0-15 (incl. DHT 0xC4, DAC 0xCC), RST0-7, EOI, SOS, DQT, DNL, DRI, DHP, EXP
JPEG_KEEP_MARKERS = frozenset(range(0xC0, 0xD0)) | frozenset(range(0xD0, 0xE0))

PathLike = Union[str, os.PathLike]


def canonicalize_png(data: bytes) -> bytes:
    """Signature plus allow-listed chunks in file order, up to IEND."""
    parts = [PNG_SIGNATURE]
    try:
        for chunk in iter_chunks(data):
            if chunk.type in PNG_KEEP_CHUNKS:
                parts.append(chunk.to_bytes())
            if chunk.type == IEND_CHUNK:
                break
    except CardStructureError as e:
        logger.debug(f"PNG canonicalization stopped early: {e}")
    return b"".join(parts)


def canonicalize_jpeg(data: bytes) -> bytes:
    """SOI plus frame-structural segments and the scan data; APPn/COM dropped."""
    parts = [SOI]
    try:
        for segment in iter_segments(data):
            if segment.marker in JPEG_KEEP_MARKERS:
                parts.append(segment.raw)
    except CardStructureError as e:
        logger.debug(f"JPEG canonicalization stopped early: {e}")
    return b"".join(parts)


def canonicalize(data: bytes) -> bytes:
    if is_png(data):
        return canonicalize_png(data)
    if is_jpeg(data):
        return canonicalize_jpeg(data)
    return data


class ContentHasher:
    """
    Compute content hashes for buffers and files.

    The digest algorithm (SHA-256) is not semantically significant; only its
    stability is. Stored hashes depend on it, so changing it means rehashing.
    """

    def __init__(self, max_workers: Optional[int] = None):
        """
        Args:
            max_workers: Upper bound on parallel hashing threads
                (defaults to the CPU count)
        """
        self.max_workers = max_workers or os.cpu_count() or 4

    @staticmethod
    def digest(data: bytes) -> str:
        """Hex digest of the canonicalized bytes. Never raises for any input."""
        return hashlib.sha256(canonicalize(data)).hexdigest()

    def digest_file(self, path: PathLike) -> str:
        """
        Hash a file on disk.

        Raises:
            OSError: If the file cannot be read
        """
        with open(path, "rb") as f:
            return self.digest(f.read())

    def digest_files(self, paths: Iterable[PathLike], max_workers: Optional[int] = None) -> Dict[Path, str]:
        """
        Hash many files in parallel.

        Files that cannot be read are logged and left out of the result.
        No ordering is implied by the returned mapping.
        """
        paths = [Path(p) for p in paths]
        results: Dict[Path, str] = {}
        if not paths:
            return results

        workers = min(max_workers or self.max_workers, len(paths))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="content-hash") as executor:
            futures = {executor.submit(self.digest_file, path): path for path in paths}
            for future in as_completed(futures):
                path = futures[future]
                try:
                    results[path] = future.result()
                except OSError as e:
                    logger.warning(f"Could not hash {path}: {e}")

        logger.debug(f"Hashed {len(results)}/{len(paths)} file(s) with {workers} worker(s)")
        return results

    def find_by_hash(self, paths: Iterable[PathLike], target_hash: str) -> list[Path]:
        """Return the paths whose content hash equals ``target_hash``, sorted."""
        return sorted(path for path, value in self.digest_files(paths).items() if value == target_hash)
