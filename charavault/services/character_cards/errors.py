"""Exceptions raised by the character card codecs."""

from typing import Optional


class CardCodecError(Exception):
    """Base exception for character card container errors."""
    pass


class CardStructureError(CardCodecError):
    """Container is truncated, has a bad signature, or cannot be rebuilt."""

    def __init__(self, message: str, offset: Optional[int] = None):
        self.offset = offset
        if offset is not None:
            message = f"{message} (at byte offset {offset})"
        super().__init__(message)


class CardFormatError(CardCodecError):
    """A located payload failed Base64 or JSON decoding."""

    def __init__(self, message: str, keyword: Optional[str] = None):
        self.keyword = keyword
        super().__init__(message)
