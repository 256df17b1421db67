"""Errors raised while reading Danmakufu archives.

Every error here is fatal; recoverable conditions are logged as warnings instead.
"""

from __future__ import annotations

from typing import Optional

from relic.core.errors import MismatchError, RelicToolError


class DatError(RelicToolError):
    """Base error for anything that aborts an extraction."""


class MagicMismatchError(MismatchError, DatError):
    def __init__(self, received: Optional[bytes], expected: Optional[bytes] = None):
        super().__init__("Magic Word", received, expected)


class TruncatedReadError(MismatchError, DatError):
    """A fixed-size field ended before all of its bytes could be read."""

    def __init__(
        self, field: str, received: Optional[int], expected: Optional[int] = None
    ):
        super().__init__(field, received, expected)


class MalformedEntryError(DatError):
    def __init__(self, name: str, length: int, overhead: int):
        super().__init__(
            f"Entry '{name}' is too small ({length} bytes) to hold a compressed stream ({overhead} bytes of overhead)!"
        )
        self.name = name
        self.length = length
        self.overhead = overhead


class DecompressionError(DatError):
    def __init__(self, name: Optional[str], reason: object):
        target = f"Entry '{name}'" if name is not None else "Archive header"
        super().__init__(f"{target} contains corrupt compressed data: {reason}")
        self.name = name


class BaseNameError(DatError):
    def __init__(self, path: str):
        super().__init__(f"Could not get file name for '{path}'")
        self.path = path


class HeaderSizeError(DatError):
    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Archive header is '{size}' bytes; larger than the addressable limit '{limit}'!"
        )
        self.size = size
        self.limit = limit


class DatExtractionError(DatError):
    """Wraps an I/O failure that aborted an extraction."""

    def __init__(self, path: str, cause: BaseException):
        super().__init__(f"Failed to extract '{path}': {cause}")
        self.path = path
        self.cause = cause


__all__ = [
    "DatError",
    "MagicMismatchError",
    "TruncatedReadError",
    "MalformedEntryError",
    "DecompressionError",
    "BaseNameError",
    "HeaderSizeError",
    "DatExtractionError",
]
