"""Definitions expressed concretely in core."""

from __future__ import annotations

from enum import Enum
from typing import FrozenSet

from relic.core.serialization import MagicWord

ARCHIVE_012M_SIGNATURE = b"PACK_FILE\0"
ARCHIVE_PH3_SIGNATURE = b"ArchiveFile"
COMPRESS_ZIP_SIGNATURE = b"COMPRESS_ZIP\0"

ARCHIVE_012M_MAGIC = MagicWord(ARCHIVE_012M_SIGNATURE, name="Danmakufu 0.12m Magic Word")
ARCHIVE_PH3_MAGIC = MagicWord(ARCHIVE_PH3_SIGNATURE, name="Danmakufu ph3 Magic Word")
COMPRESS_ZIP_MAGIC = MagicWord(COMPRESS_ZIP_SIGNATURE, name="Compress Zip Magic Word")

# marker + u32 uncompressed size
COMPRESS_ZIP_OVERHEAD = len(COMPRESS_ZIP_SIGNATURE) + 4

_KiB = 1024

TRANSFER_BUFFER_SIZE = 64 * _KiB
OUTPUT_SUFFIX = "_extracted"
PLACEHOLDER_NAME = "unnamed"

INVALID_NAME_CHARS = frozenset('<>:"/\\|?*')

RESERVED_NAMES: FrozenSet[str] = frozenset(
    [".", "..", "CON", "PRN", "AUX", "NUL"]
    + [f"COM{i}" for i in range(1, 10)]
    + [f"LPT{i}" for i in range(1, 10)]
)


class ArchiveType(Enum):
    """The container layouts understood by the extractor."""

    ARCHIVE_012M = "0.12m"
    ARCHIVE_PH3 = "ph3"
    NOT_AN_ARCHIVE = "none"

    @property
    def is_archive(self) -> bool:
        return self is not ArchiveType.NOT_AN_ARCHIVE

    def __str__(self) -> str:
        if not self.is_archive:
            return "Not an Archive"
        return f"Danmakufu {self.value} Archive"


__all__ = [
    "ARCHIVE_012M_SIGNATURE",
    "ARCHIVE_PH3_SIGNATURE",
    "COMPRESS_ZIP_SIGNATURE",
    "ARCHIVE_012M_MAGIC",
    "ARCHIVE_PH3_MAGIC",
    "COMPRESS_ZIP_MAGIC",
    "COMPRESS_ZIP_OVERHEAD",
    "TRANSFER_BUFFER_SIZE",
    "OUTPUT_SUFFIX",
    "PLACEHOLDER_NAME",
    "INVALID_NAME_CHARS",
    "RESERVED_NAMES",
    "ArchiveType",
]
