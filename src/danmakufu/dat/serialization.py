from __future__ import annotations

import logging
import struct
from typing import BinaryIO, Optional

from relic.core.errors import RelicToolError
from relic.core.logmsg import BraceMessage
from relic.core.serialization import MagicWord

from danmakufu.dat.definitions import (
    ARCHIVE_012M_MAGIC,
    ARCHIVE_PH3_MAGIC,
    ARCHIVE_012M_SIGNATURE,
    ARCHIVE_PH3_SIGNATURE,
    ArchiveType,
)
from danmakufu.dat.errors import MagicMismatchError, TruncatedReadError

_logger = logging.getLogger(__name__)

_UINT8 = struct.Struct("<B")
_UINT32 = struct.Struct("<I")

# Windows-31J; the code page Danmakufu 0.12m archives were authored with
_LEGACY_ENCODING = "cp932"


def read_exact(stream: BinaryIO, size: int, field: str = "buffer") -> bytes:
    buffer = stream.read(size)
    if len(buffer) != size:
        raise TruncatedReadError(field, len(buffer), size)
    return buffer


def read_uint8(stream: BinaryIO, field: str = "uint8") -> int:
    (value,) = _UINT8.unpack(read_exact(stream, _UINT8.size, field))
    return value


def read_uint32(stream: BinaryIO, field: str = "uint32") -> int:
    (value,) = _UINT32.unpack(read_exact(stream, _UINT32.size, field))
    return value


def check_magic_word(stream: BinaryIO, magic: MagicWord) -> bool:
    """Consumes the magic word's length from the stream; any failure to read is a mismatch."""
    try:
        return magic.check(stream, advance=True)
    except (OSError, RelicToolError):
        return False


def _check_archive_header(stream: BinaryIO, magic: MagicWord) -> bool:
    try:
        stream.seek(0)
    except OSError:
        return False
    return check_magic_word(stream, magic)


def determine_archive_type(stream: BinaryIO) -> ArchiveType:
    """Classifies the stream by its magic word, leaving it positioned at the start."""
    archive_type = ArchiveType.NOT_AN_ARCHIVE
    if _check_archive_header(stream, ARCHIVE_012M_MAGIC):
        archive_type = ArchiveType.ARCHIVE_012M
    elif _check_archive_header(stream, ARCHIVE_PH3_MAGIC):
        archive_type = ArchiveType.ARCHIVE_PH3
    try:
        stream.seek(0)
    except OSError:
        pass  # detection never fails; the parser will surface the error
    return archive_type


_SIGNATURES = {
    ArchiveType.ARCHIVE_012M: (ARCHIVE_012M_MAGIC, ARCHIVE_012M_SIGNATURE),
    ArchiveType.ARCHIVE_PH3: (ARCHIVE_PH3_MAGIC, ARCHIVE_PH3_SIGNATURE),
}


def validate_archive_header(stream: BinaryIO, archive_type: ArchiveType) -> None:
    """Seeks to the start and consumes the magic word, raising if it does not match."""
    magic, signature = _SIGNATURES[archive_type]
    stream.seek(0)
    if not magic.check(stream, advance=True):
        stream.seek(0)
        raise MagicMismatchError(stream.read(len(signature)), signature)


def read_cstr(stream: BinaryIO, logger: Optional[logging.Logger] = None) -> str:
    """Reads a u32 length-prefixed, NUL padded 8-bit name.

    Names are tried as UTF-8, then as Windows-31J; anything else is decoded lossily
    and reported.
    """
    logger = logger or _logger
    size = read_uint32(stream, "name length")
    buffer = read_exact(stream, size, "name")
    buffer = buffer.split(b"\0", 1)[0]

    try:
        return buffer.decode("utf-8")
    except UnicodeDecodeError:
        pass
    try:
        return buffer.decode(_LEGACY_ENCODING)
    except UnicodeDecodeError:
        pass

    name = buffer.decode("utf-8", errors="replace")
    logger.warning(
        BraceMessage("Entry '{0}' has an invalid UTF-8 or SJIS name.", name)
    )
    return name


def read_wchar_str(stream: BinaryIO, logger: Optional[logging.Logger] = None) -> str:
    """Reads a u32 length-prefixed UTF-16LE name; the length counts code units."""
    logger = logger or _logger
    count = read_uint32(stream, "name length")
    buffer = read_exact(stream, count * 2, "name")
    try:
        return buffer.decode("utf-16-le")
    except UnicodeDecodeError:
        name = buffer.decode("utf-16-le", errors="replace")
        logger.warning(BraceMessage("Entry '{0}' has an invalid UTF-16 name.", name))
        return name


__all__ = [
    "read_exact",
    "read_uint8",
    "read_uint32",
    "check_magic_word",
    "determine_archive_type",
    "validate_archive_header",
    "read_cstr",
    "read_wchar_str",
]
