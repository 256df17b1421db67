"""Readers for Danmakufu 0.12m ('PACK_FILE') and ph3 ('ArchiveFile') archives."""

from __future__ import annotations

import logging
import os
import sys
import time
import zlib
from dataclasses import dataclass
from io import BytesIO
from typing import BinaryIO, List, Optional, Union

from fs.errors import FSError
from relic.core.errors import RelicToolError
from relic.core.logmsg import BraceMessage

from danmakufu.dat.definitions import (
    COMPRESS_ZIP_MAGIC,
    COMPRESS_ZIP_OVERHEAD,
    TRANSFER_BUFFER_SIZE,
    ArchiveType,
)
from danmakufu.dat.errors import (
    DatExtractionError,
    DecompressionError,
    HeaderSizeError,
    MalformedEntryError,
)
from danmakufu.dat.lazyio import BinaryWindow, ZLibFileReader
from danmakufu.dat.output import Output
from danmakufu.dat.serialization import (
    check_magic_word,
    determine_archive_type,
    read_cstr,
    read_exact,
    read_uint8,
    read_uint32,
    read_wchar_str,
    validate_archive_header,
)
from danmakufu.dat.transfer import transfer

_logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FileEntry:
    """A 0.12m table entry; offset is absolute within the archive."""

    name: str
    offset: int
    length: int


@dataclass(slots=True)
class Ph3FileEntry:
    """A ph3 header entry; offset is absolute within the archive."""

    dir_name: str
    name: str
    is_compressed: bool
    uncompressed_size: int
    compressed_size: int
    offset: int


@dataclass(slots=True)
class ExtractionStats:
    """Statistics for extraction operation."""

    archive_type: ArchiveType
    out_path: Optional[str] = None
    extracted_files: int = 0
    extracted_bytes: int = 0
    elapsed: float = 0

    @property
    def is_archive(self) -> bool:
        return self.archive_type.is_archive


def _read_012m_entries(stream: BinaryIO, logger: logging.Logger) -> List[FileEntry]:
    file_count = read_uint32(stream, "file count")
    entries = []
    for _ in range(file_count):
        name = read_cstr(stream, logger)
        offset = read_uint32(stream, "offset")
        length = read_uint32(stream, "length")
        entries.append(FileEntry(name, offset, length))
    return entries


def extract_012m(
    stream: BinaryIO, output: Output, *, buffer_size: int = TRANSFER_BUFFER_SIZE
) -> int:
    """Extract every entry of a 0.12m archive into the output root; returns bytes written."""
    validate_archive_header(stream, ArchiveType.ARCHIVE_012M)
    entries = _read_012m_entries(stream, output.logger)

    written = 0
    for entry in entries:
        stream.seek(entry.offset)
        if check_magic_word(stream, COMPRESS_ZIP_MAGIC):
            if entry.length < COMPRESS_ZIP_OVERHEAD:
                raise MalformedEntryError(
                    entry.name, entry.length, COMPRESS_ZIP_OVERHEAD
                )
            uncompressed_size = read_uint32(stream, "uncompressed size")
            window = BinaryWindow(
                stream,
                entry.offset + COMPRESS_ZIP_OVERHEAD,
                entry.length - COMPRESS_ZIP_OVERHEAD,
            )
            source = ZLibFileReader(window, name=entry.name)
            size = uncompressed_size
        else:
            stream.seek(entry.offset)
            source = BinaryWindow(stream, entry.offset, entry.length)
            size = entry.length
        written += transfer(output, "", entry.name, source, size, buffer_size=buffer_size)
    return written


def _read_ph3_entry(header: BinaryIO, logger: logging.Logger) -> Ph3FileEntry:
    read_uint32(header, "entry size")  # unused; entries are read field by field
    dir_name = read_wchar_str(header, logger)
    name = read_wchar_str(header, logger)
    is_compressed = read_uint32(header, "compressed flag") != 0
    uncompressed_size = read_uint32(header, "uncompressed size")
    compressed_size = read_uint32(header, "compressed size")
    offset = read_uint32(header, "offset")
    return Ph3FileEntry(
        dir_name, name, is_compressed, uncompressed_size, compressed_size, offset
    )


def _read_ph3_header(stream: BinaryIO) -> BinaryIO:
    is_compressed = read_uint8(stream, "header compressed flag") != 0
    header_size = read_uint32(stream, "header size")
    if header_size > sys.maxsize:
        raise HeaderSizeError(header_size, sys.maxsize)
    buffer = read_exact(stream, header_size, "header")
    if is_compressed:
        try:
            buffer = zlib.decompress(buffer)
        except zlib.error as e:
            raise DecompressionError(None, e) from e
    return BytesIO(buffer)


def extract_ph3(
    stream: BinaryIO, output: Output, *, buffer_size: int = TRANSFER_BUFFER_SIZE
) -> int:
    """Extract every entry of a ph3 archive, recreating its directories; returns bytes written."""
    validate_archive_header(stream, ArchiveType.ARCHIVE_PH3)
    file_count = read_uint32(stream, "file count")

    written = 0
    with _read_ph3_header(stream) as header:
        for _ in range(file_count):
            entry = _read_ph3_entry(header, output.logger)
            stream.seek(entry.offset)
            if entry.is_compressed:
                window = BinaryWindow(stream, entry.offset, entry.compressed_size)
                source = ZLibFileReader(window, name=entry.name)
            else:
                source = BinaryWindow(stream, entry.offset, entry.uncompressed_size)
            written += transfer(
                output,
                entry.dir_name,
                entry.name,
                source,
                entry.uncompressed_size,
                buffer_size=buffer_size,
            )
    return written


def extract(
    stream: BinaryIO, output: Output, *, buffer_size: int = TRANSFER_BUFFER_SIZE
) -> ArchiveType:
    """Detect the archive type and extract it; non-archives are left untouched."""
    archive_type = determine_archive_type(stream)
    if archive_type == ArchiveType.ARCHIVE_012M:
        extract_012m(stream, output, buffer_size=buffer_size)
    elif archive_type == ArchiveType.ARCHIVE_PH3:
        extract_ph3(stream, output, buffer_size=buffer_size)
    return archive_type


def unpack(
    path: Union[str, os.PathLike],
    out_dir: Optional[Union[str, os.PathLike]] = None,
    *,
    buffer_size: int = TRANSFER_BUFFER_SIZE,
    logger: Optional[logging.Logger] = None,
) -> ExtractionStats:
    """Extract the archive at `path` next to it (or into `out_dir`).

    Returns stats with `ArchiveType.NOT_AN_ARCHIVE` (and creates nothing) when the
    file is not a Danmakufu archive. Any fatal problem is raised as a
    :class:`~danmakufu.dat.errors.DatError`.
    """
    logger = logger or _logger
    try:
        with open(path, "rb") as stream:
            archive_type = determine_archive_type(stream)
            stats = ExtractionStats(archive_type)
            if not archive_type.is_archive:
                return stats

            start = time.perf_counter()
            with Output.for_path(path, out_dir, logger=logger) as output:
                stats.out_path = output.display_out_path()
                logger.info(
                    BraceMessage(
                        "Extracting '{0}' to '{1}'...", os.fspath(path), stats.out_path
                    )
                )
                if archive_type == ArchiveType.ARCHIVE_012M:
                    stats.extracted_bytes = extract_012m(
                        stream, output, buffer_size=buffer_size
                    )
                else:
                    stats.extracted_bytes = extract_ph3(
                        stream, output, buffer_size=buffer_size
                    )
                stats.extracted_files = output.write_count()
            stats.elapsed = time.perf_counter() - start
            return stats
    except RelicToolError:
        raise
    except (OSError, FSError) as e:
        raise DatExtractionError(os.fspath(path), e) from e


__all__ = [
    "FileEntry",
    "Ph3FileEntry",
    "ExtractionStats",
    "extract_012m",
    "extract_ph3",
    "extract",
    "unpack",
]
