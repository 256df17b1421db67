import os
import struct
import tempfile
import zlib
from dataclasses import dataclass
from typing import Sequence, Tuple

from danmakufu.dat.definitions import (
    ARCHIVE_012M_SIGNATURE,
    ARCHIVE_PH3_SIGNATURE,
    COMPRESS_ZIP_SIGNATURE,
)


class TempFileHandle:
    def __init__(self, suffix: str = ".dat"):
        with tempfile.NamedTemporaryFile("x", suffix=suffix, delete=False) as h:
            self._filename = h.name

    @property
    def path(self):
        return self._filename

    def open(self, mode: str):
        return open(self._filename, mode)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            os.unlink(self._filename)
        except Exception as e:
            print(e)


def _u32(value: int) -> bytes:
    return struct.pack("<I", value)


def compress_zip(data: bytes) -> bytes:
    """Payload as stored for a compressed 0.12m entry."""
    return COMPRESS_ZIP_SIGNATURE + _u32(len(data)) + zlib.compress(data)


def build_012m(entries: Sequence[Tuple[bytes, bytes]]) -> bytes:
    """Build a 0.12m archive from (raw name, stored payload) pairs; payloads follow the table."""
    table_size = len(ARCHIVE_012M_SIGNATURE) + 4
    table_size += sum(4 + len(name) + 8 for name, _ in entries)

    table = [ARCHIVE_012M_SIGNATURE, _u32(len(entries))]
    offset = table_size
    for name, payload in entries:
        table.extend([_u32(len(name)), name, _u32(offset), _u32(len(payload))])
        offset += len(payload)
    return b"".join(table + [payload for _, payload in entries])


@dataclass
class Ph3Entry:
    dir_name: str
    name: str
    data: bytes
    compressed: bool = False

    @property
    def stored(self) -> bytes:
        return zlib.compress(self.data) if self.compressed else self.data


def _wstr(value: str) -> bytes:
    buffer = value.encode("utf-16-le")
    return _u32(len(buffer) // 2) + buffer


def _ph3_header(entries: Sequence[Ph3Entry], base: int) -> bytes:
    parts = []
    offset = base
    for entry in entries:
        stored = entry.stored
        body = b"".join(
            [
                _wstr(entry.dir_name),
                _wstr(entry.name),
                _u32(1 if entry.compressed else 0),
                _u32(len(entry.data)),
                _u32(len(stored)),
                _u32(offset),
            ]
        )
        parts.append(_u32(len(body) + 4) + body)
        offset += len(stored)
    return b"".join(parts)


def build_ph3(entries: Sequence[Ph3Entry], compress_header: bool = False) -> bytes:
    """Build a ph3 archive; payloads are addressed by absolute file offsets."""
    prefix_size = len(ARCHIVE_PH3_SIGNATURE) + 4 + 1 + 4
    # Header length does not depend on the offsets it holds; its compressed length might
    base = prefix_size + len(_ph3_header(entries, 0))
    while True:
        header = _ph3_header(entries, base)
        stored_header = zlib.compress(header) if compress_header else header
        end = prefix_size + len(stored_header)
        if end <= base:
            break
        base = end + 16

    prefix = b"".join(
        [
            ARCHIVE_PH3_SIGNATURE,
            _u32(len(entries)),
            bytes([1 if compress_header else 0]),
            _u32(len(stored_header)),
        ]
    )
    padding = b"\0" * (base - end)
    return b"".join([prefix, stored_header, padding] + [e.stored for e in entries])


def write_archive(directory, name: str, data: bytes) -> str:
    path = os.path.join(str(directory), name)
    with open(path, "wb") as h:
        h.write(data)
    return path
