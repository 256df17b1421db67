import logging
import struct
from io import BytesIO

import pytest

from danmakufu.dat.definitions import (
    ARCHIVE_012M_SIGNATURE,
    ARCHIVE_PH3_SIGNATURE,
    ArchiveType,
)
from danmakufu.dat.errors import MagicMismatchError, TruncatedReadError
from danmakufu.dat.serialization import (
    determine_archive_type,
    read_cstr,
    read_uint32,
    read_wchar_str,
    validate_archive_header,
)
from tests.util import TempFileHandle


_DETECTION_CASES = [
    (ARCHIVE_012M_SIGNATURE + b"\x00\x00\x00\x00", ArchiveType.ARCHIVE_012M),
    (ARCHIVE_012M_SIGNATURE, ArchiveType.ARCHIVE_012M),
    (ARCHIVE_PH3_SIGNATURE + b"\x00\x00\x00\x00", ArchiveType.ARCHIVE_PH3),
    (ARCHIVE_PH3_SIGNATURE, ArchiveType.ARCHIVE_PH3),
    (b"", ArchiveType.NOT_AN_ARCHIVE),
    (b"PACK_FILE", ArchiveType.NOT_AN_ARCHIVE),
    (b"PACK_FILE\x01extra", ArchiveType.NOT_AN_ARCHIVE),
    (b"ArchiveFil", ArchiveType.NOT_AN_ARCHIVE),
    (b"archivefile", ArchiveType.NOT_AN_ARCHIVE),
    (b"_ARCHIVE\x02\x00\x00\x00", ArchiveType.NOT_AN_ARCHIVE),
    (b" " + ARCHIVE_PH3_SIGNATURE, ArchiveType.NOT_AN_ARCHIVE),
]


@pytest.mark.parametrize(["buffer", "expected"], _DETECTION_CASES)
def test_determine_archive_type(buffer: bytes, expected: ArchiveType):
    with BytesIO(buffer) as stream:
        stream.seek(len(buffer))
        assert determine_archive_type(stream) == expected
        assert stream.tell() == 0
        # Detection is repeatable
        assert determine_archive_type(stream) == expected


@pytest.mark.parametrize(["buffer", "expected"], _DETECTION_CASES[:4])
def test_determine_archive_type_file(buffer: bytes, expected: ArchiveType):
    with TempFileHandle() as h:
        with h.open("wb") as w:
            w.write(buffer)
        with h.open("rb") as r:
            assert determine_archive_type(r) == expected


class _BrokenStream(BytesIO):
    def read(self, *args, **kwargs):
        raise OSError("device not ready")


def test_determine_archive_type_read_failure():
    with _BrokenStream(ARCHIVE_012M_SIGNATURE) as stream:
        assert determine_archive_type(stream) == ArchiveType.NOT_AN_ARCHIVE


def test_validate_archive_header():
    with BytesIO(ARCHIVE_PH3_SIGNATURE + b"\x01\x00\x00\x00") as stream:
        validate_archive_header(stream, ArchiveType.ARCHIVE_PH3)
        assert stream.tell() == len(ARCHIVE_PH3_SIGNATURE)
        assert read_uint32(stream) == 1


def test_validate_archive_header_mismatch():
    with BytesIO(ARCHIVE_PH3_SIGNATURE) as stream:
        with pytest.raises(MagicMismatchError):
            validate_archive_header(stream, ArchiveType.ARCHIVE_012M)


def test_read_uint32_truncated():
    with BytesIO(b"\x01\x02") as stream:
        with pytest.raises(TruncatedReadError):
            read_uint32(stream)


def _cstr(buffer: bytes) -> BytesIO:
    return BytesIO(struct.pack("<I", len(buffer)) + buffer)


@pytest.mark.parametrize(
    ["buffer", "expected"],
    [
        (b"test.txt", "test.txt"),
        (b"test.txt\0", "test.txt"),
        (b"test.txt\0\0\0\0", "test.txt"),
        (b"test\0.txt", "test"),
        (b"\0garbage", ""),
        (b"", ""),
        ("音楽/bgm.ogg".encode("utf-8"), "音楽/bgm.ogg"),
        ("テスト.txt".encode("cp932"), "テスト.txt"),
        ("画像\\背景.png".encode("cp932") + b"\0\0", "画像\\背景.png"),
    ],
)
def test_read_cstr(buffer: bytes, expected: str, caplog):
    with caplog.at_level(logging.WARNING):
        with _cstr(buffer) as stream:
            assert read_cstr(stream) == expected
            assert stream.tell() == 4 + len(buffer)
    assert "invalid" not in caplog.text


def test_read_cstr_lossy(caplog):
    with caplog.at_level(logging.WARNING):
        with _cstr(b"bad\x83") as stream:
            name = read_cstr(stream)
    assert name == "bad\ufffd"
    assert "invalid UTF-8 or SJIS name" in caplog.text


def test_read_cstr_truncated():
    with BytesIO(struct.pack("<I", 10) + b"short") as stream:
        with pytest.raises(TruncatedReadError):
            read_cstr(stream)


def _wstr(value: str) -> BytesIO:
    buffer = value.encode("utf-16-le")
    return BytesIO(struct.pack("<I", len(buffer) // 2) + buffer)


@pytest.mark.parametrize("value", ["", "sub", "script/main.txt", "東方.dat"])
def test_read_wchar_str(value: str, caplog):
    with caplog.at_level(logging.WARNING):
        with _wstr(value) as stream:
            assert read_wchar_str(stream) == value
    assert "invalid" not in caplog.text


def test_read_wchar_str_lossy(caplog):
    # Lone high surrogate
    with BytesIO(struct.pack("<I", 2) + b"a\x00\x00\xd8") as stream:
        with caplog.at_level(logging.WARNING):
            name = read_wchar_str(stream)
    assert name == "a\ufffd"
    assert "invalid UTF-16 name" in caplog.text


def test_read_wchar_str_truncated():
    # Length counts code units, not bytes
    with BytesIO(struct.pack("<I", 3) + b"a\x00b\x00") as stream:
        with pytest.raises(TruncatedReadError):
            read_wchar_str(stream)
