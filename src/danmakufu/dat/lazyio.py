from __future__ import annotations

import os
import zlib
from contextlib import contextmanager
from io import BytesIO
from types import TracebackType
from typing import BinaryIO, Iterator, Optional, Type

from danmakufu.dat.errors import DecompressionError

_KiB = 1024


class BinaryWrapper:
    """Read-only wrapper over a binary stream; does not own the parent unless asked."""

    def __init__(
        self, parent: BinaryIO, close_parent: bool = False, name: Optional[str] = None
    ):
        self._parent = parent
        self._parent_is_bytesio = isinstance(parent, BytesIO)
        self._close_parent = close_parent
        self._closed = False
        self._name = name

    def __enter__(self) -> BinaryWrapper:
        return self

    def __exit__(
        self,
        __t: Type[BaseException] | None,
        __value: BaseException | None,
        __traceback: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def name(self) -> Optional[str]:
        if self._name is not None or self._parent_is_bytesio:
            return self._name
        return getattr(self._parent, "name", None)

    @property
    def closed(self) -> bool:
        return self._closed or self._parent.closed

    def close(self) -> None:
        if self._close_parent:
            self._parent.close()
        self._closed = True

    def readable(self) -> bool:
        return True

    def writable(self) -> bool:
        return False

    def seekable(self) -> bool:
        return self._parent.seekable()

    def read(self, __n: int = -1) -> bytes:
        return self._parent.read(__n)

    def seek(self, __offset: int, __whence: int = 0) -> int:
        return self._parent.seek(__offset, __whence)

    def tell(self) -> int:
        return self._parent.tell()


class BinaryWindow(BinaryWrapper):
    """A view of `size` bytes of the parent, starting at `start`.

    Reads are clamped to the window; the parent is repositioned before every read,
    so several windows (or the parent itself) may be used in between.
    """

    def __init__(
        self,
        parent: BinaryIO,
        start: int,
        size: int,
        close_parent: bool = False,
        name: Optional[str] = None,
    ):
        super().__init__(parent, close_parent, name=name)
        self._now = 0
        self._start = start
        self._size = size

    @property
    def _end(self) -> int:
        return self._start + self._size

    @property
    def _remaining(self) -> int:
        return max(self._size - self._now, 0)

    def tell(self) -> int:
        return self._now

    @contextmanager
    def __rw_ctx(self) -> Iterator[None]:
        self.seek(self._now)
        yield
        self._now = self._parent.tell() - self._start

    def seek(self, __offset: int, __whence: int = 0) -> int:
        if __whence == os.SEEK_SET:
            new_now = __offset
        elif __whence == os.SEEK_CUR:
            new_now = __offset + self._now
        elif __whence == os.SEEK_END:
            new_now = self._size + __offset
        else:
            raise ValueError(__whence)

        if new_now < 0:
            raise ValueError(f"Cannot seek to '{new_now}'; before the start of the window")
        self._parent.seek(self._start + new_now, os.SEEK_SET)
        self._now = new_now
        return self._now

    def read(self, __n: int = -1) -> bytes:
        with self.__rw_ctx():
            remaining = self._remaining

            if __n is None or __n < 0:  # Read All
                __n = remaining
            elif __n > remaining:  # Clamp
                __n = remaining
            return self._parent.read(__n)


class ZLibFileReader(BinaryWrapper):
    """Streams the decompressed contents of a zlib/DEFLATE compressed parent.

    Output is produced incrementally; at most `chunk_size` bytes of compressed input
    and `chunk_size` bytes of pending output are held at any time.
    """

    def __init__(
        self,
        parent: BinaryIO,
        *,
        chunk_size: int = 16 * _KiB,
        name: Optional[str] = None,
    ):
        super().__init__(parent, name=name)
        self._decompressor = zlib.decompressobj()
        self._chunk_size = chunk_size
        self._pending = b""
        self._eof = False
        self._now = 0

    def _fill(self) -> None:
        decompressor = self._decompressor
        if decompressor.eof:
            # Anything after the end of the zlib stream is not part of the data
            self._eof = True
            return

        chunk = decompressor.unconsumed_tail or self._parent.read(self._chunk_size)
        try:
            if len(chunk) == 0:
                self._pending = decompressor.flush()
                self._eof = True
                if not decompressor.eof:
                    raise DecompressionError(
                        self._name, "unexpected end of compressed stream"
                    )
            else:
                self._pending = decompressor.decompress(chunk, self._chunk_size)
        except zlib.error as e:
            raise DecompressionError(self._name, e) from e

    def read(self, __n: int = -1) -> bytes:
        parts = []
        remaining = -1 if __n is None or __n < 0 else __n
        while remaining != 0:
            if len(self._pending) == 0:
                if self._eof:
                    break
                self._fill()
                continue
            size = len(self._pending) if remaining < 0 else min(remaining, len(self._pending))
            parts.append(self._pending[:size])
            self._pending = self._pending[size:]
            if remaining > 0:
                remaining -= size
        buffer = b"".join(parts)
        self._now += len(buffer)
        return buffer

    def seekable(self) -> bool:
        return False

    def seek(self, __offset: int, __whence: int = 0) -> int:
        raise NotImplementedError("ZLibFileReader is a forward-only stream")

    def tell(self) -> int:
        return self._now


__all__ = ["BinaryWrapper", "BinaryWindow", "ZLibFileReader"]
