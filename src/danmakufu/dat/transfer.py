"""Bounded copies of entry payloads.

A transfer writes exactly the number of bytes an entry declares. Payloads that end
early or run long are reported and the extraction carries on; only I/O and
decompression failures propagate.
"""

from __future__ import annotations

import logging
from typing import BinaryIO, Optional, Protocol

from relic.core.logmsg import BraceMessage

from danmakufu.dat.definitions import TRANSFER_BUFFER_SIZE

_logger = logging.getLogger(__name__)


class Readable(Protocol):
    def read(self, __n: int = -1) -> bytes:
        raise NotImplementedError


class OutputSink(Protocol):
    def create(self, dir_path: str, name: str) -> BinaryIO:
        raise NotImplementedError

    @property
    def logger(self) -> logging.Logger:
        raise NotImplementedError


def copy_bounded(
    source: Readable,
    sink: BinaryIO,
    size: int,
    name: str,
    *,
    buffer_size: int = TRANSFER_BUFFER_SIZE,
    logger: Optional[logging.Logger] = None,
) -> int:
    """Copy `size` bytes from source to sink; returns the number of bytes written."""
    logger = logger or _logger
    remaining = size
    while remaining > 0:
        buffer = source.read(min(buffer_size, remaining))
        if len(buffer) == 0:
            logger.warning(
                BraceMessage(
                    "Entry '{0}' ended prematurely. (expected {1} bytes, got {2})",
                    name,
                    size,
                    size - remaining,
                )
            )
            return size - remaining
        sink.write(buffer)
        remaining -= len(buffer)

    if len(source.read(1)) != 0:
        logger.warning(
            BraceMessage(
                "Entry '{0}' contains more data than header suggests. Truncating at {1} bytes.",
                name,
                size,
            )
        )
    return size


def transfer(
    output: OutputSink,
    dir_path: str,
    name: str,
    source: Readable,
    size: int,
    *,
    buffer_size: int = TRANSFER_BUFFER_SIZE,
) -> int:
    """Create the entry's output file and fill it from source."""
    with output.create(dir_path, name) as sink:
        return copy_bounded(
            source,
            sink,
            size,
            name,
            buffer_size=buffer_size,
            logger=output.logger,
        )


__all__ = ["copy_bounded", "transfer", "OutputSink", "Readable"]
