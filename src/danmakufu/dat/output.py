"""Materializes archive entries as files under a fresh extraction directory.

Entry names come from the archive verbatim, so every path segment is sanitized for
the host filesystem and deduplicated per directory before anything is written.
Directories are created lazily, the first time an entry needs them.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Set, Union

from fs.base import FS
from fs.osfs import OSFS
from relic.core.logmsg import BraceMessage

from danmakufu.dat.definitions import (
    INVALID_NAME_CHARS,
    OUTPUT_SUFFIX,
    PLACEHOLDER_NAME,
    RESERVED_NAMES,
)
from danmakufu.dat.errors import BaseNameError

_logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[\\/]")
# Unicode White_Space; str.strip() would also remove the \x1c-\x1f control characters
_WHITESPACE = (
    "\t\n\x0b\x0c\r \x85\xa0\u1680\u2000\u2001\u2002\u2003\u2004\u2005\u2006"
    "\u2007\u2008\u2009\u200a\u2028\u2029\u202f\u205f\u3000"
)


def normalize(path: str) -> List[str]:
    """Split a '/' or '\\' delimited path into its non-blank segments."""
    return [part for part in _SEPARATORS.split(path) if len(part.strip(_WHITESPACE)) > 0]


def _trim(name: str) -> str:
    trimmed = name.strip(_WHITESPACE)
    while trimmed.endswith("."):
        trimmed = trimmed.rstrip(".").rstrip(_WHITESPACE)
    return trimmed


def sanitize(name: str) -> str:
    """Map an archive name onto one that is safe to create on Windows and POSIX."""
    sanitized = "".join(
        "_" if (c in INVALID_NAME_CHARS or ord(c) < 0x20) else c for c in _trim(name)
    )
    if sanitized.upper() in RESERVED_NAMES:
        sanitized += "_"
    if len(sanitized) == 0:
        sanitized = PLACEHOLDER_NAME
    return sanitized


class OutputDir:
    """A directory of the extraction tree; mirrors one directory of the archive."""

    def __init__(self, dir_fs: FS, path: str, logger: logging.Logger):
        self._fs = dir_fs
        self.path = path
        self.logger = logger
        self.children: Dict[str, OutputDir] = {}
        self.encountered_files: Set[str] = set()
        self.written_files: Set[str] = set()

    def _claim_name(self, original_name: str, kind: str) -> str:
        name = sanitize(original_name)
        if name in self.written_files:
            suffix_count = 2
            while f"{name}_{suffix_count}" in self.written_files:
                suffix_count += 1
            name = f"{name}_{suffix_count}"
        if name != original_name:
            self.logger.warning(
                BraceMessage(
                    "Invalid or duplicate {0} name '{1}' in archive. Outputting as '{2}'.",
                    kind,
                    original_name,
                    name,
                )
            )
        self.written_files.add(name)
        return name

    def subdir(self, original_name: str) -> OutputDir:
        """Get (creating on first use) the child directory for an archive directory name."""
        child = self.children.get(original_name)
        if child is None:
            name = self._claim_name(original_name, "directory")
            child_fs = self._fs.makedir(name)
            child = OutputDir(child_fs, os.path.join(self.path, name), self.logger)
            self.children[original_name] = child
        return child

    def create(self, original_name: str) -> BinaryIO:
        if original_name in self.encountered_files:
            self.logger.warning(
                BraceMessage("Duplicate file '{0}' in archive.", original_name)
            )
        self.encountered_files.add(original_name)

        name = self._claim_name(original_name, "file")
        return self._fs.openbin(name, "w")

    def close(self) -> None:
        for child in self.children.values():
            child.close()
        self._fs.close()


class Output:
    """The destination of a single extraction run."""

    def __init__(self, root_path: str, logger: Optional[logging.Logger] = None):
        self.logger = logger or _logger
        self.root_path = root_path
        self._root = OutputDir(OSFS(root_path, create=True), root_path, self.logger)
        self.extracted_files = 0

    @classmethod
    def for_path(
        cls,
        archive_path: Union[str, os.PathLike],
        out_dir: Optional[Union[str, os.PathLike]] = None,
        *,
        suffix: str = OUTPUT_SUFFIX,
        logger: Optional[logging.Logger] = None,
    ) -> Output:
        """Create the output for an archive at `<stem>_extracted`, or the first `<stem>_extracted_N` that does not exist yet."""
        path = Path(archive_path)
        stem = path.stem
        if len(stem) == 0 or stem in (".", ".."):
            raise BaseNameError(str(archive_path))

        parent = Path(out_dir) if out_dir is not None else path.parent
        suffix_count = 1
        while True:
            if suffix_count == 1:
                name = f"{stem}{suffix}"
            else:
                name = f"{stem}{suffix}_{suffix_count}"
            candidate = parent / name
            if not os.path.lexists(candidate):
                return cls(str(candidate), logger=logger)
            suffix_count += 1

    def display_out_path(self) -> str:
        return self.root_path

    def write_count(self) -> int:
        return self.extracted_files

    def resolve_dir(self, dir_path: str) -> OutputDir:
        node = self._root
        for segment in normalize(dir_path):
            node = node.subdir(segment)
        return node

    def create(self, dir_path: str, name: str) -> BinaryIO:
        """Open a new file for an entry named `name` inside archive directory `dir_path`."""
        handle = self.resolve_dir(dir_path).create(name)
        self.extracted_files += 1
        return handle

    def close(self) -> None:
        self._root.close()

    def __enter__(self) -> Output:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


__all__ = ["normalize", "sanitize", "OutputDir", "Output"]
