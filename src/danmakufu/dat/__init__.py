"""
Extracts Touhou Danmakufu 0.12m and ph3 '.dat' archives
"""
from danmakufu.dat.definitions import ArchiveType
from danmakufu.dat.archive import ExtractionStats, extract, unpack
from danmakufu.dat.output import Output

__version__ = "1.0.0"

__all__ = [
    "ArchiveType",
    "ExtractionStats",
    "Output",
    "extract",
    "unpack",
]
