from __future__ import annotations

from argparse import ArgumentParser, Namespace
from logging import Logger
from typing import Optional

from relic.core.cli import (
    CliPlugin,
    CliPluginGroup,
    RelicArgParser,
    _SubParsersAction,
    get_dir_type_validator,
    get_file_type_validator,
)
from relic.core.logmsg import BraceMessage

from danmakufu.dat.archive import unpack
from danmakufu.dat.errors import DatError

_SUCCESS = 0


class RelicDatCli(CliPluginGroup):
    GROUP = "relic.cli.dat"

    def _create_parser(
        self, command_group: Optional[_SubParsersAction] = None
    ) -> ArgumentParser:
        name = "dat"
        if command_group is None:
            return RelicArgParser(name)
        return command_group.add_parser(name)


class RelicDatUnpackCli(CliPlugin):
    def _create_parser(
        self, command_group: Optional[_SubParsersAction] = None
    ) -> ArgumentParser:
        parser: ArgumentParser
        desc = """Unpack a Danmakufu 0.12m or ph3 .dat archive to the filesystem.
            Files are written to '[name of dat]_extracted' next to the archive;
            if that already exists, a numbered directory is used instead."""
        if command_group is None:
            parser = RelicArgParser("unpack", description=desc)
        else:
            parser = command_group.add_parser("unpack", description=desc)

        parser.add_argument(
            "src_dat",
            type=get_file_type_validator(exists=True),
            help="Source DAT File",
        )
        parser.add_argument(
            "-o",
            "--out-dir",
            type=get_dir_type_validator(exists=True),
            help="Directory to create the extraction folder in (default: the archive's directory)",
            default=None,
        )

        return parser

    def command(self, ns: Namespace, *, logger: Logger) -> Optional[int]:
        infile: str = ns.src_dat
        outdir: Optional[str] = ns.out_dir

        try:
            stats = unpack(infile, outdir, logger=logger)
        except DatError as e:
            logger.error(BraceMessage("Error: {0}", e))
            raise

        if not stats.is_archive:
            logger.warning(
                BraceMessage(
                    "File '{0}' is not a Danmakufu 0.12m or ph3 archive.", infile
                )
            )
            return _SUCCESS

        logger.info(
            BraceMessage(
                "Extracted {0} files in {1} ms.",
                stats.extracted_files,
                int(stats.elapsed * 1000),
            )
        )
        return _SUCCESS
