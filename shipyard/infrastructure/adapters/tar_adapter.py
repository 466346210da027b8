"""
Tar Adapter

Architectural Intent:
- Infrastructure adapter implementing ArchiverPort
- Builds the gzip tarball with the external tar executable
- Uses subprocess for the tar CLI wrapped in async
"""

import asyncio
import logging
import shlex
import subprocess
from pathlib import Path

from shipyard.domain.errors import ArchiveBuildError
from shipyard.domain.ports.archiver_port import ArchiverPort
from shipyard.domain.value_objects.source_files import SourceFiles

logger = logging.getLogger(__name__)


class TarArchiver(ArchiverPort):
    def __init__(self, tar_exec: str = "tar"):
        self.tar_exec = tar_exec

    def build_args(self, files: SourceFiles, output_path: Path) -> list[str]:
        args: list[str] = []
        for pattern in files.excludes:
            args += ["--exclude", pattern]
        args += ["-zcvf", str(output_path)]
        args += list(files.sources)
        return args

    async def build(self, files: SourceFiles, output_path: Path) -> None:
        cmd = [self.tar_exec, *self.build_args(files, output_path)]

        def _build():
            logger.debug("$ %s", shlex.join(cmd))
            try:
                result = subprocess.run(cmd, capture_output=True, text=True)
            except FileNotFoundError as e:
                raise ArchiveBuildError(f"'{self.tar_exec}' not found") from e

            if result.returncode != 0:
                raise ArchiveBuildError(
                    f"{self.tar_exec} exited with status {result.returncode}: "
                    f"{result.stderr.strip()}"
                )
            for line in result.stdout.splitlines():
                logger.debug(line)

        await asyncio.get_event_loop().run_in_executor(None, _build)

    async def check(self) -> str:
        def _check():
            try:
                result = subprocess.run(
                    [self.tar_exec, "--version"],
                    capture_output=True,
                    text=True,
                    check=True,
                )
            except FileNotFoundError as e:
                raise ArchiveBuildError(f"'{self.tar_exec}' not found") from e
            except subprocess.CalledProcessError as e:
                raise ArchiveBuildError(f"{self.tar_exec} --version failed: {e.stderr}") from e
            lines = result.stdout.strip().splitlines()
            return lines[0] if lines else self.tar_exec

        return await asyncio.get_event_loop().run_in_executor(None, _check)
