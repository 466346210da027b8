"""
Archiver Port

Architectural Intent:
- Port interface for turning resolved local files into one archive
- Abstracts the external compression tool
- Implemented by TarArchiver
"""

from abc import ABC, abstractmethod
from pathlib import Path

from shipyard.domain.value_objects.source_files import SourceFiles


class ArchiverPort(ABC):
    """
    Port interface for building the local archive.
    """

    @abstractmethod
    async def build(self, files: SourceFiles, output_path: Path) -> None:
        """
        Writes a compressed archive of files to output_path.
        Raises ArchiveBuildError with the tool's message on failure.
        """
        pass

    @abstractmethod
    async def check(self) -> str:
        """
        Verifies the tool is available and returns its version banner.
        """
        pass
