"""
Archive Handle Value Object

Architectural Intent:
- Points at the locally built archive that every host task uploads
- Created once before fan-out and only read afterwards
- The bare filename doubles as the remote artifact name
"""

import os
import random
import string
import tempfile
from dataclasses import dataclass
from pathlib import Path

_NAME_ALPHABET = string.ascii_letters + string.digits


@dataclass(frozen=True)
class ArchiveHandle:
    local_path: Path
    filename: str

    def __post_init__(self) -> None:
        if not self.filename:
            raise ValueError("Archive filename cannot be empty")
        if os.sep in self.filename or "/" in self.filename:
            raise ValueError(f"Archive filename must be a bare name: {self.filename!r}")

    def remote_path(self, prefix: str = "") -> str:
        """Remote location of the uploaded copy, e.g. '/tmp/' + 'abc.tar.gz'."""
        return f"{prefix}{self.filename}"

    def __str__(self) -> str:
        return str(self.local_path)

    @staticmethod
    def in_temp_dir(directory: str | None = None) -> "ArchiveHandle":
        """Allocates a random `<10 chars>.tar.gz` name in the temp directory."""
        name = "".join(random.choices(_NAME_ALPHABET, k=10)) + ".tar.gz"
        base = Path(directory or tempfile.gettempdir())
        return ArchiveHandle(local_path=base / name, filename=name)
