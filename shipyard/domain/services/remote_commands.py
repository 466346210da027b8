"""
Remote Command Builders

Architectural Intent:
- Builds the POSIX shell commands a host task issues
- Every path argument quoted via shlex.quote() to prevent shell injection
"""

from __future__ import annotations
import shlex

from shipyard.domain.entities.transfer_config import ArchiveOptions


def remove_command(path: str) -> str:
    return f"rm -rf {shlex.quote(path)}"


def mkdir_command(path: str) -> str:
    return f"mkdir -p {shlex.quote(path)}"


def extract_args(
    options: ArchiveOptions, archive_path: str, target: str, verbose: bool = False
) -> list[str]:
    args = [options.tar_exec, "-zvxf" if verbose else "-zxf", archive_path]

    if options.strip_components > 0:
        args += ["--strip-components", str(options.strip_components)]
    if options.overwrite:
        args.append("--overwrite")
    if options.unlink_first:
        args.append("--unlink-first")

    args += ["-C", target]
    return args


def extract_command(
    options: ArchiveOptions, archive_path: str, target: str, verbose: bool = False
) -> str:
    return shlex.join(extract_args(options, archive_path, target, verbose))
