"""
Domain Services Package

Architectural Intent:
- Stateless helpers shared by the transfer use cases
- Source pattern resolution and remote command construction
"""

from shipyard.domain.services.remote_commands import (
    extract_args,
    extract_command,
    mkdir_command,
    remove_command,
)
from shipyard.domain.services.source_resolver import resolve_sources

__all__ = [
    "extract_args",
    "extract_command",
    "mkdir_command",
    "remove_command",
    "resolve_sources",
]
