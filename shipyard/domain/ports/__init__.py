"""
Domain Ports Package

Architectural Intent:
- Contains port interfaces (abstract contracts) for external dependencies
- Ports define what the transfer needs, adapters implement how
- Follows Hexagonal Architecture principles
"""

from shipyard.domain.ports.archiver_port import ArchiverPort
from shipyard.domain.ports.remote_session_port import (
    CommandResult,
    RemoteSessionPort,
    SessionFactoryPort,
)

__all__ = [
    "ArchiverPort",
    "CommandResult",
    "RemoteSessionPort",
    "SessionFactoryPort",
]
