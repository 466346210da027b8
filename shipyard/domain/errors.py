"""
Transfer Errors

Architectural Intent:
- One exception hierarchy for every failure class of a transfer
- Pre-flight failures (configuration, sources, archive build) are raised
- Per-host failures are tagged with host and phase so the orchestrator
  can decide programmatically whether a rollback sweep is needed
"""

from __future__ import annotations
from enum import Enum, auto
from typing import Optional


class TransferPhase(Enum):
    CONNECT = auto()
    COPY = auto()
    REMOVE_TARGET = auto()
    MKDIR = auto()
    EXTRACT = auto()
    CLEANUP = auto()


class ErrorKind(Enum):
    CONNECTION = auto()
    COPY = auto()
    COMMAND = auto()
    REMOTE_STDERR = auto()
    UNEXPECTED = auto()


# Nothing was written to the host before these phases failed.
_PRE_UPLOAD_PHASES = frozenset({TransferPhase.CONNECT, TransferPhase.COPY})


class TransferError(Exception):
    pass


class ConfigurationError(TransferError):
    pass


class MissingHostError(ConfigurationError):
    def __init__(self) -> None:
        super().__init__("missing server host")


class MissingCredentialsError(ConfigurationError):
    def __init__(self) -> None:
        super().__init__("can't connect without a private SSH key or password")


class AmbiguousCredentialsError(ConfigurationError):
    def __init__(self) -> None:
        super().__init__("can't set password and key at the same time")


class MissingSourceOrTargetError(ConfigurationError):
    def __init__(self) -> None:
        super().__init__("missing source or target config")


class NoSourceFilesError(TransferError):
    def __init__(self) -> None:
        super().__init__("can't find source files or directory")


class ArchiveBuildError(TransferError):
    pass


class SessionError(TransferError):
    """Transport, authentication or timeout failure raised by a session adapter."""


class HostError(TransferError):
    def __init__(
        self,
        host: str,
        phase: Optional[TransferPhase],
        message: str,
        kind: ErrorKind = ErrorKind.COMMAND,
    ) -> None:
        super().__init__(f"{host}: {message}")
        self.host = host
        self.phase = phase
        self.message = message
        self.kind = kind

    @property
    def triggers_rollback(self) -> bool:
        # phase is None when the failing step is unknown; assume the upload happened
        return self.phase not in _PRE_UPLOAD_PHASES

    def __repr__(self) -> str:
        phase = self.phase.name if self.phase else None
        return (
            f"HostError(host={self.host!r}, phase={phase}, "
            f"kind={self.kind.name}, message={self.message!r})"
        )


class RollbackError(TransferError):
    def __init__(self, host: str, message: str) -> None:
        super().__init__(f"rollback failed on {host}: {message}")
        self.host = host
        self.message = message
