"""
Transfer Result Module

Architectural Intent:
- HostOutcome records what one host task reported
- TransferResult is the terminal, single-error outcome of one run
- The reported error is the first one observed across hosts, not the first
  host in configuration order
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional

from shipyard.domain.errors import HostError, RollbackError, TransferError


@dataclass(frozen=True)
class HostOutcome:
    host: str
    success: bool
    error: Optional[HostError] = None

    @staticmethod
    def ok(host: str) -> "HostOutcome":
        return HostOutcome(host=host, success=True)

    @staticmethod
    def failed(error: HostError) -> "HostOutcome":
        return HostOutcome(host=error.host, success=False, error=error)


@dataclass(frozen=True)
class TransferResult:
    success: bool
    error: Optional[TransferError] = None
    rollback_attempted: bool = False
    rollback_error: Optional[RollbackError] = None
    outcomes: tuple[HostOutcome, ...] = field(default_factory=tuple)

    @property
    def failed_hosts(self) -> list[str]:
        return [o.host for o in self.outcomes if not o.success]

    @property
    def message(self) -> str:
        if self.success:
            return "transferred data to all hosts"
        parts = [str(self.error)]
        if self.rollback_error is not None:
            parts.append(str(self.rollback_error))
        return "; ".join(parts)
