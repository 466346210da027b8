"""
Remote Session Port

Architectural Intent:
- Port interface for one authenticated channel to a single host
- Defines the copy and command-execution contract host tasks rely on
- Implemented by adapters (Fabric/SSH, in-memory fakes, etc.)

Contract:
- Transport, authentication and timeout failures raise SessionError
- A command that ran returns CommandResult; a non-empty stderr is advisory
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from shipyard.domain.entities.transfer_config import TransferConfig


@dataclass(frozen=True)
class CommandResult:
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class RemoteSessionPort(ABC):
    """
    Port interface for one session on one host.
    """

    host: str

    @abstractmethod
    async def copy(self, local_path: str, remote_path: str) -> None:
        """
        Uploads one local file to remote_path.
        """
        pass

    @abstractmethod
    async def run_command(
        self, command: str, timeout: Optional[float] = None
    ) -> CommandResult:
        """
        Runs one shell command and waits for it or for the timeout.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class SessionFactoryPort(ABC):
    """
    Opens sessions; every call yields a fresh, exclusively owned session.
    """

    @abstractmethod
    async def connect(self, host: str, config: "TransferConfig") -> RemoteSessionPort:
        """
        Establishes and authenticates a session to host using the
        credentials, timeouts and proxy settings of config.
        Raises SessionError when the host cannot be reached.
        """
        pass
