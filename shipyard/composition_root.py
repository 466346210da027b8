"""
Composition Root

Architectural Intent:
- Dependency injection composition root for the shipyard application
- Single place where adapters and use cases are wired together

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- The archiver needs the configured tar executable, so wiring happens
  after configuration is loaded
"""

from dataclasses import dataclass
from shipyard.infrastructure.adapters.tar_adapter import TarArchiver
from shipyard.infrastructure.adapters.fabric_adapter import FabricSessionFactory
from shipyard.application.use_cases.host_task import HostTask
from shipyard.application.use_cases.rollback_transfer import RollbackTransfer
from shipyard.application.use_cases.transfer_archive import TransferArchive


@dataclass
class ShipyardContainer:
    """DI container holding all wired dependencies."""

    archiver: TarArchiver
    session_factory: FabricSessionFactory
    host_task: HostTask
    rollback: RollbackTransfer
    transfer: TransferArchive


def create_container(tar_exec: str = "tar") -> ShipyardContainer:
    """Create and wire all dependencies."""
    archiver = TarArchiver(tar_exec)
    session_factory = FabricSessionFactory()

    host_task = HostTask(session_factory)
    rollback = RollbackTransfer(session_factory)
    transfer = TransferArchive(archiver, host_task, rollback)

    return ShipyardContainer(
        archiver=archiver,
        session_factory=session_factory,
        host_task=host_task,
        rollback=rollback,
        transfer=transfer,
    )
