"""
Rollback Transfer Use Case

Architectural Intent:
- Best-effort sweep removing the uploaded archive copy from every host
- Opens a fresh session per host; sessions of the failed run are not reused
- Sequential on purpose: this is a tail operation, not a latency path
- The first host failure stops the sweep and is raised as RollbackError
"""

import logging

from shipyard.application.use_cases.host_task import host_logger
from shipyard.domain.entities.transfer_config import TransferConfig
from shipyard.domain.errors import RollbackError, SessionError
from shipyard.domain.ports.remote_session_port import SessionFactoryPort
from shipyard.domain.services.remote_commands import remove_command
from shipyard.domain.value_objects.archive_handle import ArchiveHandle

logger = logging.getLogger(__name__)


def _rollback_error(host: str, error: Exception) -> RollbackError:
    if not isinstance(error, SessionError):
        logger.exception("Unexpected rollback failure on %s", host)
    return RollbackError(host, str(error) or type(error).__name__)


class RollbackTransfer:
    def __init__(self, session_factory: SessionFactoryPort):
        self.session_factory = session_factory

    async def clean_all(self, config: TransferConfig, archive: ArchiveHandle) -> None:
        remote_archive = archive.remote_path(config.archive.tar_tmp_path)
        command = remove_command(remote_archive)

        for host in config.hosts:
            log = host_logger(host, config, logger)
            log.info("remove file %s", remote_archive)

            try:
                session = await self.session_factory.connect(host, config)
            except Exception as e:
                raise _rollback_error(host, e) from e

            try:
                result = await session.run_command(command, config.command_timeout)
            except Exception as e:
                raise _rollback_error(host, e) from e
            finally:
                await session.close()

            if not result.ok:
                raise RollbackError(
                    host, result.stderr.strip() or f"exit status {result.exit_code}"
                )
            if result.stderr:
                raise RollbackError(host, result.stderr.strip())
