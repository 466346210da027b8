"""
Host Task Use Case

Architectural Intent:
- The per-host unit of work of a transfer
- Drives one exclusively owned session through a fixed operation sequence:
  copy -> (remove) -> mkdir -> extract per target -> remove archive copy
- Every failure is raised as a HostError tagged with the phase it hit

Ordering:
- Targets are processed strictly in configured order
- Within a target, remove precedes mkdir and mkdir precedes extract
"""

import logging
from typing import Optional

from shipyard.domain.entities.transfer_config import TransferConfig
from shipyard.domain.errors import ErrorKind, HostError, SessionError, TransferPhase
from shipyard.domain.ports.remote_session_port import (
    CommandResult,
    RemoteSessionPort,
    SessionFactoryPort,
)
from shipyard.domain.services.remote_commands import (
    extract_command,
    mkdir_command,
    remove_command,
)
from shipyard.domain.value_objects.archive_handle import ArchiveHandle

logger = logging.getLogger(__name__)


class HostLogAdapter(logging.LoggerAdapter):
    """Attaches the host as a structured field; prefixes it when several hosts run."""

    def __init__(self, base: logging.Logger, host: str, prefix: bool) -> None:
        super().__init__(base, {"host": host})
        self.prefix = prefix

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        if self.prefix:
            msg = f"{self.extra['host']}: {msg}"
        return msg, kwargs


def host_logger(host: str, config: TransferConfig, base: Optional[logging.Logger] = None) -> HostLogAdapter:
    return HostLogAdapter(base or logger, host, config.multi_host)


def _failure_message(command: str, result: CommandResult) -> str:
    stderr = result.stderr.strip()
    if stderr:
        return stderr
    return f"command {command!r} exited with status {result.exit_code}"


class HostTask:
    def __init__(self, session_factory: SessionFactoryPort):
        self.session_factory = session_factory

    async def run(self, host: str, config: TransferConfig, archive: ArchiveHandle) -> None:
        log = host_logger(host, config)

        try:
            session = await self.session_factory.connect(host, config)
        except SessionError as e:
            raise HostError(host, TransferPhase.CONNECT, str(e), ErrorKind.CONNECTION) from e

        try:
            await self._transfer(session, log, host, config, archive)
        finally:
            await session.close()

    async def _transfer(
        self,
        session: RemoteSessionPort,
        log: HostLogAdapter,
        host: str,
        config: TransferConfig,
        archive: ArchiveHandle,
    ) -> None:
        options = config.archive
        remote_archive = archive.remote_path(options.tar_tmp_path)

        log.info("scp file to server.", extra={"phase": TransferPhase.COPY.name})
        try:
            await session.copy(str(archive.local_path), remote_archive)
        except SessionError as e:
            raise HostError(host, TransferPhase.COPY, str(e), ErrorKind.COPY) from e

        for target in config.targets:
            if options.remove:
                log.info(
                    "Remove target folder: %s", target,
                    extra={"phase": TransferPhase.REMOVE_TARGET.name},
                )
                cmd = remove_command(target)
                result = await self._run(session, host, TransferPhase.REMOVE_TARGET, cmd, config)
                if not result.ok:
                    raise HostError(host, TransferPhase.REMOVE_TARGET, _failure_message(cmd, result))

            log.info("create folder %s", target, extra={"phase": TransferPhase.MKDIR.name})
            cmd = mkdir_command(target)
            result = await self._run(session, host, TransferPhase.MKDIR, cmd, config)
            if not result.ok:
                raise HostError(host, TransferPhase.MKDIR, _failure_message(cmd, result))
            if result.stderr:
                raise HostError(
                    host, TransferPhase.MKDIR, result.stderr.strip(), ErrorKind.REMOTE_STDERR
                )

            log.info("untar file %s", remote_archive, extra={"phase": TransferPhase.EXTRACT.name})
            cmd = extract_command(options, remote_archive, target, verbose=config.debug)
            log.debug("$ %s", cmd)
            result = await self._run(session, host, TransferPhase.EXTRACT, cmd, config)
            if result.stdout:
                log.info("output: %s", result.stdout.rstrip())
            # tar warnings on stderr are reported but only the exit status decides
            if result.stderr:
                log.warning(
                    "error: %s", result.stderr.rstrip(),
                    extra={"phase": TransferPhase.EXTRACT.name},
                )
            if not result.ok:
                raise HostError(host, TransferPhase.EXTRACT, _failure_message(cmd, result))

        log.info("remove file %s", remote_archive, extra={"phase": TransferPhase.CLEANUP.name})
        cmd = remove_command(remote_archive)
        result = await self._run(session, host, TransferPhase.CLEANUP, cmd, config)
        if not result.ok:
            raise HostError(host, TransferPhase.CLEANUP, _failure_message(cmd, result))
        if result.stderr:
            raise HostError(
                host, TransferPhase.CLEANUP, result.stderr.strip(), ErrorKind.REMOTE_STDERR
            )

    async def _run(
        self,
        session: RemoteSessionPort,
        host: str,
        phase: TransferPhase,
        command: str,
        config: TransferConfig,
    ) -> CommandResult:
        try:
            return await session.run_command(command, config.command_timeout)
        except SessionError as e:
            raise HostError(host, phase, str(e), ErrorKind.CONNECTION) from e
