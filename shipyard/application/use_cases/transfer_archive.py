"""
Transfer Archive Use Case

Architectural Intent:
- Orchestrates one transfer: validate, resolve sources, build the archive
  once, fan out one HostTask per host, decide on rollback
- Pre-flight failures raise before any network or filesystem side effect
- Host and rollback failures are returned inside TransferResult

Concurrency:
- One asyncio task per host, unbounded; tasks share only the frozen config
  and archive handle
- Failed tasks push onto one error queue, successful tasks count down a
  completion event; the orchestrator waits for whichever resolves first
- Tasks still running when the race resolves are not cancelled. They keep
  mutating remote state; their outcomes are only logged
- wait_for_all=True trades latency for completeness and awaits every task
"""

from __future__ import annotations
import asyncio
import logging
from typing import Callable, Iterable, Optional

from shipyard.application.use_cases.host_task import HostTask
from shipyard.application.use_cases.rollback_transfer import RollbackTransfer
from shipyard.domain.entities.transfer_config import TransferConfig
from shipyard.domain.entities.transfer_result import HostOutcome, TransferResult
from shipyard.domain.errors import (
    ErrorKind,
    HostError,
    NoSourceFilesError,
    RollbackError,
)
from shipyard.domain.ports.archiver_port import ArchiverPort
from shipyard.domain.services.source_resolver import resolve_sources
from shipyard.domain.value_objects.archive_handle import ArchiveHandle
from shipyard.domain.value_objects.source_files import SourceFiles

logger = logging.getLogger(__name__)


class TransferArchive:
    def __init__(
        self,
        archiver: ArchiverPort,
        host_task: HostTask,
        rollback: RollbackTransfer,
        resolver: Callable[[Iterable[str]], SourceFiles] = resolve_sources,
        temp_dir: Optional[str] = None,
    ):
        self.archiver = archiver
        self.host_task = host_task
        self.rollback = rollback
        self.resolver = resolver
        self.temp_dir = temp_dir
        self._inflight: set[asyncio.Task] = set()

    async def execute(self, config: TransferConfig) -> TransferResult:
        config.validate()

        if config.debug:
            logger.debug("the source is: %s", list(config.sources))

        files = self.resolver(config.sources)
        if not files:
            raise NoSourceFilesError()

        archive = await self.build_archive(config, files)
        return await self.distribute(config, archive)

    async def build_archive(self, config: TransferConfig, files: SourceFiles) -> ArchiveHandle:
        archive = ArchiveHandle.in_temp_dir(self.temp_dir)
        logger.info("tar all files into %s", archive.local_path)

        if config.debug:
            logger.debug(await self.archiver.check())

        await self.archiver.build(files, archive.local_path)
        return archive

    async def distribute(self, config: TransferConfig, archive: ArchiveHandle) -> TransferResult:
        config.validate()

        errors: asyncio.Queue[HostError] = asyncio.Queue()
        all_done = asyncio.Event()
        outcomes: list[HostOutcome] = []
        remaining = len(config.hosts)
        decided = False

        async def run_host(host: str) -> None:
            nonlocal remaining
            error: Optional[HostError] = None
            try:
                await self.host_task.run(host, config, archive)
            except HostError as e:
                error = e
            except Exception as e:
                logger.exception("Unexpected failure on %s", host)
                error = HostError(host, None, str(e) or type(e).__name__, ErrorKind.UNEXPECTED)

            outcome = HostOutcome.failed(error) if error else HostOutcome.ok(host)
            if decided:
                logger.debug("Discarding late outcome from %s: %s", host, outcome)
            else:
                outcomes.append(outcome)

            if error is not None:
                errors.put_nowait(error)
                return
            remaining -= 1
            if remaining == 0:
                all_done.set()

        tasks = [
            asyncio.create_task(run_host(host), name=f"shipyard:{host}")
            for host in config.hosts
        ]
        for task in tasks:
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

        if config.wait_for_all:
            await asyncio.gather(*tasks)
            first_error = None if errors.empty() else errors.get_nowait()
        else:
            first_error = await self._first_error(errors, all_done)

        decided = True
        observed = tuple(outcomes)

        if first_error is None:
            logger.info("Successfully executed transfer data to all host")
            return TransferResult(success=True, outcomes=observed)

        logger.error(
            "shipyard error: %s",
            first_error,
            extra={
                "host": first_error.host,
                "phase": first_error.phase.name if first_error.phase else None,
            },
        )
        if not first_error.triggers_rollback:
            return TransferResult(success=False, error=first_error, outcomes=observed)

        logger.warning("shipyard rollback: remove all target tmp file")
        rollback_error: Optional[RollbackError] = None
        try:
            await self.rollback.clean_all(config, archive)
        except RollbackError as e:
            logger.error("shipyard rollback error: %s", e, extra={"host": e.host})
            rollback_error = e

        return TransferResult(
            success=False,
            error=first_error,
            rollback_attempted=True,
            rollback_error=rollback_error,
            outcomes=observed,
        )

    async def wait_inflight(self) -> None:
        """Awaits host tasks that outlived the race, e.g. before shutting the loop down."""
        if self._inflight:
            await asyncio.gather(*self._inflight)

    @staticmethod
    async def _first_error(
        errors: asyncio.Queue[HostError], all_done: asyncio.Event
    ) -> Optional[HostError]:
        next_error = asyncio.ensure_future(errors.get())
        finished = asyncio.ensure_future(all_done.wait())
        try:
            done, _ = await asyncio.wait(
                {next_error, finished}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for waiter in (next_error, finished):
                if not waiter.done():
                    waiter.cancel()

        if next_error in done:
            return next_error.result()
        return None
