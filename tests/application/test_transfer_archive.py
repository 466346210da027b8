"""Tests for TransferArchive use case."""

import asyncio
import logging

import pytest
from unittest.mock import AsyncMock

from shipyard.application.use_cases.host_task import HostTask
from shipyard.application.use_cases.rollback_transfer import RollbackTransfer
from shipyard.application.use_cases.transfer_archive import TransferArchive
from shipyard.domain.errors import (
    ArchiveBuildError,
    ErrorKind,
    MissingCredentialsError,
    MissingHostError,
    NoSourceFilesError,
    RollbackError,
    SessionError,
    TransferPhase,
)
from shipyard.domain.ports.remote_session_port import CommandResult
from shipyard.domain.value_objects.source_files import SourceFiles

A, B = "10.0.0.1", "10.0.0.2"


class TestTransferArchive:
    def _make_use_case(self, session_factory, tmp_path, files=None):
        archiver = AsyncMock()
        archiver.check = AsyncMock(return_value="tar (GNU tar) 1.35")
        if files is None:
            files = SourceFiles(sources=("dist/app.js",))
        resolver = lambda patterns: files  # noqa: E731
        use_case = TransferArchive(
            archiver,
            HostTask(session_factory),
            RollbackTransfer(session_factory),
            resolver=resolver,
            temp_dir=str(tmp_path),
        )
        return use_case, archiver

    @pytest.mark.asyncio
    async def test_single_host_success(self, session_factory, make_config, tmp_path):
        use_case, archiver = self._make_use_case(session_factory, tmp_path)

        result = await use_case.execute(make_config())

        assert result.success is True
        assert result.error is None
        assert result.rollback_attempted is False
        archiver.build.assert_awaited_once()
        archiver.check.assert_not_awaited()
        assert session_factory.connects == [A]
        assert session_factory.operations(A) == ["copy", "run", "run", "run", "close"]
        assert [o.host for o in result.outcomes] == [A]

    @pytest.mark.asyncio
    async def test_archive_built_once_for_all_hosts(
        self, session_factory, make_config, tmp_path
    ):
        use_case, archiver = self._make_use_case(session_factory, tmp_path)

        result = await use_case.execute(make_config(hosts=(A, B, "10.0.0.3")))

        assert result.success is True
        archiver.build.assert_awaited_once()
        files, output = archiver.build.await_args.args
        assert files.sources == ("dist/app.js",)
        assert output.parent == tmp_path
        uploads = {remote for _, kind, remote in session_factory.calls if kind == "copy"}
        assert uploads == {output.name}

    @pytest.mark.asyncio
    async def test_debug_reports_tar_version(self, session_factory, make_config, tmp_path):
        use_case, archiver = self._make_use_case(session_factory, tmp_path)

        await use_case.execute(make_config(debug=True))

        archiver.check.assert_awaited_once()


class TestPreflight:
    def _make_use_case(self, session_factory, tmp_path, files):
        archiver = AsyncMock()
        use_case = TransferArchive(
            archiver,
            HostTask(session_factory),
            RollbackTransfer(session_factory),
            resolver=lambda patterns: files,
            temp_dir=str(tmp_path),
        )
        return use_case, archiver

    @pytest.mark.asyncio
    async def test_validation_before_any_side_effect(
        self, session_factory, make_config, tmp_path
    ):
        use_case, archiver = self._make_use_case(
            session_factory, tmp_path, SourceFiles(sources=("a",))
        )

        with pytest.raises(MissingHostError):
            await use_case.execute(make_config(hosts=()))
        with pytest.raises(MissingCredentialsError):
            await use_case.execute(make_config(password=""))

        archiver.build.assert_not_awaited()
        assert session_factory.connects == []

    @pytest.mark.asyncio
    async def test_no_source_files(self, session_factory, make_config, tmp_path):
        use_case, archiver = self._make_use_case(
            session_factory, tmp_path, SourceFiles(excludes=("*.log",))
        )

        with pytest.raises(NoSourceFilesError):
            await use_case.execute(make_config())

        archiver.build.assert_not_awaited()
        assert session_factory.connects == []

    @pytest.mark.asyncio
    async def test_build_failure_contacts_no_host(
        self, session_factory, make_config, tmp_path
    ):
        use_case, archiver = self._make_use_case(
            session_factory, tmp_path, SourceFiles(sources=("a",))
        )
        archiver.build = AsyncMock(side_effect=ArchiveBuildError("tar exited with status 2"))

        with pytest.raises(ArchiveBuildError):
            await use_case.execute(make_config(hosts=(A, B)))

        assert session_factory.connects == []


class TestFailureHandling:
    def _make_use_case(self, session_factory, tmp_path):
        return TransferArchive(
            AsyncMock(),
            HostTask(session_factory),
            RollbackTransfer(session_factory),
            resolver=lambda patterns: SourceFiles(sources=("dist/app.js",)),
            temp_dir=str(tmp_path),
        )

    @pytest.mark.asyncio
    async def test_mkdir_failure_rolls_back_every_host(
        self, session_factory, make_config, tmp_path
    ):
        use_case = self._make_use_case(session_factory, tmp_path)
        session_factory.respond(B, "mkdir", CommandResult(stderr="Permission denied", exit_code=1))

        result = await use_case.execute(make_config(hosts=(A, B)))
        await use_case.wait_inflight()

        assert result.success is False
        assert result.error.host == B
        assert result.error.phase == TransferPhase.MKDIR
        assert result.rollback_attempted is True
        assert result.rollback_error is None
        assert B in result.failed_hosts
        # rollback opened a second session on each host
        assert session_factory.connects.count(A) == 2
        assert session_factory.connects.count(B) == 2
        assert session_factory.commands(B)[-1].startswith("rm -rf ")

    @pytest.mark.asyncio
    async def test_copy_failure_skips_rollback(self, session_factory, make_config, tmp_path):
        use_case = self._make_use_case(session_factory, tmp_path)
        session_factory.copy_errors[A] = SessionError("error copy file to dest: 10.0.0.1")

        result = await use_case.execute(make_config())

        assert result.success is False
        assert result.error.phase == TransferPhase.COPY
        assert result.rollback_attempted is False
        assert session_factory.connects == [A]

    @pytest.mark.asyncio
    async def test_connect_failure_skips_rollback(
        self, session_factory, make_config, tmp_path
    ):
        use_case = self._make_use_case(session_factory, tmp_path)
        session_factory.connect_errors[A] = SessionError("connect to 10.0.0.1 failed")

        result = await use_case.execute(make_config())

        assert result.error.kind == ErrorKind.CONNECTION
        assert result.rollback_attempted is False

    @pytest.mark.asyncio
    async def test_rollback_error_reported_with_original(
        self, session_factory, make_config, tmp_path
    ):
        use_case = self._make_use_case(session_factory, tmp_path)
        session_factory.respond(A, "mkdir", CommandResult(exit_code=1))
        session_factory.respond(A, "rm -rf", CommandResult(stderr="rm: cannot remove", exit_code=1))

        result = await use_case.execute(make_config())

        assert result.error.phase == TransferPhase.MKDIR
        assert isinstance(result.rollback_error, RollbackError)
        assert "rm: cannot remove" in result.message
        assert str(result.error) in result.message

    @pytest.mark.asyncio
    async def test_unexpected_rollback_exception_keeps_original_error(
        self, session_factory, make_config, tmp_path
    ):
        use_case = self._make_use_case(session_factory, tmp_path)
        session_factory.respond(A, "mkdir", CommandResult(stderr="denied", exit_code=1))
        session_factory.respond(A, "rm -rf", RuntimeError("channel closed unexpectedly"))

        result = await use_case.execute(make_config())

        assert result.success is False
        assert result.error.phase == TransferPhase.MKDIR
        assert result.rollback_attempted is True
        assert isinstance(result.rollback_error, RollbackError)
        assert "channel closed unexpectedly" in str(result.rollback_error)

    @pytest.mark.asyncio
    async def test_first_error_logged_with_host_and_phase(
        self, session_factory, make_config, tmp_path, caplog
    ):
        use_case = self._make_use_case(session_factory, tmp_path)
        session_factory.respond(A, "mkdir", CommandResult(stderr="denied", exit_code=1))

        with caplog.at_level(logging.ERROR, logger="shipyard"):
            await use_case.execute(make_config())

        record = next(r for r in caplog.records if r.getMessage().startswith("shipyard error"))
        assert record.host == A
        assert record.phase == "MKDIR"

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_host_error(
        self, session_factory, make_config, tmp_path
    ):
        use_case = self._make_use_case(session_factory, tmp_path)
        use_case.host_task.run = AsyncMock(side_effect=RuntimeError("bug"))

        result = await use_case.execute(make_config())

        assert result.error.kind == ErrorKind.UNEXPECTED
        assert result.error.phase is None
        assert result.error.message == "bug"
        assert result.rollback_attempted is True


class TestConcurrency:
    def _make_use_case(self, session_factory, tmp_path):
        return TransferArchive(
            AsyncMock(),
            HostTask(session_factory),
            RollbackTransfer(session_factory),
            resolver=lambda patterns: SourceFiles(sources=("dist/app.js",)),
            temp_dir=str(tmp_path),
        )

    @pytest.mark.asyncio
    async def test_first_error_returns_while_other_host_runs(
        self, session_factory, make_config, tmp_path
    ):
        use_case = self._make_use_case(session_factory, tmp_path)
        release_b = session_factory.hold(B, "mkdir")
        session_factory.respond(A, "mkdir", CommandResult(exit_code=1))

        result = await asyncio.wait_for(use_case.execute(make_config(hosts=(A, B))), 5)

        assert result.error.host == A
        assert not release_b.is_set()
        assert [o.host for o in result.outcomes] == [A]
        assert not any(cmd.startswith("tar") for cmd in session_factory.commands(B))

        release_b.set()
        await use_case.wait_inflight()

        # the straggler ran to completion after the result was reported
        assert any(cmd.startswith("tar") for cmd in session_factory.commands(B))
        assert session_factory.operations(B)[-1] == "close"
        assert [o.host for o in result.outcomes] == [A]

    @pytest.mark.asyncio
    async def test_wait_for_all_awaits_every_host(
        self, session_factory, make_config, tmp_path
    ):
        use_case = self._make_use_case(session_factory, tmp_path)
        release_b = session_factory.hold(B, "mkdir")
        session_factory.respond(A, "mkdir", CommandResult(exit_code=1))

        run = asyncio.create_task(
            use_case.execute(make_config(hosts=(A, B), wait_for_all=True))
        )
        for _ in range(20):
            await asyncio.sleep(0)
        assert not run.done()

        release_b.set()
        result = await asyncio.wait_for(run, 5)

        assert result.error.host == A
        assert sorted(o.host for o in result.outcomes) == [A, B]
        assert result.failed_hosts == [A]
        assert result.rollback_attempted is True

    @pytest.mark.asyncio
    async def test_all_hosts_succeed_concurrently(
        self, session_factory, make_config, tmp_path
    ):
        use_case = self._make_use_case(session_factory, tmp_path)
        hosts = tuple(f"10.0.1.{i}" for i in range(1, 9))

        result = await use_case.execute(make_config(hosts=hosts))

        assert result.success is True
        assert sorted(o.host for o in result.outcomes) == sorted(hosts)
        assert sorted(session_factory.connects) == sorted(hosts)

    @pytest.mark.asyncio
    async def test_distribute_validates_config(self, session_factory, make_config, tmp_path, archive):
        use_case = self._make_use_case(session_factory, tmp_path)

        with pytest.raises(MissingHostError):
            await use_case.distribute(make_config(hosts=()), archive)
