"""Shared fixtures: in-memory sessions that record every remote operation."""

import asyncio
from pathlib import Path
from typing import Optional, Union

import pytest

from shipyard.domain.entities.transfer_config import (
    ArchiveOptions,
    Credentials,
    TransferConfig,
)
from shipyard.domain.ports.remote_session_port import (
    CommandResult,
    RemoteSessionPort,
    SessionFactoryPort,
)
from shipyard.domain.value_objects.archive_handle import ArchiveHandle

Response = Union[CommandResult, Exception]


class FakeSession(RemoteSessionPort):
    def __init__(self, host: str, factory: "FakeSessionFactory"):
        self.host = host
        self.factory = factory

    async def copy(self, local_path: str, remote_path: str) -> None:
        self.factory.calls.append((self.host, "copy", remote_path))
        error = self.factory.copy_errors.get(self.host)
        if error is not None:
            raise error

    async def run_command(
        self, command: str, timeout: Optional[float] = None
    ) -> CommandResult:
        gate = self.factory.gates.get(self.host)
        if gate is not None and gate[0] in command:
            await gate[1].wait()
        self.factory.calls.append((self.host, "run", command))
        for (host, needle), response in self.factory.responses.items():
            if host == self.host and needle in command:
                if isinstance(response, Exception):
                    raise response
                return response
        return CommandResult()

    async def close(self) -> None:
        self.factory.calls.append((self.host, "close", ""))


class FakeSessionFactory(SessionFactoryPort):
    def __init__(self):
        self.calls: list[tuple[str, str, str]] = []
        self.connects: list[str] = []
        self.responses: dict[tuple[str, str], Response] = {}
        self.copy_errors: dict[str, Exception] = {}
        self.connect_errors: dict[str, Exception] = {}
        self.gates: dict[str, tuple[str, asyncio.Event]] = {}

    def respond(self, host: str, needle: str, response: Response) -> None:
        """Commands on host containing needle get response instead of success."""
        self.responses[(host, needle)] = response

    def hold(self, host: str, needle: str) -> asyncio.Event:
        """Blocks commands on host containing needle until the event is set."""
        event = asyncio.Event()
        self.gates[host] = (needle, event)
        return event

    async def connect(self, host: str, config: TransferConfig) -> FakeSession:
        self.connects.append(host)
        error = self.connect_errors.get(host)
        if error is not None:
            raise error
        return FakeSession(host, self)

    def commands(self, host: Optional[str] = None) -> list[str]:
        return [
            cmd for h, kind, cmd in self.calls
            if kind == "run" and (host is None or h == host)
        ]

    def operations(self, host: str) -> list[str]:
        return [kind for h, kind, _ in self.calls if h == host]


@pytest.fixture
def session_factory() -> FakeSessionFactory:
    return FakeSessionFactory()


@pytest.fixture
def archive(tmp_path: Path) -> ArchiveHandle:
    path = tmp_path / "abcdefghij.tar.gz"
    path.write_bytes(b"")
    return ArchiveHandle(local_path=path, filename="abcdefghij.tar.gz")


@pytest.fixture
def make_config():
    def _make(
        hosts=("10.0.0.1",),
        sources=("dist/*",),
        targets=("/var/www/app",),
        password="secret",
        key="",
        key_path="",
        **kwargs,
    ) -> TransferConfig:
        archive_fields = {
            name: kwargs.pop(name)
            for name in list(kwargs)
            if name in ArchiveOptions.__dataclass_fields__
        }
        return TransferConfig(
            hosts=tuple(hosts),
            sources=tuple(sources),
            targets=tuple(targets),
            credentials=Credentials(
                username="deploy", password=password, key=key, key_path=key_path
            ),
            archive=ArchiveOptions(**archive_fields),
            **kwargs,
        )

    return _make
