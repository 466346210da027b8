"""
Transfer Configuration

Architectural Intent:
- Immutable input of one transfer run, shared read-only by every host task
- Replaces process-wide defaults: everything a run needs is passed in here
- validate() enforces the pre-flight invariants before any side effect

Invariants:
- At least one host, one source and one target
- Authentication is unambiguous: some key or a password, never a password
  together with a key
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, Optional

from shipyard.domain.errors import (
    AmbiguousCredentialsError,
    ConfigurationError,
    MissingCredentialsError,
    MissingHostError,
    MissingSourceOrTargetError,
)
from shipyard.domain.value_objects.node import Node


def _trimmed(values: Iterable[str]) -> tuple[str, ...]:
    """Strips entries, drops empty ones and duplicates, keeps first-seen order."""
    seen: dict[str, None] = {}
    for value in values:
        value = value.strip()
        if value:
            seen.setdefault(value, None)
    return tuple(seen)


@dataclass(frozen=True)
class Credentials:
    username: str = "root"
    password: str = ""
    key: str = ""
    key_path: str = ""
    passphrase: str = ""
    fingerprint: str = ""

    @property
    def has_key(self) -> bool:
        return bool(self.key or self.key_path)

    def __repr__(self) -> str:
        return (
            f"Credentials(username={self.username!r}, "
            f"password={'***' if self.password else ''!r}, "
            f"key={'***' if self.key else ''!r}, key_path={self.key_path!r})"
        )


@dataclass(frozen=True)
class ProxySettings:
    """Jump host used as SSH gateway for every destination."""
    host: str = ""
    port: int = 22
    username: str = "root"
    password: str = ""
    key: str = ""
    key_path: str = ""
    passphrase: str = ""
    timeout: float = 30.0
    fingerprint: str = ""
    ciphers: tuple[str, ...] = ()
    use_insecure_cipher: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "ciphers", _trimmed(self.ciphers))

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    def __repr__(self) -> str:
        return (
            f"ProxySettings(host={self.host!r}, port={self.port!r}, "
            f"username={self.username!r}, "
            f"password={'***' if self.password else ''!r}, "
            f"key={'***' if self.key else ''!r}, key_path={self.key_path!r}, "
            f"passphrase={'***' if self.passphrase else ''!r})"
        )


@dataclass(frozen=True)
class ArchiveOptions:
    strip_components: int = 0
    overwrite: bool = False
    unlink_first: bool = False
    remove: bool = False
    tar_exec: str = "tar"
    tar_tmp_path: str = ""


@dataclass(frozen=True)
class TransferConfig:
    hosts: tuple[str, ...]
    sources: tuple[str, ...]
    targets: tuple[str, ...]
    credentials: Credentials = field(default_factory=Credentials)
    port: int = 22
    timeout: float = 30.0
    command_timeout: float = 600.0
    archive: ArchiveOptions = field(default_factory=ArchiveOptions)
    ciphers: tuple[str, ...] = ()
    use_insecure_cipher: bool = False
    proxy: Optional[ProxySettings] = None
    debug: bool = False
    wait_for_all: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "hosts", _trimmed(self.hosts))
        object.__setattr__(self, "sources", _trimmed(self.sources))
        object.__setattr__(self, "targets", _trimmed(self.targets))
        object.__setattr__(self, "ciphers", _trimmed(self.ciphers))

    def validate(self) -> "TransferConfig":
        if not self.hosts:
            raise MissingHostError()

        creds = self.credentials
        if not creds.has_key and not creds.password:
            raise MissingCredentialsError()
        if creds.has_key and creds.password:
            raise AmbiguousCredentialsError()

        if not self.sources or not self.targets:
            raise MissingSourceOrTargetError()

        if self.archive.strip_components < 0:
            raise ConfigurationError(
                f"strip components must be >= 0, got {self.archive.strip_components}"
            )
        if self.timeout <= 0 or self.command_timeout <= 0:
            raise ConfigurationError("timeouts must be positive")
        return self

    @property
    def multi_host(self) -> bool:
        return len(self.hosts) > 1

    def node_for(self, host: str) -> Node:
        return Node.parse(host, self.credentials.username, self.port)
