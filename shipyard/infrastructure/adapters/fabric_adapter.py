"""
Fabric Adapter

Architectural Intent:
- Infrastructure adapter implementing SessionFactoryPort/RemoteSessionPort
  via Fabric/SSH
- Each session owns one Connection and one worker thread, so blocking
  Fabric calls never stall the event loop and stay ordered per host
- Concurrency across hosts is unbounded: one thread per open session

Security:
- Explicit authentication only (password, PEM key or key file); no agent,
  no implicit ~/.ssh key discovery
- Optional cipher allow-list and host key fingerprint pinning, for the
  target and the jump host alike
- Legacy CBC ciphers and SHA1 key exchanges only with use_insecure_cipher
- Optional jump host via Fabric gateway
"""

import asyncio
import base64
import functools
import hashlib
import io
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

import paramiko
from fabric import Connection
from invoke.exceptions import CommandTimedOut

from shipyard.domain.entities.transfer_config import ProxySettings, TransferConfig
from shipyard.domain.errors import SessionError
from shipyard.domain.ports.remote_session_port import (
    CommandResult,
    RemoteSessionPort,
    SessionFactoryPort,
)

logger = logging.getLogger(__name__)

_KEY_CLASSES = (paramiko.RSAKey, paramiko.ECDSAKey, paramiko.Ed25519Key)

# Raised by paramiko and the socket layer for anything transport related.
_TRANSPORT_ERRORS = (paramiko.SSHException, OSError, EOFError)

# Legacy algorithms re-enabled by use_insecure_cipher.
INSECURE_CIPHERS = ("aes128-cbc", "aes192-cbc", "aes256-cbc", "3des-cbc")
INSECURE_KEX = ("diffie-hellman-group-exchange-sha1", "diffie-hellman-group1-sha1")


def load_private_key(pem: str, passphrase: Optional[str] = None) -> paramiko.PKey:
    for key_cls in _KEY_CLASSES:
        try:
            return key_cls.from_private_key(io.StringIO(pem), password=passphrase or None)
        except (paramiko.SSHException, ValueError):
            continue
    raise SessionError("unsupported or invalid private key")


def host_key_fingerprints(key: paramiko.PKey) -> set[str]:
    """SHA256 (OpenSSH style) and legacy MD5 renderings of a server key."""
    sha256 = base64.b64encode(hashlib.sha256(key.asbytes()).digest()).decode()
    md5 = ":".join(f"{b:02x}" for b in key.get_fingerprint())
    return {f"SHA256:{sha256.rstrip('=')}", md5, f"MD5:{md5}"}


def disabled_ciphers(allowed: tuple[str, ...]) -> list[str]:
    preferred = paramiko.Transport._preferred_ciphers
    unknown = [c for c in allowed if c not in preferred]
    if unknown:
        logger.warning("Ignoring unsupported ciphers: %s", ", ".join(unknown))
    return [c for c in preferred if c not in allowed]


def disabled_algorithms(
    ciphers: tuple[str, ...] = (), use_insecure_cipher: bool = False
) -> dict[str, list[str]]:
    """
    Paramiko disabled_algorithms for a cipher allow-list.
    CBC ciphers and SHA1 key exchanges stay off unless use_insecure_cipher is set.
    """
    preferred = paramiko.Transport._preferred_ciphers
    allowed = tuple(ciphers) or tuple(c for c in preferred if c not in INSECURE_CIPHERS)
    if use_insecure_cipher:
        allowed += tuple(c for c in INSECURE_CIPHERS if c in preferred)

    disabled: dict[str, list[str]] = {}
    cipher_list = disabled_ciphers(allowed)
    if cipher_list:
        disabled["ciphers"] = cipher_list
    if not use_insecure_cipher:
        kex = [k for k in paramiko.Transport._preferred_kex if k in INSECURE_KEX]
        if kex:
            disabled["kex"] = kex
    return disabled


def _auth_kwargs(
    password: str, key: str, key_path: str, passphrase: str, timeout: float
) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "allow_agent": False,
        "look_for_keys": False,
        "banner_timeout": timeout,
        "auth_timeout": timeout,
    }
    if key:
        kwargs["pkey"] = load_private_key(key, passphrase)
    elif key_path:
        kwargs["key_filename"] = key_path
        if passphrase:
            kwargs["passphrase"] = passphrase
    if password:
        kwargs["password"] = password
    return kwargs


def _open_pinned(conn: Connection, label: str, fingerprint: str) -> None:
    """Opens conn; when a fingerprint is pinned, the server key must match it."""
    try:
        conn.open()
    except _TRANSPORT_ERRORS as e:
        raise SessionError(f"connect to {label} failed: {e}") from e
    if fingerprint:
        key = conn.client.get_transport().get_remote_server_key()
        if fingerprint not in host_key_fingerprints(key):
            conn.close()
            raise SessionError(f"host key fingerprint mismatch for {label}")


class FabricSession(RemoteSessionPort):
    """One Fabric Connection to one host, driven from a dedicated thread."""

    def __init__(self, host: str, connection: Connection, gateway: Optional[Connection] = None):
        self.host = host
        self._conn = connection
        self._gateway = gateway
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"shipyard-{host}"
        )

    async def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await asyncio.get_event_loop().run_in_executor(
            self._executor, functools.partial(fn, *args)
        )

    async def open(self, fingerprint: str = "", gateway_fingerprint: str = "") -> None:
        def _open():
            # the jump host is verified before any credentials reach the target
            if self._gateway is not None:
                _open_pinned(
                    self._gateway, f"proxy {self._gateway.host}", gateway_fingerprint
                )
            _open_pinned(self._conn, self.host, fingerprint)

        await self._call(_open)

    async def copy(self, local_path: str, remote_path: str) -> None:
        def _put():
            try:
                self._conn.put(local_path, remote=remote_path)
            except _TRANSPORT_ERRORS as e:
                raise SessionError(f"error copy file to dest: {self.host}, {e}") from e

        await self._call(_put)

    async def run_command(
        self, command: str, timeout: Optional[float] = None
    ) -> CommandResult:
        def _run():
            try:
                result = self._conn.run(
                    command, hide=True, warn=True, timeout=timeout, in_stream=False
                )
            except CommandTimedOut as e:
                raise SessionError(
                    f"command timed out after {timeout}s on {self.host}"
                ) from e
            except _TRANSPORT_ERRORS as e:
                raise SessionError(f"run on {self.host} failed: {e}") from e
            return CommandResult(
                stdout=result.stdout, stderr=result.stderr, exit_code=result.exited
            )

        return await self._call(_run)

    async def close(self) -> None:
        def _close():
            for conn in (self._conn, self._gateway):
                if conn is None:
                    continue
                try:
                    conn.close()
                except _TRANSPORT_ERRORS as e:
                    logger.warning("Closing connection to %s failed: %s", conn.host, e)

        try:
            await self._call(_close)
        finally:
            self._executor.shutdown(wait=False)


class FabricSessionFactory(SessionFactoryPort):
    """Builds authenticated Fabric connections from a TransferConfig."""

    def _gateway(self, proxy: ProxySettings) -> Connection:
        connect_kwargs = _auth_kwargs(
            proxy.password, proxy.key, proxy.key_path, proxy.passphrase, proxy.timeout
        )
        algorithms = disabled_algorithms(proxy.ciphers, proxy.use_insecure_cipher)
        if algorithms:
            connect_kwargs["disabled_algorithms"] = algorithms

        return Connection(
            host=proxy.host,
            user=proxy.username,
            port=proxy.port,
            connect_timeout=proxy.timeout,
            connect_kwargs=connect_kwargs,
        )

    def _get_connection(
        self, host: str, config: TransferConfig, gateway: Optional[Connection] = None
    ) -> Connection:
        node = config.node_for(host)
        creds = config.credentials
        connect_kwargs = _auth_kwargs(
            creds.password, creds.key, creds.key_path, creds.passphrase, config.timeout
        )
        algorithms = disabled_algorithms(config.ciphers, config.use_insecure_cipher)
        if algorithms:
            connect_kwargs["disabled_algorithms"] = algorithms

        return Connection(
            host=node.host,
            user=node.user,
            port=node.port,
            connect_timeout=config.timeout,
            connect_kwargs=connect_kwargs,
            gateway=gateway,
        )

    async def connect(self, host: str, config: TransferConfig) -> FabricSession:
        proxy = config.proxy if config.proxy is not None and config.proxy.enabled else None
        try:
            gateway = self._gateway(proxy) if proxy is not None else None
            connection = self._get_connection(host, config, gateway)
        except ValueError as e:
            raise SessionError(f"invalid host {host!r}: {e}") from e

        session = FabricSession(host, connection, gateway)
        try:
            await session.open(
                config.credentials.fingerprint, proxy.fingerprint if proxy else ""
            )
        except SessionError:
            await session.close()
            raise
        return session
