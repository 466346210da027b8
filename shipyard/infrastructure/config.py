"""
Configuration Module

Architectural Intent:
- Centralized configuration loading from a JSON file
- Environment variables override file-based config (CI secrets arrive here)
- Falls back to defaults when the config file is absent
- Produces the immutable TransferConfig handed to the use cases

Design Decisions:
- Config sections are frozen dataclasses for immutability after load
- Comma-separated environment values map to tuple fields
"""

from __future__ import annotations
import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional
import json
import logging
import os

from shipyard.domain.entities.transfer_config import (
    ArchiveOptions,
    Credentials,
    ProxySettings,
    TransferConfig,
)
from shipyard.domain.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "shipyard.json"

_TRUE_VALUES = ("true", "1", "yes", "on")


@dataclass(frozen=True)
class SSHConfig:
    """Destinations and credentials."""
    hosts: tuple[str, ...] = ()
    port: int = 22
    username: str = "root"
    password: str = ""
    key: str = ""
    key_path: str = ""
    passphrase: str = ""
    fingerprint: str = ""
    timeout: float = 30.0
    command_timeout: float = 600.0
    ciphers: tuple[str, ...] = ()
    use_insecure_cipher: bool = False


@dataclass(frozen=True)
class ProxyConfig:
    """Optional jump host."""
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


@dataclass(frozen=True)
class TransferSection:
    """What to ship and how to unpack it."""
    sources: tuple[str, ...] = ()
    targets: tuple[str, ...] = ()
    remove: bool = False
    strip_components: int = 0
    overwrite: bool = False
    unlink_first: bool = False
    tar_exec: str = "tar"
    tar_tmp_path: str = ""
    wait_for_all: bool = False


@dataclass(frozen=True)
class ShipyardConfig:
    """Root configuration for the shipyard application."""
    ssh: SSHConfig = field(default_factory=SSHConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    transfer: TransferSection = field(default_factory=TransferSection)
    log_level: str = "INFO"
    debug: bool = False
    json_logs: bool = False

    def to_transfer_config(self) -> TransferConfig:
        ssh, proxy, transfer = self.ssh, self.proxy, self.transfer
        return TransferConfig(
            hosts=ssh.hosts,
            sources=transfer.sources,
            targets=transfer.targets,
            credentials=Credentials(
                username=ssh.username,
                password=ssh.password,
                key=ssh.key,
                key_path=ssh.key_path,
                passphrase=ssh.passphrase,
                fingerprint=ssh.fingerprint,
            ),
            port=ssh.port,
            timeout=ssh.timeout,
            command_timeout=ssh.command_timeout,
            archive=ArchiveOptions(
                strip_components=transfer.strip_components,
                overwrite=transfer.overwrite,
                unlink_first=transfer.unlink_first,
                remove=transfer.remove,
                tar_exec=transfer.tar_exec,
                tar_tmp_path=transfer.tar_tmp_path,
            ),
            ciphers=ssh.ciphers,
            use_insecure_cipher=ssh.use_insecure_cipher,
            proxy=ProxySettings(**dataclasses.asdict(proxy)) if proxy.host else None,
            debug=self.debug,
            wait_for_all=transfer.wait_for_all,
        )


_SECTIONS = {"ssh": SSHConfig, "proxy": ProxyConfig, "transfer": TransferSection}
_TOP_LEVEL = ("log_level", "debug", "json_logs")


def _env_override(data: dict, prefix: str = "SHIPYARD") -> dict:
    """Override config values with environment variables.

    Environment variables follow the pattern SHIPYARD_SECTION_KEY.
    For example: SHIPYARD_SSH_HOSTS=10.0.0.1,10.0.0.2, SHIPYARD_SSH_KEY_PATH=~/.ssh/id
    """
    for key, value in os.environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        name = key[len(prefix) + 1:].lower()
        if name in _TOP_LEVEL:
            data[name] = value
            continue
        section, _, field_name = name.partition("_")
        if section in _SECTIONS and field_name:
            data.setdefault(section, {})[field_name] = value
    return data


def _parse_config_file(path: Path) -> dict:
    """Parse a JSON config file. Returns empty dict on failure."""
    try:
        with open(path) as f:
            return json.load(f)
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}
    except json.JSONDecodeError as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}


def _coerce(type_name: str, value: Any) -> Any:
    if type_name == "tuple[str, ...]":
        if isinstance(value, str):
            return tuple(v.strip() for v in value.split(",") if v.strip())
        return tuple(value)
    if not isinstance(value, str):
        return value
    if type_name == "int":
        return int(value)
    if type_name == "float":
        return float(value)
    if type_name == "bool":
        return value.lower() in _TRUE_VALUES
    return value


def _build_sub_config(cls, data: dict):
    """Build a sub-config dataclass from a dict, ignoring unknown keys."""
    fields = {f.name: f.type for f in dataclasses.fields(cls)}
    unknown = set(data) - set(fields)
    if unknown:
        logger.debug("Ignoring unknown %s keys: %s", cls.__name__, sorted(unknown))
    values = {}
    for key, value in data.items():
        if key not in fields:
            continue
        try:
            values[key] = _coerce(fields[key], value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"invalid {cls.__name__} value for {key}: {value!r}"
            ) from e
    return cls(**values)


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "SHIPYARD",
) -> ShipyardConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (SHIPYARD_SECTION_KEY)
    2. Config file values
    3. Defaults

    Args:
        path: Path to config file (JSON). Defaults to shipyard.json in CWD.
        env_prefix: Environment variable prefix. Defaults to SHIPYARD.
    """
    config_path = Path(path) if path else Path(DEFAULT_CONFIG_FILE)
    data = _parse_config_file(config_path)
    data = _env_override(data, env_prefix)

    return ShipyardConfig(
        ssh=_build_sub_config(SSHConfig, data.get("ssh", {})),
        proxy=_build_sub_config(ProxyConfig, data.get("proxy", {})),
        transfer=_build_sub_config(TransferSection, data.get("transfer", {})),
        log_level=str(data.get("log_level", "INFO")).upper(),
        debug=_coerce("bool", data.get("debug", False)),
        json_logs=_coerce("bool", data.get("json_logs", False)),
    )
