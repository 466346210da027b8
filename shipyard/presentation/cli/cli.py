"""
CLI Module

Architectural Intent:
- Command-line interface for shipyard, run as a CI pipeline step
- Merges config file, environment and flags into one TransferConfig
- Delegates to the TransferArchive use case via the composition root
- Maps every failure class to a distinct message and a non-zero exit
"""

import argparse
import asyncio
import dataclasses
import logging
import sys
import traceback
from typing import Any, Iterable, Optional

from shipyard.domain.errors import (
    ArchiveBuildError,
    ConfigurationError,
    NoSourceFilesError,
)
from shipyard.infrastructure.config import ShipyardConfig, load_config
from shipyard.infrastructure.logging import configure_logging

BANNER = "=" * 51


def _split(values: Optional[Iterable[str]]) -> Optional[tuple[str, ...]]:
    """Flattens repeated and comma-separated flag values."""
    if not values:
        return None
    return tuple(v.strip() for value in values for v in value.split(",") if v.strip())


def _overrides(args: argparse.Namespace, mapping: dict[str, str]) -> dict[str, Any]:
    return {
        field: getattr(args, attr)
        for field, attr in mapping.items()
        if getattr(args, attr) is not None
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shipyard",
        description="shipyard: copy build artifacts to remote hosts over SSH",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output with tracebacks"
    )
    parser.add_argument(
        "--json-logs", action="store_true", help="Emit logs as JSON lines"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    deploy = subparsers.add_parser(
        "deploy", help="Archive sources and extract them on every host"
    )
    deploy.add_argument("--config", "-c", help="Path to JSON config (default: shipyard.json)")
    deploy.add_argument(
        "--host", "-H", action="append", help="Target host, repeatable or comma-separated"
    )
    deploy.add_argument(
        "--source", "-s", action="append", help="Source glob, '?pattern' excludes"
    )
    deploy.add_argument(
        "--target", "-t", action="append", help="Remote target directory"
    )

    ssh = deploy.add_argument_group("ssh")
    ssh.add_argument("--port", "-p", type=int, help="SSH port")
    ssh.add_argument("--username", "-u", help="SSH user")
    ssh.add_argument("--password", help="SSH password")
    ssh.add_argument("--key", help="Private key content (PEM)")
    ssh.add_argument("--key-path", help="Private key file")
    ssh.add_argument("--passphrase", help="Private key passphrase")
    ssh.add_argument("--fingerprint", help="Expected host key fingerprint (SHA256:...)")
    ssh.add_argument("--timeout", type=float, help="Connection timeout in seconds")
    ssh.add_argument("--command-timeout", type=float, help="Remote command timeout in seconds")
    ssh.add_argument("--ciphers", action="append", help="Allowed SSH ciphers")
    ssh.add_argument(
        "--use-insecure-cipher", action="store_true", default=None,
        help="Also allow legacy CBC ciphers and SHA1 key exchanges",
    )

    archive = deploy.add_argument_group("archive")
    archive.add_argument(
        "--rm", dest="remove", action="store_true", default=None,
        help="Remove target folders before extracting",
    )
    archive.add_argument("--strip-components", type=int, help="Strip leading path components")
    archive.add_argument(
        "--overwrite", action="store_true", default=None, help="Overwrite existing files"
    )
    archive.add_argument(
        "--unlink-first", action="store_true", default=None,
        help="Remove each file before extracting over it",
    )
    archive.add_argument("--tar-exec", help="tar executable, locally and remotely")
    archive.add_argument("--tar-tmp-path", help="Remote prefix for the uploaded archive")
    archive.add_argument(
        "--wait-all", dest="wait_for_all", action="store_true", default=None,
        help="Wait for every host before reporting instead of failing fast",
    )

    proxy = deploy.add_argument_group("proxy")
    proxy.add_argument("--proxy-host", help="Jump host")
    proxy.add_argument("--proxy-port", type=int, help="Jump host port")
    proxy.add_argument("--proxy-username", help="Jump host user")
    proxy.add_argument("--proxy-password", help="Jump host password")
    proxy.add_argument("--proxy-key", help="Jump host private key content")
    proxy.add_argument("--proxy-key-path", help="Jump host private key file")
    proxy.add_argument("--proxy-passphrase", help="Jump host key passphrase")
    proxy.add_argument("--proxy-fingerprint", help="Expected jump host key fingerprint")
    proxy.add_argument("--proxy-ciphers", action="append", help="Allowed jump host ciphers")
    proxy.add_argument(
        "--proxy-use-insecure-cipher", action="store_true", default=None,
        help="Allow legacy ciphers on the jump host",
    )

    return parser


def merge_args(config: ShipyardConfig, args: argparse.Namespace) -> ShipyardConfig:
    """Applies command-line flags on top of file and environment config."""
    ssh = _overrides(args, {
        "port": "port",
        "username": "username",
        "password": "password",
        "key": "key",
        "key_path": "key_path",
        "passphrase": "passphrase",
        "fingerprint": "fingerprint",
        "timeout": "timeout",
        "command_timeout": "command_timeout",
        "use_insecure_cipher": "use_insecure_cipher",
    })
    if _split(args.host):
        ssh["hosts"] = _split(args.host)
    if _split(args.ciphers):
        ssh["ciphers"] = _split(args.ciphers)

    transfer = _overrides(args, {
        "remove": "remove",
        "strip_components": "strip_components",
        "overwrite": "overwrite",
        "unlink_first": "unlink_first",
        "tar_exec": "tar_exec",
        "tar_tmp_path": "tar_tmp_path",
        "wait_for_all": "wait_for_all",
    })
    if _split(args.source):
        transfer["sources"] = _split(args.source)
    if _split(args.target):
        transfer["targets"] = _split(args.target)

    proxy = _overrides(args, {
        "host": "proxy_host",
        "port": "proxy_port",
        "username": "proxy_username",
        "password": "proxy_password",
        "key": "proxy_key",
        "key_path": "proxy_key_path",
        "passphrase": "proxy_passphrase",
        "fingerprint": "proxy_fingerprint",
        "use_insecure_cipher": "proxy_use_insecure_cipher",
    })
    if _split(args.proxy_ciphers):
        proxy["ciphers"] = _split(args.proxy_ciphers)

    return dataclasses.replace(
        config,
        ssh=dataclasses.replace(config.ssh, **ssh),
        transfer=dataclasses.replace(config.transfer, **transfer),
        proxy=dataclasses.replace(config.proxy, **proxy),
        debug=config.debug or args.debug,
        json_logs=config.json_logs or args.json_logs,
    )


async def async_main():
    parser = build_parser()
    args = parser.parse_args()

    if args.command != "deploy":
        configure_logging(level=logging.DEBUG if args.debug else logging.WARNING)
        parser.print_help()
        return

    try:
        settings = merge_args(load_config(args.config), args)
        config = settings.to_transfer_config()
    except ConfigurationError as e:
        print(f"[-] Configuration error: {e}")
        sys.exit(1)

    # Configure logging based on flags; transfer progress is INFO
    if settings.debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    else:
        level = logging.getLevelNamesMapping().get(settings.log_level, logging.INFO)
    configure_logging(level=level, json_format=settings.json_logs)

    verbose = args.verbose or settings.debug

    from shipyard.composition_root import create_container

    container = create_container(config.archive.tar_exec)

    try:
        result = await container.transfer.execute(config)
    except ConfigurationError as e:
        print(f"[-] Configuration error: {e}")
        sys.exit(1)
    except NoSourceFilesError as e:
        print(f"[-] No source files: {e}")
        sys.exit(1)
    except ArchiveBuildError as e:
        print(f"[-] Archive build failed: {e}")
        if verbose:
            traceback.print_exc()
        sys.exit(1)
    except Exception as e:
        print(f"[-] Transfer Failed: {e}")
        if verbose:
            traceback.print_exc()
        await container.transfer.wait_inflight()
        sys.exit(1)

    if result.success:
        print(BANNER)
        print("[+] Successfully executed transfer data to all host")
        print(BANNER)
        return

    print(f"[-] shipyard error: {result.error}")
    if result.rollback_error is not None:
        print(f"[-] shipyard rollback failed: {result.rollback_error}")
    elif result.rollback_attempted:
        print("[*] shipyard rollback: removed uploaded archive from all hosts")

    # Hosts that were still running when the first error arrived finish now.
    await container.transfer.wait_inflight()
    sys.exit(1)


def main():
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
