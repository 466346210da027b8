"""
Node Value Object

Architectural Intent:
- Immutable value object for one SSH destination of a transfer
- Host entries may carry their own user and port ("deploy@web1:2222")
- Entries without user or port inherit the configured defaults
"""

import re
from dataclasses import dataclass

# RFC 1123 hostname: labels of alnum/hyphens, dot-separated
_HOSTNAME_RE = re.compile(
    r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.[A-Za-z0-9-]{1,63})*$"
)

_IPV4_RE = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$")

_IPV6_RE = re.compile(r"^[0-9a-fA-F:]+$")


def _is_valid_hostname(host: str) -> bool:
    if not host:
        return False

    m = _IPV4_RE.match(host)
    if m:
        return all(0 <= int(g) <= 255 for g in m.groups())

    if ":" in host and _IPV6_RE.match(host):
        return True

    return bool(_HOSTNAME_RE.match(host)) and len(host) <= 253


@dataclass(frozen=True)
class Node:
    """
    Value Object representing a single transfer destination.
    """
    host: str
    user: str = "root"
    port: int = 22

    def __post_init__(self) -> None:
        if not self.user:
            raise ValueError("Node user cannot be empty")
        if not (1 <= self.port <= 65535):
            raise ValueError(f"Port must be 1-65535, got {self.port}")
        if not _is_valid_hostname(self.host):
            raise ValueError(f"Invalid hostname: {self.host!r}")

    def __str__(self) -> str:
        return f"{self.user}@{self.host}:{self.port}"

    @staticmethod
    def parse(entry: str, default_user: str = "root", default_port: int = 22) -> "Node":
        """
        Parses 'host', 'user@host', 'host:port' or 'user@[::1]:port'.
        Missing parts fall back to default_user and default_port.
        """
        user = default_user or "root"
        port = default_port
        host = entry.strip()

        if "@" in host:
            user, host = host.split("@", 1)

        if host.startswith("["):
            bracket_end = host.find("]")
            if bracket_end == -1:
                raise ValueError(f"Unterminated IPv6 bracket in: {entry}")
            remainder = host[bracket_end + 1:]
            host = host[1:bracket_end]
            if remainder.startswith(":"):
                port = int(remainder[1:])
        elif host.count(":") == 1:
            name, _, port_str = host.partition(":")
            if port_str.isdigit():
                host, port = name, int(port_str)

        return Node(host=host, user=user, port=port)
