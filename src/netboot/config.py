"""
Configuration management for netboot.

Settings are plain frozen dataclasses passed to each client or call;
nothing here is held in module-level mutable state. Values can be read
from NETBOOT_* environment variables or a .env file.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from netaddr import AddrFormatError, IPAddress

from netboot.errors import InvalidValueError
from netboot.interfaces import DEFAULT_POLL_INTERVAL

DHCP_SERVER_PORT = 67
DHCP_CLIENT_PORT = 68
DHCPV6_SERVER_PORT = 547
DHCPV6_CLIENT_PORT = 546
ALL_DHCP_RELAY_AGENTS_AND_SERVERS = "ff02::1:2"

DEFAULT_READ_TIMEOUT = 3.0
DEFAULT_WRITE_TIMEOUT = 3.0
DEFAULT_LINK_TIMEOUT = 10.0

ENV_LOCATIONS = [
    Path.home() / ".netboot" / ".env",
    Path.home() / ".config" / "netboot" / ".env",
    Path.cwd() / ".env",
]

UDPAddr = tuple[str, int]


def load_env_files() -> Path | None:
    """Load the first .env file found in the usual locations."""
    for env_path in ENV_LOCATIONS:
        if env_path.exists():
            load_dotenv(env_path)
            return env_path
    return None


def parse_hostport(value: str) -> UDPAddr:
    """Parse "host:port" or "[v6host]:port"."""
    host, sep, port = value.rpartition(":")
    if not sep or not host:
        raise InvalidValueError(f"expected host:port, got '{value}'")
    host = host.strip("[]")
    try:
        return host, int(port)
    except ValueError:
        raise InvalidValueError(f"invalid port in '{value}'") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise InvalidValueError(f"{name} must be a number, got '{raw}'") from None


def _env_addr(name: str) -> UDPAddr | None:
    raw = os.getenv(name)
    if not raw:
        return None
    return parse_hostport(raw)


def _check_family(addr: UDPAddr, version: int, what: str) -> UDPAddr:
    try:
        ip = IPAddress(addr[0])
    except (AddrFormatError, ValueError, TypeError):
        raise InvalidValueError(f"Invalid {what} address: '{addr[0]}'") from None
    if ip.version != version:
        raise InvalidValueError(
            f"Invalid {what} address: '{addr[0]}' is not a valid IPv{version} address"
        )
    return addr


@dataclass(frozen=True)
class ExchangeConfig:
    """Timeouts and addresses for one DHCP exchange.

    Timeouts are in seconds. Unset addresses fall back to the protocol
    defaults: broadcast to port 67 from 0.0.0.0:68 for DHCPv4, and
    ff02::1:2 port 547 from [::]:546 for DHCPv6.
    """
    read_timeout: float = DEFAULT_READ_TIMEOUT
    write_timeout: float = DEFAULT_WRITE_TIMEOUT
    local_addr: UDPAddr | None = None
    remote_addr: UDPAddr | None = None

    def local_udp_addr_v4(self) -> UDPAddr:
        return _check_family(self.local_addr or ("0.0.0.0", DHCP_CLIENT_PORT), 4, "local")

    def remote_udp_addr_v4(self) -> UDPAddr:
        return _check_family(
            self.remote_addr or ("255.255.255.255", DHCP_SERVER_PORT), 4, "remote")

    def local_udp_addr_v6(self) -> UDPAddr:
        return _check_family(self.local_addr or ("::", DHCPV6_CLIENT_PORT), 6, "local")

    def remote_udp_addr_v6(self) -> UDPAddr:
        return _check_family(
            self.remote_addr or (ALL_DHCP_RELAY_AGENTS_AND_SERVERS, DHCPV6_SERVER_PORT),
            6, "remote")

    @classmethod
    def from_env(cls) -> "ExchangeConfig":
        """Load configuration from environment variables."""
        load_env_files()
        return cls(
            read_timeout=_env_float("NETBOOT_READ_TIMEOUT", DEFAULT_READ_TIMEOUT),
            write_timeout=_env_float("NETBOOT_WRITE_TIMEOUT", DEFAULT_WRITE_TIMEOUT),
            local_addr=_env_addr("NETBOOT_LOCAL_ADDR"),
            remote_addr=_env_addr("NETBOOT_REMOTE_ADDR"),
        )


@dataclass(frozen=True)
class LinkConfig:
    """How long, and how often, to poll an interface for link readiness."""
    timeout: float = DEFAULT_LINK_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL

    @classmethod
    def from_env(cls) -> "LinkConfig":
        load_env_files()
        return cls(
            timeout=_env_float("NETBOOT_LINK_TIMEOUT", DEFAULT_LINK_TIMEOUT),
            poll_interval=_env_float("NETBOOT_POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
        )
