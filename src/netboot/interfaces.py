"""
Network interface queries.

Looks up interfaces, reads their flags and hardware address, and waits
for links to come up. Nothing here changes interface configuration.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import logging
import socket
import struct
import sys
import time
from dataclasses import dataclass

import psutil

from netboot.errors import InterfaceNotFoundError, TimeoutExpired, UnsupportedError

logger = logging.getLogger(__name__)

# Linux ioctl requests
SIOCGIFFLAGS = 0x8913
SIOCGIFHWADDR = 0x8927

SO_BINDTODEVICE = getattr(socket, "SO_BINDTODEVICE", 25)

IFF_UP = 0x1
IFF_RUNNING = 0x40

DEFAULT_POLL_INTERVAL = 0.1


@dataclass(frozen=True)
class Interface:
    """A snapshot of a network interface."""
    name: str
    index: int
    flags: int
    hardware_addr: bytes

    @property
    def is_up(self) -> bool:
        return bool(self.flags & IFF_UP)


def _ioctl(ifname: str, request: int) -> bytes:
    import fcntl

    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        return fcntl.ioctl(
            sock.fileno(),
            request,
            struct.pack('256s', ifname.encode()[:15]),
        )


def _linux_interface(name: str) -> Interface:
    try:
        index = socket.if_nametoindex(name)
    except OSError as e:
        raise InterfaceNotFoundError(f"interface {name} not found: {e}") from e

    try:
        flags = struct.unpack('H', _ioctl(name, SIOCGIFFLAGS)[16:18])[0]
        hw_addr = _ioctl(name, SIOCGIFHWADDR)[18:24]
    except OSError as e:
        # The interface vanished between the two lookups
        raise InterfaceNotFoundError(f"interface {name} not found: {e}") from e

    return Interface(name=name, index=index, flags=flags, hardware_addr=hw_addr)


def _psutil_interface(name: str) -> Interface:
    stats = psutil.net_if_stats().get(name)
    if stats is None:
        raise InterfaceNotFoundError(f"interface {name} not found")

    hw_addr = b""
    for addr in psutil.net_if_addrs().get(name, []):
        if addr.family == psutil.AF_LINK and addr.address:
            hw_addr = bytes.fromhex(addr.address.replace(":", "").replace("-", ""))
            break

    # Windows indexes are keyed by LUID alias, not the friendly name psutil reports
    try:
        index = socket.if_nametoindex(name)
    except OSError:
        index = 0

    return Interface(
        name=name,
        index=index,
        flags=IFF_UP if stats.isup else 0,
        hardware_addr=hw_addr,
    )


def get_interface(name: str) -> Interface:
    """Look up an interface by name.

    Linux reads flags and hardware address with ioctls; other platforms
    go through psutil. index is 0 when the platform cannot map the name.

    Raises:
        InterfaceNotFoundError: no such interface
    """
    if sys.platform.startswith("linux"):
        return _linux_interface(name)
    return _psutil_interface(name)


def wait_until_up(
    name: str,
    timeout: float,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> Interface:
    """
    Wait for an interface to report the up flag.

    Args:
        name: Interface name
        timeout: Seconds to wait before giving up
        poll_interval: Seconds between flag checks

    Returns:
        The interface, as soon as its up flag is set

    Raises:
        InterfaceNotFoundError: lookup failed (not retried)
        TimeoutExpired: the flag did not come up within timeout
    """
    deadline = time.monotonic() + timeout
    while True:
        iface = get_interface(name)
        if iface.is_up:
            return iface
        if time.monotonic() >= deadline:
            break
        logger.debug(f"{name} is down, checking again in {poll_interval}s")
        time.sleep(poll_interval)

    raise TimeoutExpired(f"timed out while waiting for {name} to come up")


def bind_to_interface(sock: socket.socket, ifname: str) -> None:
    """Restrict a socket to one interface.

    On Windows this is intentionally a no-op: sockets there listen on
    every interface and replies are matched by transaction id instead.
    Other non-Linux platforms raise UnsupportedError.
    """
    if sys.platform.startswith("linux"):
        sock.setsockopt(socket.SOL_SOCKET, SO_BINDTODEVICE, ifname.encode())
        logger.debug(f"Bound to interface: {ifname}")
    elif sys.platform == "win32":
        logger.debug(f"Not binding to {ifname}: listening on all interfaces")
    else:
        raise UnsupportedError(f"binding to an interface is not supported on {sys.platform}")


def configure_interface(ifname: str, netconf) -> None:
    """Apply a NetConf to an interface.

    Applying addresses, routes and resolvers is left to the caller's
    platform tooling, so this always raises.
    """
    raise UnsupportedError(
        f"configuring {ifname} is not supported; apply the configuration "
        "with the platform's network tooling"
    )
