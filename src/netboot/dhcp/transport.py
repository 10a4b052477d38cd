"""
Datagram transports for DHCP exchanges.

A transport sends and receives datagrams and honours absolute read and
write deadlines (wall-clock seconds, as returned by time.time()). Once a
deadline has passed, the pending operation raises TimeoutError.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import logging
import socket
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

from netboot.interfaces import bind_to_interface

logger = logging.getLogger(__name__)

Address = tuple[Any, ...]


class Transport(ABC):
    """Interface for sending and receiving DHCP datagrams."""

    @abstractmethod
    def send_to(self, data: bytes, addr: Address) -> int:
        """Send a datagram, returning the number of bytes sent."""
        pass

    @abstractmethod
    def recv_from(self, bufsize: int) -> tuple[bytes, Address]:
        """Receive one datagram and the address it came from."""
        pass

    @abstractmethod
    def set_read_deadline(self, deadline: float | None) -> None:
        pass

    @abstractmethod
    def set_write_deadline(self, deadline: float | None) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


TransportFactory = Callable[[str, Address], Transport]


class UDPTransport(Transport):
    """
    UDP socket transport.

    Usage:
        with UDPTransport.open("eth0", ("0.0.0.0", 68)) as transport:
            transport.set_write_deadline(time.time() + 3)
            transport.send_to(packet, ("255.255.255.255", 67))
    """

    def __init__(self, sock: socket.socket):
        self._socket = sock
        self._read_deadline: float | None = None
        self._write_deadline: float | None = None

    @classmethod
    def open(cls, ifname: str, local_addr: Address) -> "UDPTransport":
        """Create a UDP socket bound to local_addr on the given interface."""
        family = socket.AF_INET6 if ":" in str(local_addr[0]) else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if family == socket.AF_INET:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            else:
                sock.setsockopt(
                    socket.IPPROTO_IPV6,
                    socket.IPV6_MULTICAST_IF,
                    socket.if_nametoindex(ifname),
                )
            bind_to_interface(sock, ifname)
            sock.bind(local_addr)
        except BaseException:
            sock.close()
            raise

        logger.debug(f"Listening on {local_addr[0]}:{local_addr[1]} ({ifname})")
        return cls(sock)

    def _arm(self, deadline: float | None) -> None:
        if deadline is None:
            self._socket.settimeout(None)
            return
        remaining = deadline - time.time()
        if remaining <= 0:
            raise socket.timeout("deadline exceeded")
        self._socket.settimeout(remaining)

    def send_to(self, data: bytes, addr: Address) -> int:
        self._arm(self._write_deadline)
        return self._socket.sendto(data, addr)

    def recv_from(self, bufsize: int) -> tuple[bytes, Address]:
        self._arm(self._read_deadline)
        return self._socket.recvfrom(bufsize)

    def set_read_deadline(self, deadline: float | None) -> None:
        self._read_deadline = deadline

    def set_write_deadline(self, deadline: float | None) -> None:
        self._write_deadline = deadline

    def close(self) -> None:
        self._socket.close()
