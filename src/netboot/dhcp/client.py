"""
DHCP client exchanges.

Runs one DHCP transaction over a datagram transport and returns every
message of the conversation:

- DHCPv4: DISCOVER, OFFER, REQUEST, ACK
- DHCPv6: SOLICIT, ADVERTISE, REQUEST, REPLY

Each step sends once and then reads until a reply matching the
transaction arrives or the read deadline passes. Packets that fail to
parse, and replies belonging to other transactions, are dropped. There
is no retry: a failed step ends the exchange with an ExchangeError that
carries the conversation up to the last completed step.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import logging
import socket
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

from netboot.config import ExchangeConfig
from netboot.dhcp.filters import accept_v4, accept_v6
from netboot.dhcp.messages import (
    DHCPv4Message,
    DHCPv6Message,
    DHCPv6MessageType,
    MessageType,
    Modifier,
    OpCode,
    new_discovery,
    new_request_from_advertise,
    new_request_from_offer,
    new_solicit,
    parse_v4,
    parse_v6,
)
from netboot.dhcp.transport import Address, Transport, TransportFactory, UDPTransport
from netboot.errors import (
    DHCPTimeoutError,
    ExchangeError,
    NetbootError,
    ParseError,
    TransportError,
)
from netboot.interfaces import get_interface

logger = logging.getLogger(__name__)

# The (arbitrary) maximum UDP packet size accepted. Theoretically could be up to 65kb.
MAX_UDP_RECEIVED_PACKET_SIZE = 8192


def _send(
    transport: Transport,
    packet: Any,
    raddr: Address,
    write_timeout: float,
    conversation: list,
) -> None:
    try:
        transport.set_write_deadline(time.time() + write_timeout)
        transport.send_to(packet.to_bytes(), raddr)
    except socket.timeout as e:
        raise DHCPTimeoutError(f"timed out sending {packet.summary()}", conversation) from e
    except OSError as e:
        raise TransportError(f"failed to send DHCP packet: {e}", conversation) from e


def _receive(
    transport: Transport,
    parse: Callable[[bytes], Any],
    accept: Callable[[Any], bool],
    read_timeout: float,
    expected: str,
    conversation: list,
) -> Any:
    try:
        transport.set_read_deadline(time.time() + read_timeout)
    except OSError as e:
        raise TransportError(f"failed to set read deadline: {e}", conversation) from e

    while True:
        try:
            data, addr = transport.recv_from(MAX_UDP_RECEIVED_PACKET_SIZE)
        except socket.timeout as e:
            raise DHCPTimeoutError(f"timed out waiting for {expected}", conversation) from e
        except OSError as e:
            raise TransportError(f"failed to receive DHCP response: {e}", conversation) from e

        source = addr[0] if addr else "unknown"
        try:
            message = parse(data)
        except ParseError as e:
            logger.debug(f"Discarding {len(data)} bytes from {source}: {e}")
            continue

        if not accept(message):
            logger.debug(f"Discarding {message.summary()} from {source}")
            continue

        logger.debug(f"Received {message.summary()} from {source}")
        return message


class DHCPClient(ABC):
    """Interface shared by the DHCPv4 and DHCPv6 clients.

    Usage:
        client = DHCPv4Client(ExchangeConfig(read_timeout=5))
        conversation = client.exchange("eth0", with_hostname("node1"))
        netconf = get_netconf(conversation[-1])
    """

    def __init__(
        self,
        config: ExchangeConfig | None = None,
        transport_factory: TransportFactory = UDPTransport.open,
    ):
        """
        Initialize DHCP client.

        Args:
            config: Timeouts and addresses for the exchange
            transport_factory: Callable opening a transport for
                (interface name, local address)
        """
        self.config = config or ExchangeConfig()
        self.transport_factory = transport_factory

    @abstractmethod
    def exchange(self, ifname: str, *modifiers: Modifier) -> list:
        """Run one full transaction on the named interface.

        Returns:
            The four messages of the conversation, in order

        Raises:
            ExchangeError: with the partial conversation attached
        """
        pass

    def _open(self, ifname: str, laddr: Address) -> Transport:
        try:
            return self.transport_factory(ifname, laddr)
        except OSError as e:
            raise TransportError(
                f"failed to listen on {laddr[0]}:{laddr[1]}: {e}") from e


class DHCPv4Client(DHCPClient):
    """DHCPv4 client performing the DORA exchange."""

    def exchange(self, ifname: str, *modifiers: Modifier) -> list[DHCPv4Message]:
        """
        Run a full DORA transaction: Discover, Offer, Request, Acknowledge.

        Does not retry in case of failures.

        Args:
            ifname: Interface to run the exchange on
            modifiers: Applied in order to the DISCOVER and to the REQUEST

        Returns:
            [DISCOVER, OFFER, REQUEST, ACK]
        """
        conversation: list[DHCPv4Message] = []
        # Fail on a bad remote address before opening a socket
        self.config.remote_udp_addr_v4()
        laddr = self.config.local_udp_addr_v4()
        iface = get_interface(ifname)

        with self._open(ifname, laddr) as transport:
            # Discover
            discover = new_discovery(iface.hardware_addr, *modifiers)
            conversation.append(discover)
            logger.info(f"Sending DHCPDISCOVER on {ifname} (xid 0x{discover.transaction_id:08x})")

            # Offer
            offer = self.send_receive(transport, discover, MessageType.OFFER, conversation)
            conversation.append(offer)
            logger.info(
                f"DHCPOFFER of {offer.your_ip} from {offer.server_identifier() or 'unknown server'}")

            # Request
            try:
                request = new_request_from_offer(offer, *modifiers)
            except NetbootError as e:
                raise ExchangeError(f"cannot build DHCPREQUEST: {e}", conversation) from e
            conversation.append(request)
            logger.info(f"Sending DHCPREQUEST for {offer.your_ip}")

            # Ack
            ack = self.send_receive(transport, request, MessageType.ACK, conversation)
            conversation.append(ack)
            logger.info(f"DHCPACK received: {ack.your_ip}")

        return conversation

    def send_receive(
        self,
        transport: Transport,
        packet: DHCPv4Message,
        message_type: MessageType,
        conversation: list | None = None,
    ) -> DHCPv4Message:
        """Send a packet and wait for the matching reply.

        MessageType.NONE accepts any reply to the packet's transaction.
        """
        conversation = conversation if conversation is not None else []
        _send(transport, packet, self.config.remote_udp_addr_v4(),
              self.config.write_timeout, conversation)

        def accept(message: DHCPv4Message) -> bool:
            return accept_v4(message, packet.transaction_id, OpCode.BOOTREPLY, message_type)

        expected = "any reply" if message_type == MessageType.NONE else f"DHCP{message_type.name}"
        return _receive(transport, parse_v4, accept, self.config.read_timeout,
                        expected, conversation)


class DHCPv6Client(DHCPClient):
    """DHCPv6 client performing the Solicit/Advertise/Request/Reply exchange."""

    def exchange(self, ifname: str, *modifiers: Modifier) -> list[DHCPv6Message]:
        """
        Run a full DHCPv6 transaction for one non-temporary address.

        Returns:
            [SOLICIT, ADVERTISE, REQUEST, REPLY]
        """
        conversation: list[DHCPv6Message] = []
        # Fail on a bad remote address before opening a socket
        self.config.remote_udp_addr_v6()
        laddr = self.config.local_udp_addr_v6()
        iface = get_interface(ifname)

        with self._open(ifname, laddr) as transport:
            solicit = new_solicit(iface.hardware_addr, *modifiers)
            conversation.append(solicit)
            logger.info(f"Sending SOLICIT on {ifname} (trid 0x{solicit.transaction_id:06x})")

            advertise = self.send_receive(
                transport, solicit, DHCPv6MessageType.ADVERTISE, conversation)
            conversation.append(advertise)

            try:
                request = new_request_from_advertise(advertise, *modifiers)
            except NetbootError as e:
                raise ExchangeError(f"cannot build REQUEST: {e}", conversation) from e
            conversation.append(request)
            logger.info("Sending REQUEST")

            reply = self.send_receive(
                transport, request, DHCPv6MessageType.REPLY, conversation)
            conversation.append(reply)
            logger.info("REPLY received")

        return conversation

    def send_receive(
        self,
        transport: Transport,
        packet: DHCPv6Message,
        message_type: DHCPv6MessageType,
        conversation: list | None = None,
    ) -> DHCPv6Message:
        """Send a packet and wait for the matching reply.

        DHCPv6MessageType.NONE accepts any server message for the transaction.
        """
        conversation = conversation if conversation is not None else []
        _send(transport, packet, self.config.remote_udp_addr_v6(),
              self.config.write_timeout, conversation)

        def accept(message: DHCPv6Message) -> bool:
            return accept_v6(message, packet.transaction_id, message_type)

        expected = "any reply" if message_type == DHCPv6MessageType.NONE else message_type.name
        return _receive(transport, parse_v6, accept, self.config.read_timeout,
                        expected, conversation)
