import os
import socket
import struct
from collections import deque
from unittest import mock

import pytest
from netaddr import IPAddress

from netboot import config
from netboot.dhcp.messages import (
    DHCPOption,
    DHCPv4Message,
    DHCPv6Message,
    DHCPv6MessageType,
    DHCPv6Option,
    IAAddress,
    IANA,
    MessageType,
    OpCode,
    parse_v4,
    parse_v6,
)
from netboot.dhcp.transport import Transport
from netboot.interfaces import IFF_UP, Interface

CLIENT_MAC = bytes.fromhex("020000abcdef")
SERVER_IP = IPAddress("192.0.2.1")
OFFERED_IP = IPAddress("192.0.2.50")
SERVER_DUID = bytes.fromhex("000300010a0000000001")


class FakeTransport(Transport):
    """In-memory transport.

    Every sent datagram is passed to the responder, whose return value
    (a list of datagrams) is queued for reading. Reading from an empty
    queue behaves like an elapsed read deadline.
    """

    def __init__(self, responder=None, inbox=None):
        self.responder = responder
        self.inbox = deque(inbox or [])
        self.sent = []
        self.read_deadlines = []
        self.write_deadlines = []
        self.closed = False
        self.send_error = None

    def send_to(self, data, addr):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((data, addr))
        if self.responder is not None:
            self.inbox.extend(self.responder(data))
        return len(data)

    def recv_from(self, bufsize):
        if not self.inbox:
            raise socket.timeout("deadline exceeded")
        return self.inbox.popleft(), ("192.0.2.1", 67)

    def set_read_deadline(self, deadline):
        self.read_deadlines.append(deadline)

    def set_write_deadline(self, deadline):
        self.write_deadlines.append(deadline)

    def close(self):
        self.closed = True


def make_offer(request: DHCPv4Message, message_type=MessageType.OFFER, **overrides):
    options = {
        DHCPOption.MESSAGE_TYPE: bytes([message_type]),
        DHCPOption.SERVER_ID: SERVER_IP.packed,
        DHCPOption.SUBNET_MASK: IPAddress("255.255.255.0").packed,
        DHCPOption.LEASE_TIME: struct.pack('>I', 3600),
        DHCPOption.ROUTER: SERVER_IP.packed,
        DHCPOption.DNS_SERVER: IPAddress("8.8.8.8").packed,
    }
    fields = dict(
        op=OpCode.BOOTREPLY,
        transaction_id=request.transaction_id,
        client_hw_addr=request.client_hw_addr,
        your_ip=OFFERED_IP,
        server_ip=SERVER_IP,
        options=options,
    )
    fields.update(overrides)
    return DHCPv4Message(**fields)


def dhcpv4_server(ack=True):
    """Responder answering DISCOVER with an OFFER and REQUEST with an ACK."""
    def respond(data):
        request = parse_v4(data)
        if request.message_type == MessageType.DISCOVER:
            return [make_offer(request).to_bytes()]
        if request.message_type == MessageType.REQUEST and ack:
            return [make_offer(request, MessageType.ACK).to_bytes()]
        return []
    return respond


def dhcpv6_server(reply=True):
    """Responder answering SOLICIT with ADVERTISE and REQUEST with REPLY."""
    def respond(data):
        request = parse_v6(data)
        if request.message_type == DHCPv6MessageType.SOLICIT:
            msg_type = DHCPv6MessageType.ADVERTISE
        elif request.message_type == DHCPv6MessageType.REQUEST and reply:
            msg_type = DHCPv6MessageType.REPLY
        else:
            return []
        iana = IANA(
            iaid=request.one_ia_na().iaid,
            t1=1800,
            t2=2880,
            addresses=(IAAddress(IPAddress("2001:db8::50"), 3600, 7200),),
        )
        answer = DHCPv6Message(
            message_type=msg_type,
            transaction_id=request.transaction_id,
            options=(
                (DHCPv6Option.CLIENT_ID, request.client_id()),
                (DHCPv6Option.SERVER_ID, SERVER_DUID),
                (DHCPv6Option.IA_NA, iana.to_bytes()),
                (DHCPv6Option.DNS_SERVERS, IPAddress("2001:db8::53").packed),
            ),
        )
        return [answer.to_bytes()]
    return respond


@pytest.fixture
def fake_interface(monkeypatch):
    """Make every interface lookup in the client return an up interface."""
    iface = Interface(name="eth0", index=2, flags=IFF_UP, hardware_addr=CLIENT_MAC)
    monkeypatch.setattr("netboot.dhcp.client.get_interface", lambda name: iface)
    return iface


@pytest.fixture(autouse=True)
def no_env_files(monkeypatch):
    """Keep developer .env files and NETBOOT_* variables out of the tests."""
    monkeypatch.setattr(config, "ENV_LOCATIONS", [])
    with mock.patch.dict(os.environ):
        for name in [k for k in os.environ if k.startswith("NETBOOT_")]:
            del os.environ[name]
        yield
