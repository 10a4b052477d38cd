"""
DHCPv4 and DHCPv6 message model and wire codec.

Messages are immutable dataclasses. Builders return new messages and
modifiers (see netboot.dhcp.modifiers) are plain functions that take a
message and return a changed copy.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import random
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from functools import reduce
from typing import Callable, Iterable, TypeVar

from netaddr import IPAddress

from netboot.errors import MissingOptionError, ParseError

DHCP_MAGIC_COOKIE = bytes([99, 130, 83, 99])  # 0x63825363

# Hardware types
HTYPE_ETHERNET = 1

BROADCAST_FLAG = 0x8000

BOOTP_HEADER_FORMAT = '>BBBBIHH4s4s4s4s16s64s128s'
BOOTP_HEADER_SIZE = struct.calcsize(BOOTP_HEADER_FORMAT)  # 236
MIN_PACKET_SIZE = 300

IPV4_ZERO = IPAddress("0.0.0.0")


class OpCode(IntEnum):
    """BOOTP operation codes."""
    BOOTREQUEST = 1
    BOOTREPLY = 2


class MessageType(IntEnum):
    """DHCP message types (Option 53).

    NONE is not sent on the wire; it is the wildcard used when any
    reply type is acceptable.
    """
    NONE = 0
    DISCOVER = 1
    OFFER = 2
    REQUEST = 3
    DECLINE = 4
    ACK = 5
    NAK = 6
    RELEASE = 7
    INFORM = 8


class DHCPOption(IntEnum):
    """DHCPv4 options used by the client."""
    PAD = 0
    SUBNET_MASK = 1
    ROUTER = 3
    DNS_SERVER = 6
    HOSTNAME = 12
    DOMAIN_NAME = 15
    BROADCAST_ADDRESS = 28
    NTP_SERVER = 42
    REQUESTED_IP = 50
    LEASE_TIME = 51
    MESSAGE_TYPE = 53
    SERVER_ID = 54
    PARAMETER_REQUEST = 55
    MESSAGE = 56
    MAX_MESSAGE_SIZE = 57
    RENEWAL_TIME = 58
    REBINDING_TIME = 59
    VENDOR_CLASS_ID = 60
    CLIENT_ID = 61
    DOMAIN_SEARCH = 119
    END = 255


class DHCPv6MessageType(IntEnum):
    """DHCPv6 message types (RFC 8415)."""
    NONE = 0
    SOLICIT = 1
    ADVERTISE = 2
    REQUEST = 3
    CONFIRM = 4
    RENEW = 5
    REBIND = 6
    REPLY = 7
    RELEASE = 8
    DECLINE = 9
    RECONFIGURE = 10
    INFORMATION_REQUEST = 11
    RELAY_FORW = 12
    RELAY_REPL = 13


# Message types a server sends to a client
SERVER_MESSAGE_TYPES_V6 = frozenset({
    DHCPv6MessageType.ADVERTISE,
    DHCPv6MessageType.REPLY,
    DHCPv6MessageType.RECONFIGURE,
})


class DHCPv6Option(IntEnum):
    """DHCPv6 options used by the client."""
    CLIENT_ID = 1
    SERVER_ID = 2
    IA_NA = 3
    IA_ADDR = 5
    ORO = 6
    ELAPSED_TIME = 8
    STATUS_CODE = 13
    DNS_SERVERS = 23
    DOMAIN_LIST = 24
    NTP_SERVER = 56


class NTPSuboption(IntEnum):
    """Sub-options of the DHCPv6 NTP server option (RFC 5908)."""
    SRV_ADDR = 1
    MC_ADDR = 2
    SRV_FQDN = 3


DUID_LL = 3

DEFAULT_REQUESTED_OPTIONS = [
    DHCPOption.SUBNET_MASK,
    DHCPOption.ROUTER,
    DHCPOption.DOMAIN_NAME,
    DHCPOption.DNS_SERVER,
    DHCPOption.LEASE_TIME,
    DHCPOption.NTP_SERVER,
    DHCPOption.DOMAIN_SEARCH,
]

DEFAULT_REQUESTED_OPTIONS_V6 = [
    DHCPv6Option.DNS_SERVERS,
    DHCPv6Option.DOMAIN_LIST,
    DHCPv6Option.NTP_SERVER,
]


def format_mac(mac: bytes) -> str:
    """Format MAC address as string."""
    return ":".join(f"{b:02x}" for b in mac)


def parse_mac(mac: str) -> bytes:
    """Parse a MAC address written with ':' or '-' separators."""
    return bytes.fromhex(mac.replace(":", "").replace("-", ""))


def generate_transaction_id() -> int:
    return random.randint(0, 0xFFFFFFFF)


def generate_transaction_id_v6() -> int:
    return random.randint(0, 0xFFFFFF)


def _ip_list(data: bytes, width: int) -> list[IPAddress]:
    """Split packed addresses, ignoring a trailing partial address."""
    version = 4 if width == 4 else 6
    return [
        IPAddress(int.from_bytes(data[i:i + width], "big"), version)
        for i in range(0, len(data) - width + 1, width)
    ]


def _read_name(data: bytes, offset: int) -> tuple[list[str], int]:
    """Read one RFC 1035 name, following compression pointers."""
    labels: list[str] = []
    end = None
    visited: set[int] = set()

    while True:
        if offset >= len(data):
            raise ParseError("truncated domain name")

        length = data[offset]
        if length == 0:
            offset += 1
            break

        if length & 0xC0 == 0xC0:
            if offset + 1 >= len(data):
                raise ParseError("truncated compression pointer")
            pointer = ((length & 0x3F) << 8) | data[offset + 1]
            if pointer in visited or pointer >= len(data):
                raise ParseError(f"invalid compression pointer {pointer}")
            visited.add(pointer)
            if end is None:
                end = offset + 2
            offset = pointer
            continue

        if length & 0xC0:
            raise ParseError(f"invalid label length 0x{length:02x}")

        label = data[offset + 1:offset + 1 + length]
        if len(label) != length:
            raise ParseError("truncated label")
        labels.append(label.decode("ascii", errors="replace"))
        offset += 1 + length

    return labels, end if end is not None else offset


def decode_domain_list(data: bytes) -> list[str]:
    """Decode a domain search list (RFC 3397 / RFC 8415 section 21.9).

    Root names carry no labels and are skipped, so an option holding
    only a terminating zero decodes to an empty list.
    """
    names = []
    offset = 0
    while offset < len(data):
        labels, offset = _read_name(data, offset)
        if labels:
            names.append(".".join(labels))
    return names


def encode_domain_list(names: Iterable[str]) -> bytes:
    """Encode domain names without compression."""
    out = b""
    for name in names:
        for label in name.strip(".").split("."):
            if label:
                encoded = label.encode("ascii")
                out += bytes([len(encoded)]) + encoded
        out += b"\x00"
    return out


@dataclass(frozen=True)
class DHCPv4Message:
    """A DHCPv4 (BOOTP) message.

    Options are kept as raw bytes keyed by option code; the accessor
    methods decode the ones the client cares about.
    """
    op: OpCode = OpCode.BOOTREQUEST
    transaction_id: int = 0
    hw_type: int = HTYPE_ETHERNET
    hops: int = 0
    seconds: int = 0
    flags: int = 0
    client_ip: IPAddress = IPV4_ZERO
    your_ip: IPAddress = IPV4_ZERO
    server_ip: IPAddress = IPV4_ZERO
    gateway_ip: IPAddress = IPV4_ZERO
    client_hw_addr: bytes = b""
    server_hostname: str = ""
    boot_filename: str = ""
    options: dict[int, bytes] = field(default_factory=dict)

    @property
    def message_type(self) -> MessageType | None:
        value = self.options.get(DHCPOption.MESSAGE_TYPE)
        if not value or len(value) != 1:
            return None
        try:
            return MessageType(value[0])
        except ValueError:
            return None

    @property
    def is_broadcast(self) -> bool:
        return bool(self.flags & BROADCAST_FLAG)

    def get_option(self, code: int) -> bytes | None:
        return self.options.get(code)

    def _ip_option(self, code: int) -> IPAddress | None:
        value = self.options.get(code)
        if value is None or len(value) != 4:
            return None
        return IPAddress(int.from_bytes(value, "big"), 4)

    def subnet_mask(self) -> IPAddress | None:
        return self._ip_option(DHCPOption.SUBNET_MASK)

    def server_identifier(self) -> IPAddress | None:
        return self._ip_option(DHCPOption.SERVER_ID)

    def requested_ip(self) -> IPAddress | None:
        return self._ip_option(DHCPOption.REQUESTED_IP)

    def lease_time(self, default: int = 0) -> int:
        """Address lease time in seconds, or default if absent."""
        value = self.options.get(DHCPOption.LEASE_TIME)
        if value is None or len(value) != 4:
            return default
        return struct.unpack('>I', value)[0]

    def routers(self) -> list[IPAddress]:
        return _ip_list(self.options.get(DHCPOption.ROUTER, b""), 4)

    def dns_servers(self) -> list[IPAddress]:
        return _ip_list(self.options.get(DHCPOption.DNS_SERVER, b""), 4)

    def ntp_servers(self) -> list[IPAddress]:
        return _ip_list(self.options.get(DHCPOption.NTP_SERVER, b""), 4)

    def domain_search(self) -> list[str] | None:
        """Domain search list, or None if the option is absent.

        Raises:
            ParseError: the option is present but malformed
        """
        value = self.options.get(DHCPOption.DOMAIN_SEARCH)
        if value is None:
            return None
        return decode_domain_list(value)

    def summary(self) -> str:
        msg_type = self.message_type
        name = msg_type.name if msg_type is not None else "BOOTP"
        return (
            f"DHCPv4 {name} xid=0x{self.transaction_id:08x} "
            f"op={self.op.name} chaddr={format_mac(self.client_hw_addr)} "
            f"yiaddr={self.your_ip}"
        )

    def to_bytes(self) -> bytes:
        """Serialize to wire format."""
        packet = struct.pack(
            BOOTP_HEADER_FORMAT,
            self.op, self.hw_type, len(self.client_hw_addr), self.hops,
            self.transaction_id, self.seconds, self.flags,
            self.client_ip.packed,
            self.your_ip.packed,
            self.server_ip.packed,
            self.gateway_ip.packed,
            self.client_hw_addr,
            self.server_hostname.encode("ascii"),
            self.boot_filename.encode("ascii"),
        )
        packet += DHCP_MAGIC_COOKIE

        # Message type goes first, as servers expect
        codes = sorted(self.options, key=lambda c: c != DHCPOption.MESSAGE_TYPE)
        for code in codes:
            value = self.options[code]
            # Long values are split across repeated options (RFC 3396)
            chunks = [value[i:i + 255] for i in range(0, len(value), 255)] or [b""]
            for chunk in chunks:
                packet += bytes([code, len(chunk)]) + chunk

        packet += bytes([DHCPOption.END])

        if len(packet) < MIN_PACKET_SIZE:
            packet += b'\x00' * (MIN_PACKET_SIZE - len(packet))
        return packet


def parse_v4(data: bytes) -> DHCPv4Message:
    """Parse a DHCPv4 message.

    Raises:
        ParseError: the bytes are not a DHCPv4 message
    """
    if len(data) < BOOTP_HEADER_SIZE + len(DHCP_MAGIC_COOKIE):
        raise ParseError(f"packet too short: {len(data)} bytes")

    (op, htype, hlen, hops, xid, secs, flags, ciaddr, yiaddr, siaddr,
     giaddr, chaddr, sname, bfile) = struct.unpack(
        BOOTP_HEADER_FORMAT, data[:BOOTP_HEADER_SIZE])

    try:
        opcode = OpCode(op)
    except ValueError:
        raise ParseError(f"invalid opcode {op}") from None

    if data[BOOTP_HEADER_SIZE:BOOTP_HEADER_SIZE + 4] != DHCP_MAGIC_COOKIE:
        raise ParseError("invalid magic cookie")

    options: dict[int, bytes] = {}
    options_data = data[BOOTP_HEADER_SIZE + 4:]
    i = 0
    while i < len(options_data):
        option = options_data[i]

        if option == DHCPOption.PAD:
            i += 1
            continue

        if option == DHCPOption.END:
            break

        if i + 1 >= len(options_data):
            break

        length = options_data[i + 1]
        if i + 2 + length > len(options_data):
            raise ParseError(f"option {option} overruns packet")

        # Repeated options are concatenated (RFC 3396)
        options[option] = options.get(option, b"") + options_data[i + 2:i + 2 + length]
        i += 2 + length

    def to_ip(raw: bytes) -> IPAddress:
        return IPAddress(int.from_bytes(raw, "big"), 4)

    return DHCPv4Message(
        op=opcode,
        transaction_id=xid,
        hw_type=htype,
        hops=hops,
        seconds=secs,
        flags=flags,
        client_ip=to_ip(ciaddr),
        your_ip=to_ip(yiaddr),
        server_ip=to_ip(siaddr),
        gateway_ip=to_ip(giaddr),
        client_hw_addr=chaddr[:min(hlen, 16)],
        server_hostname=sname.decode("ascii", errors="ignore").rstrip("\x00"),
        boot_filename=bfile.decode("ascii", errors="ignore").rstrip("\x00"),
        options=options,
    )


@dataclass(frozen=True)
class IAAddress:
    """An address bound to an IA_NA with its lifetimes in seconds."""
    address: IPAddress
    preferred_lifetime: int
    valid_lifetime: int

    def to_bytes(self) -> bytes:
        body = self.address.packed + struct.pack(
            '>II', self.preferred_lifetime, self.valid_lifetime)
        return struct.pack('>HH', DHCPv6Option.IA_ADDR, len(body)) + body


@dataclass(frozen=True)
class IANA:
    """Identity Association for Non-temporary Addresses (RFC 8415 21.4)."""
    iaid: bytes
    t1: int = 0
    t2: int = 0
    addresses: tuple[IAAddress, ...] = ()

    def to_bytes(self) -> bytes:
        body = self.iaid + struct.pack('>II', self.t1, self.t2)
        for address in self.addresses:
            body += address.to_bytes()
        return body

    @classmethod
    def from_bytes(cls, data: bytes) -> "IANA":
        if len(data) < 12:
            raise ParseError(f"IA_NA too short: {len(data)} bytes")
        t1, t2 = struct.unpack('>II', data[4:12])
        addresses = []
        for code, value in _parse_v6_options(data[12:]):
            if code != DHCPv6Option.IA_ADDR:
                continue
            if len(value) < 24:
                raise ParseError(f"IA address too short: {len(value)} bytes")
            preferred, valid = struct.unpack('>II', value[16:24])
            addresses.append(IAAddress(
                address=IPAddress(int.from_bytes(value[:16], "big"), 6),
                preferred_lifetime=preferred,
                valid_lifetime=valid,
            ))
        return cls(iaid=data[:4], t1=t1, t2=t2, addresses=tuple(addresses))


def _parse_v6_options(data: bytes) -> tuple[tuple[int, bytes], ...]:
    options = []
    i = 0
    while i < len(data):
        if i + 4 > len(data):
            raise ParseError("truncated option header")
        code, length = struct.unpack('>HH', data[i:i + 4])
        if i + 4 + length > len(data):
            raise ParseError(f"option {code} overruns message")
        options.append((code, data[i + 4:i + 4 + length]))
        i += 4 + length
    return tuple(options)


def _encode_v6_options(options: Iterable[tuple[int, bytes]]) -> bytes:
    return b"".join(
        struct.pack('>HH', code, len(value)) + value for code, value in options
    )


@dataclass(frozen=True)
class DHCPv6Message:
    """A DHCPv6 client/server message. Options keep wire order and may repeat."""
    message_type: DHCPv6MessageType
    transaction_id: int = 0
    options: tuple[tuple[int, bytes], ...] = ()

    def get_option(self, code: int) -> bytes | None:
        for opt_code, value in self.options:
            if opt_code == code:
                return value
        return None

    def get_options(self, code: int) -> list[bytes]:
        return [value for opt_code, value in self.options if opt_code == code]

    def client_id(self) -> bytes | None:
        return self.get_option(DHCPv6Option.CLIENT_ID)

    def server_id(self) -> bytes | None:
        return self.get_option(DHCPv6Option.SERVER_ID)

    def one_ia_na(self) -> IANA | None:
        """First IA_NA option, or None."""
        value = self.get_option(DHCPv6Option.IA_NA)
        if value is None:
            return None
        return IANA.from_bytes(value)

    def dns_servers(self) -> list[IPAddress]:
        return _ip_list(self.get_option(DHCPv6Option.DNS_SERVERS) or b"", 16)

    def domain_search(self) -> list[str] | None:
        value = self.get_option(DHCPv6Option.DOMAIN_LIST)
        if value is None:
            return None
        return decode_domain_list(value)

    def ntp_servers(self) -> list[IPAddress]:
        """Server and multicast addresses from the NTP server options."""
        servers = []
        for value in self.get_options(DHCPv6Option.NTP_SERVER):
            for code, sub in _parse_v6_options(value):
                if code in (NTPSuboption.SRV_ADDR, NTPSuboption.MC_ADDR):
                    servers.extend(_ip_list(sub, 16))
        return servers

    def summary(self) -> str:
        return (
            f"DHCPv6 {self.message_type.name} "
            f"trid=0x{self.transaction_id:06x} options={len(self.options)}"
        )

    def to_bytes(self) -> bytes:
        header = bytes([self.message_type]) + self.transaction_id.to_bytes(3, "big")
        return header + _encode_v6_options(self.options)


def parse_v6(data: bytes) -> DHCPv6Message:
    """Parse a DHCPv6 client/server message.

    Raises:
        ParseError: the bytes are not a client/server DHCPv6 message
    """
    if len(data) < 4:
        raise ParseError(f"packet too short: {len(data)} bytes")

    try:
        msg_type = DHCPv6MessageType(data[0])
    except ValueError:
        raise ParseError(f"unknown message type {data[0]}") from None

    if msg_type in (DHCPv6MessageType.NONE, DHCPv6MessageType.RELAY_FORW,
                    DHCPv6MessageType.RELAY_REPL):
        raise ParseError(f"unsupported message type {msg_type.name}")

    return DHCPv6Message(
        message_type=msg_type,
        transaction_id=int.from_bytes(data[1:4], "big"),
        options=_parse_v6_options(data[4:]),
    )


M = TypeVar("M", DHCPv4Message, DHCPv6Message)
Modifier = Callable[[M], M]


def apply_modifiers(message: M, modifiers: Iterable[Modifier]) -> M:
    """Apply modifiers in order, each receiving the previous result."""
    return reduce(lambda msg, modifier: modifier(msg), modifiers, message)


def new_discovery(hw_addr: bytes, *modifiers: Modifier) -> DHCPv4Message:
    """Build a broadcast DHCPDISCOVER for the given hardware address."""
    discover = DHCPv4Message(
        op=OpCode.BOOTREQUEST,
        transaction_id=generate_transaction_id(),
        flags=BROADCAST_FLAG,
        client_hw_addr=hw_addr,
        options={
            DHCPOption.MESSAGE_TYPE: bytes([MessageType.DISCOVER]),
            DHCPOption.PARAMETER_REQUEST: bytes(DEFAULT_REQUESTED_OPTIONS),
        },
    )
    return apply_modifiers(discover, modifiers)


def new_request_from_offer(offer: DHCPv4Message, *modifiers: Modifier) -> DHCPv4Message:
    """Build a DHCPREQUEST accepting an offer.

    Raises:
        MissingOptionError: the offer carries no server identifier
    """
    server_id = offer.server_identifier()
    if server_id is None:
        raise MissingOptionError("missing server identifier in DHCPOFFER")

    request = DHCPv4Message(
        op=OpCode.BOOTREQUEST,
        transaction_id=offer.transaction_id,
        hw_type=offer.hw_type,
        flags=offer.flags & BROADCAST_FLAG,
        gateway_ip=offer.gateway_ip,
        client_hw_addr=offer.client_hw_addr,
        options={
            DHCPOption.MESSAGE_TYPE: bytes([MessageType.REQUEST]),
            DHCPOption.REQUESTED_IP: offer.your_ip.packed,
            DHCPOption.SERVER_ID: server_id.packed,
            DHCPOption.PARAMETER_REQUEST: bytes(DEFAULT_REQUESTED_OPTIONS),
        },
    )
    return apply_modifiers(request, modifiers)


def duid_ll(hw_addr: bytes) -> bytes:
    """DUID based on link-layer address (RFC 8415 11.4)."""
    return struct.pack('>HH', DUID_LL, HTYPE_ETHERNET) + hw_addr


def new_solicit(hw_addr: bytes, *modifiers: Modifier) -> DHCPv6Message:
    """Build a SOLICIT asking for one non-temporary address."""
    iaid = hw_addr[-4:].rjust(4, b"\x00")
    solicit = DHCPv6Message(
        message_type=DHCPv6MessageType.SOLICIT,
        transaction_id=generate_transaction_id_v6(),
        options=(
            (DHCPv6Option.CLIENT_ID, duid_ll(hw_addr)),
            (DHCPv6Option.ORO, b"".join(
                struct.pack('>H', code) for code in DEFAULT_REQUESTED_OPTIONS_V6)),
            (DHCPv6Option.ELAPSED_TIME, b"\x00\x00"),
            (DHCPv6Option.IA_NA, IANA(iaid=iaid).to_bytes()),
        ),
    )
    return apply_modifiers(solicit, modifiers)


def new_request_from_advertise(
    advertise: DHCPv6Message,
    *modifiers: Modifier,
) -> DHCPv6Message:
    """Build a REQUEST for the addresses offered in an ADVERTISE.

    Raises:
        MissingOptionError: the advertise lacks a client id, server id or IA_NA
    """
    client_id = advertise.client_id()
    if client_id is None:
        raise MissingOptionError("missing client ID in ADVERTISE")
    server_id = advertise.server_id()
    if server_id is None:
        raise MissingOptionError("missing server ID in ADVERTISE")
    ia_na = advertise.get_option(DHCPv6Option.IA_NA)
    if ia_na is None:
        raise MissingOptionError("missing IA_NA in ADVERTISE")

    request = DHCPv6Message(
        message_type=DHCPv6MessageType.REQUEST,
        transaction_id=generate_transaction_id_v6(),
        options=(
            (DHCPv6Option.CLIENT_ID, client_id),
            (DHCPv6Option.SERVER_ID, server_id),
            (DHCPv6Option.ORO, b"".join(
                struct.pack('>H', code) for code in DEFAULT_REQUESTED_OPTIONS_V6)),
            (DHCPv6Option.ELAPSED_TIME, b"\x00\x00"),
            (DHCPv6Option.IA_NA, ia_na),
        ),
    )
    return apply_modifiers(request, modifiers)
