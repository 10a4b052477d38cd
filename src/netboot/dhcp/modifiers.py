"""
Message modifiers.

A modifier is a function that takes a message and returns a modified
copy. Exchanges apply them in the order given, to the DISCOVER/SOLICIT
and again to the REQUEST derived from the server's answer.

Usage:
    client.exchange(
        "eth0",
        with_hostname("installer"),
        with_vendor_class("PXEClient:Arch:00007:UNDI:003016"),
    )

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import struct
from dataclasses import replace
from typing import Callable

from netaddr import IPAddress

from netboot.dhcp.messages import (
    BROADCAST_FLAG,
    HTYPE_ETHERNET,
    DHCPOption,
    DHCPv4Message,
    DHCPv6Message,
    DHCPv6Option,
    MessageType,
    encode_domain_list,
)

V4Modifier = Callable[[DHCPv4Message], DHCPv4Message]
V6Modifier = Callable[[DHCPv6Message], DHCPv6Message]


def with_option(code: int, value: bytes) -> V4Modifier:
    """Set (or replace) a raw DHCPv4 option."""
    def modify(message: DHCPv4Message) -> DHCPv4Message:
        return replace(message, options={**message.options, code: value})
    return modify


def without_option(code: int) -> V4Modifier:
    """Remove a DHCPv4 option if present."""
    def modify(message: DHCPv4Message) -> DHCPv4Message:
        options = {k: v for k, v in message.options.items() if k != code}
        return replace(message, options=options)
    return modify


def with_message_type(message_type: MessageType) -> V4Modifier:
    return with_option(DHCPOption.MESSAGE_TYPE, bytes([message_type]))


def with_transaction_id(transaction_id: int) -> V4Modifier:
    def modify(message: DHCPv4Message) -> DHCPv4Message:
        return replace(message, transaction_id=transaction_id)
    return modify


def with_hwaddr(hw_addr: bytes) -> V4Modifier:
    """Override the client hardware address (chaddr)."""
    def modify(message: DHCPv4Message) -> DHCPv4Message:
        return replace(message, hw_type=HTYPE_ETHERNET, client_hw_addr=hw_addr)
    return modify


def with_broadcast(enabled: bool = True) -> V4Modifier:
    """Ask the server to broadcast its replies."""
    def modify(message: DHCPv4Message) -> DHCPv4Message:
        if enabled:
            flags = message.flags | BROADCAST_FLAG
        else:
            flags = message.flags & ~BROADCAST_FLAG
        return replace(message, flags=flags)
    return modify


def with_requested_options(*codes: int) -> V4Modifier:
    """Add codes to the parameter request list (Option 55), keeping order."""
    def modify(message: DHCPv4Message) -> DHCPv4Message:
        current = list(message.options.get(DHCPOption.PARAMETER_REQUEST, b""))
        for code in codes:
            if code not in current:
                current.append(code)
        return with_option(DHCPOption.PARAMETER_REQUEST, bytes(current))(message)
    return modify


def with_hostname(hostname: str) -> V4Modifier:
    return with_option(DHCPOption.HOSTNAME, hostname.encode())


def with_client_id(client_id: bytes) -> V4Modifier:
    return with_option(DHCPOption.CLIENT_ID, client_id)


def with_vendor_class(vendor_class_id: str) -> V4Modifier:
    """Vendor class identifier, e.g. "PXEClient:Arch:00000:UNDI:002001"."""
    return with_option(DHCPOption.VENDOR_CLASS_ID, vendor_class_id.encode())


def with_requested_ip(address: str | IPAddress) -> V4Modifier:
    return with_option(DHCPOption.REQUESTED_IP, IPAddress(address).packed)


def with_server_identifier(address: str | IPAddress) -> V4Modifier:
    return with_option(DHCPOption.SERVER_ID, IPAddress(address).packed)


def with_max_message_size(size: int) -> V4Modifier:
    return with_option(DHCPOption.MAX_MESSAGE_SIZE, struct.pack('>H', size))


def with_domain_search(*names: str) -> V4Modifier:
    return with_option(DHCPOption.DOMAIN_SEARCH, encode_domain_list(names))


def with_option_v6(code: int, value: bytes) -> V6Modifier:
    """Set a DHCPv6 option, replacing every existing instance of it."""
    def modify(message: DHCPv6Message) -> DHCPv6Message:
        options = tuple((c, v) for c, v in message.options if c != code)
        return replace(message, options=options + ((code, value),))
    return modify


def with_client_duid(duid: bytes) -> V6Modifier:
    return with_option_v6(DHCPv6Option.CLIENT_ID, duid)


def with_requested_options_v6(*codes: int) -> V6Modifier:
    """Add codes to the Option Request option, keeping order."""
    def modify(message: DHCPv6Message) -> DHCPv6Message:
        raw = message.get_option(DHCPv6Option.ORO) or b""
        current = [
            struct.unpack('>H', raw[i:i + 2])[0] for i in range(0, len(raw) - 1, 2)
        ]
        for code in codes:
            if code not in current:
                current.append(code)
        value = b"".join(struct.pack('>H', code) for code in current)
        return with_option_v6(DHCPv6Option.ORO, value)(message)
    return modify
