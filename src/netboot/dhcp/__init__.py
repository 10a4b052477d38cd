"""
DHCP client module.

Provides single-attempt DHCPv4 and DHCPv6 exchanges, the message codec
they use, and modifiers for customizing outgoing messages.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

from netboot.dhcp.client import (
    DHCPClient,
    DHCPv4Client,
    DHCPv6Client,
)
from netboot.dhcp.messages import (
    DHCPOption,
    DHCPv4Message,
    DHCPv6Message,
    DHCPv6MessageType,
    DHCPv6Option,
    MessageType,
    OpCode,
)

__all__ = [
    "DHCPClient",
    "DHCPv4Client",
    "DHCPv6Client",
    "DHCPOption",
    "DHCPv4Message",
    "DHCPv6Message",
    "DHCPv6MessageType",
    "DHCPv6Option",
    "MessageType",
    "OpCode",
]
