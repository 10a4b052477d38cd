"""
Reply filters for the exchange receive loop.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

from netboot.dhcp.messages import (
    SERVER_MESSAGE_TYPES_V6,
    DHCPv4Message,
    DHCPv6Message,
    DHCPv6MessageType,
    MessageType,
    OpCode,
)


def accept_v4(
    message: DHCPv4Message,
    transaction_id: int,
    opcode: OpCode,
    message_type: MessageType,
) -> bool:
    """Check a DHCPv4 message against the expected transaction.

    MessageType.NONE matches any message type.
    """
    if message.transaction_id != transaction_id:
        return False
    if message.op != opcode:
        return False
    if message_type != MessageType.NONE and message.message_type != message_type:
        return False
    return True


def accept_v6(
    message: DHCPv6Message,
    transaction_id: int,
    message_type: DHCPv6MessageType,
) -> bool:
    """Check a DHCPv6 message against the expected transaction.

    DHCPv6 has no opcode; DHCPv6MessageType.NONE matches any message a
    server sends to a client.
    """
    if message.transaction_id != transaction_id:
        return False
    if message_type == DHCPv6MessageType.NONE:
        return message.message_type in SERVER_MESSAGE_TYPES_V6
    return message.message_type == message_type
