import pytest

from netboot.dhcp.filters import accept_v4, accept_v6
from netboot.dhcp.messages import (
    DHCPOption,
    DHCPv4Message,
    DHCPv6Message,
    DHCPv6MessageType,
    MessageType,
    OpCode,
)


def v4(xid=0x1234, op=OpCode.BOOTREPLY, message_type=MessageType.OFFER):
    return DHCPv4Message(
        op=op,
        transaction_id=xid,
        options={DHCPOption.MESSAGE_TYPE: bytes([message_type])},
    )


class TestAcceptV4:
    def test_matching_reply(self):
        assert accept_v4(v4(), 0x1234, OpCode.BOOTREPLY, MessageType.OFFER)

    def test_other_transaction(self):
        assert not accept_v4(v4(xid=0x1235), 0x1234, OpCode.BOOTREPLY, MessageType.OFFER)

    def test_wrong_opcode(self):
        message = v4(op=OpCode.BOOTREQUEST)
        assert not accept_v4(message, 0x1234, OpCode.BOOTREPLY, MessageType.OFFER)

    def test_wrong_message_type(self):
        message = v4(message_type=MessageType.NAK)
        assert not accept_v4(message, 0x1234, OpCode.BOOTREPLY, MessageType.ACK)

    @pytest.mark.parametrize("message_type", [MessageType.OFFER, MessageType.ACK, MessageType.NAK])
    def test_wildcard(self, message_type):
        message = v4(message_type=message_type)
        assert accept_v4(message, 0x1234, OpCode.BOOTREPLY, MessageType.NONE)

    def test_wildcard_still_checks_transaction(self):
        assert not accept_v4(v4(xid=1), 2, OpCode.BOOTREPLY, MessageType.NONE)


class TestAcceptV6:
    def test_matching_reply(self):
        message = DHCPv6Message(DHCPv6MessageType.ADVERTISE, 0xABCDEF)
        assert accept_v6(message, 0xABCDEF, DHCPv6MessageType.ADVERTISE)

    def test_other_transaction(self):
        message = DHCPv6Message(DHCPv6MessageType.ADVERTISE, 0xABCDEE)
        assert not accept_v6(message, 0xABCDEF, DHCPv6MessageType.ADVERTISE)

    def test_wrong_message_type(self):
        message = DHCPv6Message(DHCPv6MessageType.REPLY, 1)
        assert not accept_v6(message, 1, DHCPv6MessageType.ADVERTISE)

    def test_wildcard_accepts_server_messages(self):
        message = DHCPv6Message(DHCPv6MessageType.REPLY, 1)
        assert accept_v6(message, 1, DHCPv6MessageType.NONE)

    def test_wildcard_rejects_client_messages(self):
        message = DHCPv6Message(DHCPv6MessageType.SOLICIT, 1)
        assert not accept_v6(message, 1, DHCPv6MessageType.NONE)
