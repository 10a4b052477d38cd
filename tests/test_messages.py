import struct

import pytest
from netaddr import IPAddress

from netboot.dhcp.messages import (
    BROADCAST_FLAG,
    DHCP_MAGIC_COOKIE,
    MIN_PACKET_SIZE,
    DHCPOption,
    DHCPv4Message,
    DHCPv6MessageType,
    DHCPv6Option,
    IAAddress,
    IANA,
    MessageType,
    OpCode,
    decode_domain_list,
    duid_ll,
    encode_domain_list,
    format_mac,
    new_discovery,
    new_request_from_advertise,
    new_request_from_offer,
    new_solicit,
    parse_mac,
    parse_v4,
    parse_v6,
)
from netboot.errors import MissingOptionError, ParseError

MAC = bytes.fromhex("020000abcdef")


class TestDHCPv4Codec:
    def test_discovery(self):
        discover = new_discovery(MAC)

        assert discover.op == OpCode.BOOTREQUEST
        assert discover.message_type == MessageType.DISCOVER
        assert discover.flags & BROADCAST_FLAG
        assert DHCPOption.SUBNET_MASK in discover.get_option(DHCPOption.PARAMETER_REQUEST)

    def test_wire_layout(self):
        data = new_discovery(MAC).to_bytes()

        assert len(data) >= MIN_PACKET_SIZE
        assert data[0] == OpCode.BOOTREQUEST
        assert data[2] == 6
        assert data[28:34] == MAC
        assert data[236:240] == DHCP_MAGIC_COOKIE
        # Message type is the first option
        assert data[240:243] == bytes([DHCPOption.MESSAGE_TYPE, 1, MessageType.DISCOVER])

    def test_parse_header_fields(self):
        message = DHCPv4Message(
            op=OpCode.BOOTREPLY,
            transaction_id=0xDEADBEEF,
            flags=BROADCAST_FLAG,
            your_ip=IPAddress("192.0.2.50"),
            gateway_ip=IPAddress("192.0.2.254"),
            client_hw_addr=MAC,
            boot_filename="pxelinux.0",
            options={DHCPOption.MESSAGE_TYPE: bytes([MessageType.OFFER])},
        )

        parsed = parse_v4(message.to_bytes())

        assert parsed.op == OpCode.BOOTREPLY
        assert parsed.transaction_id == 0xDEADBEEF
        assert parsed.is_broadcast
        assert parsed.your_ip == IPAddress("192.0.2.50")
        assert parsed.gateway_ip == IPAddress("192.0.2.254")
        assert parsed.client_hw_addr == MAC
        assert parsed.boot_filename == "pxelinux.0"
        assert parsed.message_type == MessageType.OFFER

    def test_long_option_split_and_joined(self):
        long_value = bytes(range(256)) * 2
        message = DHCPv4Message(options={DHCPOption.VENDOR_CLASS_ID: long_value})

        assert parse_v4(message.to_bytes()).get_option(DHCPOption.VENDOR_CLASS_ID) == long_value

    def test_pad_options_skipped(self):
        data = bytearray(DHCPv4Message().to_bytes()[:240])
        data += bytes([0, 0, DHCPOption.MESSAGE_TYPE, 1, MessageType.ACK, 255])

        assert parse_v4(bytes(data)).message_type == MessageType.ACK

    def test_too_short(self):
        with pytest.raises(ParseError):
            parse_v4(b"\x02" * 100)

    def test_bad_opcode(self):
        data = bytearray(DHCPv4Message().to_bytes())
        data[0] = 7
        with pytest.raises(ParseError):
            parse_v4(bytes(data))

    def test_bad_magic_cookie(self):
        data = bytearray(DHCPv4Message().to_bytes())
        data[236:240] = b"\x00\x00\x00\x00"
        with pytest.raises(ParseError):
            parse_v4(bytes(data))

    def test_option_overrun(self):
        data = DHCPv4Message().to_bytes()[:240] + bytes([DHCPOption.HOSTNAME, 50, 65])
        with pytest.raises(ParseError):
            parse_v4(data)

    def test_unknown_message_type(self):
        message = DHCPv4Message(options={DHCPOption.MESSAGE_TYPE: b"\x63"})

        assert message.message_type is None
        assert "BOOTP" in message.summary()

    def test_summary_names_type_zero(self):
        message = DHCPv4Message(options={DHCPOption.MESSAGE_TYPE: b"\x00"})

        assert message.message_type == MessageType.NONE
        assert message.summary().startswith("DHCPv4 NONE ")

    def test_request_from_offer(self):
        offer = DHCPv4Message(
            op=OpCode.BOOTREPLY,
            transaction_id=42,
            flags=BROADCAST_FLAG,
            your_ip=IPAddress("192.0.2.50"),
            gateway_ip=IPAddress("192.0.2.254"),
            client_hw_addr=MAC,
            options={
                DHCPOption.MESSAGE_TYPE: bytes([MessageType.OFFER]),
                DHCPOption.SERVER_ID: IPAddress("192.0.2.1").packed,
            },
        )

        request = new_request_from_offer(offer)

        assert request.op == OpCode.BOOTREQUEST
        assert request.message_type == MessageType.REQUEST
        assert request.transaction_id == 42
        assert request.is_broadcast
        assert request.gateway_ip == IPAddress("192.0.2.254")
        assert request.client_hw_addr == MAC
        assert request.requested_ip() == IPAddress("192.0.2.50")
        assert request.server_identifier() == IPAddress("192.0.2.1")
        assert request.your_ip == IPAddress("0.0.0.0")

    def test_request_from_offer_without_server_id(self):
        offer = DHCPv4Message(op=OpCode.BOOTREPLY, your_ip=IPAddress("192.0.2.50"))

        with pytest.raises(MissingOptionError):
            new_request_from_offer(offer)

    def test_lease_time_default(self):
        message = DHCPv4Message()

        assert message.lease_time() == 0
        assert message.lease_time(default=60) == 60
        assert DHCPv4Message(
            options={DHCPOption.LEASE_TIME: struct.pack('>I', 86400)}).lease_time() == 86400


class TestDomainList:
    def test_encode_decode(self):
        names = ["example.com", "lab.example.com"]

        assert decode_domain_list(encode_domain_list(names)) == names

    def test_compression_pointer(self):
        # example.com, then lab.<pointer to offset 0>
        data = b"\x07example\x03com\x00" + b"\x03lab\xc0\x00"

        assert decode_domain_list(data) == ["example.com", "lab.example.com"]

    def test_root_only(self):
        assert decode_domain_list(b"\x00") == []

    def test_pointer_loop(self):
        with pytest.raises(ParseError):
            decode_domain_list(b"\xc0\x00")

    def test_truncated_label(self):
        with pytest.raises(ParseError):
            decode_domain_list(b"\x0aexample")


class TestDHCPv6Codec:
    def test_solicit(self):
        solicit = new_solicit(MAC)

        assert solicit.message_type == DHCPv6MessageType.SOLICIT
        assert 0 <= solicit.transaction_id <= 0xFFFFFF
        assert solicit.client_id() == duid_ll(MAC)
        assert solicit.one_ia_na().iaid == MAC[-4:]
        assert solicit.get_option(DHCPv6Option.ELAPSED_TIME) == b"\x00\x00"

    def test_wire_round_trip(self):
        solicit = new_solicit(MAC)
        data = solicit.to_bytes()

        assert data[0] == DHCPv6MessageType.SOLICIT
        assert parse_v6(data) == solicit

    def test_ia_na_addresses(self):
        iana = IANA(
            iaid=b"\x00\x00\x00\x07",
            t1=100,
            t2=200,
            addresses=(
                IAAddress(IPAddress("2001:db8::1"), 300, 400),
                IAAddress(IPAddress("2001:db8::2"), 500, 600),
            ),
        )

        parsed = IANA.from_bytes(iana.to_bytes())

        assert parsed == iana

    def test_ia_na_too_short(self):
        with pytest.raises(ParseError):
            IANA.from_bytes(b"\x00\x00\x00\x01")

    def test_relay_messages_rejected(self):
        with pytest.raises(ParseError):
            parse_v6(bytes([DHCPv6MessageType.RELAY_REPL, 0, 0, 0]))

    def test_truncated_option(self):
        with pytest.raises(ParseError):
            parse_v6(bytes([DHCPv6MessageType.REPLY, 0, 0, 1]) + b"\x00\x17\x00\x10\x20")

    def test_ntp_server_suboptions(self):
        srv = IPAddress("2001:db8::123").packed
        mc = IPAddress("ff05::101").packed
        fqdn = encode_domain_list(["ntp.example.com"])
        value = (
            struct.pack('>HH', 1, 16) + srv
            + struct.pack('>HH', 2, 16) + mc
            + struct.pack('>HH', 3, len(fqdn)) + fqdn
        )
        message = parse_v6(
            bytes([DHCPv6MessageType.REPLY, 0, 0, 1])
            + struct.pack('>HH', DHCPv6Option.NTP_SERVER, len(value)) + value
        )

        assert [str(ip) for ip in message.ntp_servers()] == ["2001:db8::123", "ff05::101"]

    def test_request_from_advertise(self):
        solicit = new_solicit(MAC)
        advertise = parse_v6(
            bytes([DHCPv6MessageType.ADVERTISE]) + solicit.transaction_id.to_bytes(3, "big")
            + struct.pack('>HH', DHCPv6Option.CLIENT_ID, len(duid_ll(MAC))) + duid_ll(MAC)
            + struct.pack('>HH', DHCPv6Option.SERVER_ID, 4) + b"\x00\x01\x02\x03"
            + struct.pack('>HH', DHCPv6Option.IA_NA, 12) + MAC[-4:] + bytes(8)
        )

        request = new_request_from_advertise(advertise)

        assert request.message_type == DHCPv6MessageType.REQUEST
        assert request.client_id() == duid_ll(MAC)
        assert request.server_id() == b"\x00\x01\x02\x03"
        assert request.one_ia_na().iaid == MAC[-4:]

    def test_request_from_advertise_without_server_id(self):
        solicit = new_solicit(MAC)

        with pytest.raises(MissingOptionError):
            new_request_from_advertise(solicit)


def test_mac_helpers():
    assert format_mac(MAC) == "02:00:00:ab:cd:ef"
    assert parse_mac("02:00:00:ab:cd:ef") == MAC
    assert parse_mac("02-00-00-AB-CD-EF") == MAC
