"""
Network configuration extracted from DHCP replies.

Turns a DHCPv4 ACK or a DHCPv6 REPLY into a NetConf: the leased
addresses with their lifetimes, DNS servers and search domains, routers
and NTP servers. Extraction either returns a complete NetConf or raises;
it never returns a partial one.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from netaddr import IPAddress, IPNetwork

from netboot.dhcp.messages import DHCPv4Message, DHCPv6Message
from netboot.errors import (
    InvalidValueError,
    MissingFieldError,
    MissingOptionError,
    ParseError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AddrConf:
    """A single IP address configuration for a NIC.

    ip_network holds the host address together with its prefix length,
    e.g. 192.0.2.50/24.
    """
    ip_network: IPNetwork
    preferred_lifetime: timedelta
    valid_lifetime: timedelta

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": str(self.ip_network),
            "preferred_lifetime": int(self.preferred_lifetime.total_seconds()),
            "valid_lifetime": int(self.valid_lifetime.total_seconds()),
        }


@dataclass(frozen=True)
class NetConf:
    """IP configuration for a NIC, plus DNS, routing and NTP settings."""
    addresses: tuple[AddrConf, ...] = ()
    dns_servers: tuple[IPAddress, ...] = ()
    dns_search_list: tuple[str, ...] = ()
    routers: tuple[IPAddress, ...] = ()
    ntp_servers: tuple[IPAddress, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "addresses": [addr.to_dict() for addr in self.addresses],
            "dns_servers": [str(ip) for ip in self.dns_servers],
            "dns_search_list": list(self.dns_search_list),
            "routers": [str(ip) for ip in self.routers],
            "ntp_servers": [str(ip) for ip in self.ntp_servers],
        }


def get_netconf_v6(reply: DHCPv6Message) -> NetConf:
    """
    Extract network configuration from a DHCPv6 REPLY.

    Every address bound in the first IA_NA becomes a /128 AddrConf with
    its own lifetimes. DNS servers, search domains and NTP servers are
    optional.

    Raises:
        MissingOptionError: no IA_NA option
        InvalidValueError: an option is present but malformed
    """
    try:
        iana = reply.one_ia_na()
    except ParseError as e:
        raise InvalidValueError(f"malformed IA_NA option: {e}") from e
    if iana is None:
        raise MissingOptionError("no option IA NA found")

    addresses = tuple(
        AddrConf(
            ip_network=IPNetwork(f"{iaaddr.address}/128"),
            preferred_lifetime=timedelta(seconds=iaaddr.preferred_lifetime),
            valid_lifetime=timedelta(seconds=iaaddr.valid_lifetime),
        )
        for iaaddr in iana.addresses
    )

    try:
        domains = reply.domain_search()
        ntp_servers = reply.ntp_servers()
    except ParseError as e:
        raise InvalidValueError(f"malformed option in DHCPv6 reply: {e}") from e

    netconf = NetConf(
        addresses=addresses,
        dns_servers=tuple(reply.dns_servers()),
        dns_search_list=tuple(domains or ()),
        ntp_servers=tuple(ntp_servers),
    )
    logger.debug(f"DHCPv6 configuration: {netconf.to_dict()}")
    return netconf


def get_netconf_v4(reply: DHCPv4Message) -> NetConf:
    """
    Extract network configuration from a DHCPv4 ACK.

    Produces one AddrConf for yiaddr with the subnet mask as prefix, a
    preferred lifetime of 0 and the lease time (0 if absent) as valid
    lifetime.

    Raises:
        MissingFieldError: yiaddr is unset or 0.0.0.0
        MissingOptionError: no subnet mask option
        InvalidValueError: zero-width subnet mask, or a domain search
            option that is present but holds no domains
    """
    ip_addr = reply.your_ip
    if ip_addr is None or int(ip_addr) == 0:
        raise MissingFieldError("ip address is null (0.0.0.0)")

    netmask = reply.subnet_mask()
    if netmask is None:
        raise MissingOptionError("no netmask option in response packet")
    # Non-contiguous masks have no prefix length and count as empty
    if not netmask.is_netmask() or netmask.netmask_bits() == 0:
        raise InvalidValueError(f"netmask {netmask} extracted from subnet mask option is null")

    lease_time = reply.lease_time(0)

    try:
        dns_search_list = reply.domain_search()
    except ParseError as e:
        raise InvalidValueError(f"malformed domain search option: {e}") from e
    if dns_search_list is not None and len(dns_search_list) == 0:
        raise InvalidValueError("dns search list is empty")

    netconf = NetConf(
        addresses=(
            AddrConf(
                ip_network=IPNetwork(f"{ip_addr}/{netmask.netmask_bits()}"),
                preferred_lifetime=timedelta(0),
                valid_lifetime=timedelta(seconds=lease_time),
            ),
        ),
        dns_servers=tuple(reply.dns_servers()),
        dns_search_list=tuple(dns_search_list or ()),
        routers=tuple(reply.routers()),
        ntp_servers=tuple(reply.ntp_servers()),
    )
    logger.debug(f"DHCPv4 configuration: {netconf.to_dict()}")
    return netconf


def get_netconf(reply: DHCPv4Message | DHCPv6Message) -> NetConf:
    """Extract network configuration from a reply of either protocol version."""
    if isinstance(reply, DHCPv4Message):
        return get_netconf_v4(reply)
    if isinstance(reply, DHCPv6Message):
        return get_netconf_v6(reply)
    raise TypeError(f"expected a DHCPv4 or DHCPv6 message, got {type(reply).__name__}")
