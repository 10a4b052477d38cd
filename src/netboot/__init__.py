"""
netboot - DHCP lease acquisition for netboot and installer tooling

Runs a single client-side DHCP transaction (DHCPv4 DORA or the DHCPv6
Solicit/Advertise/Request/Reply sequence) and turns the server's reply
into a normalized network configuration, without touching the operating
system's interfaces.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

__version__ = "0.1.0"
__author__ = "DNS Science.io"
__copyright__ = "Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company"
