"""
CLI commands for DHCP exchanges.

Thin wrappers that collect the interface name, timeouts and modifiers,
run one exchange and print the resulting network configuration.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import json
import sys
from dataclasses import replace

import click
from rich.console import Console
from rich.table import Table

from netboot.config import ExchangeConfig, LinkConfig
from netboot.dhcp.client import DHCPClient, DHCPv4Client, DHCPv6Client
from netboot.dhcp.messages import duid_ll, parse_mac
from netboot.dhcp.modifiers import (
    with_client_duid,
    with_hostname,
    with_hwaddr,
    with_vendor_class,
)
from netboot.errors import ExchangeError, NetbootError
from netboot.interfaces import wait_until_up
from netboot.netconf import NetConf, get_netconf

console = Console(stderr=True)


def display_netconf(netconf: NetConf) -> None:
    """Display network configuration."""
    table = Table(title="Network Configuration", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    for addr in netconf.addresses:
        table.add_row("Address", str(addr.ip_network))
        table.add_row("  Preferred", f"{int(addr.preferred_lifetime.total_seconds())}s")
        table.add_row("  Valid", f"{int(addr.valid_lifetime.total_seconds())}s")

    table.add_row("Routers", ", ".join(str(ip) for ip in netconf.routers) or "N/A")
    table.add_row("DNS Servers", ", ".join(str(ip) for ip in netconf.dns_servers) or "N/A")
    table.add_row("Search List", ", ".join(netconf.dns_search_list) or "N/A")
    table.add_row("NTP Servers", ", ".join(str(ip) for ip in netconf.ntp_servers) or "N/A")

    Console().print(table)


def run_exchange(
    client: DHCPClient,
    interface: str,
    modifiers: list,
    wait_up: float,
    json_out: bool,
) -> None:
    """Optionally wait for the link, run the exchange and report the result."""
    try:
        if wait_up > 0:
            link = LinkConfig.from_env()
            if not json_out:
                console.print(f"[dim]Waiting up to {wait_up}s for {interface}...[/dim]")
            wait_until_up(interface, wait_up, link.poll_interval)

        conversation = client.exchange(interface, *modifiers)
        netconf = get_netconf(conversation[-1])

    except ExchangeError as e:
        steps = [message.summary() for message in e.conversation]
        if json_out:
            click.echo(json.dumps({"success": False, "error": str(e), "conversation": steps}))
        else:
            console.print(f"[red]Exchange failed: {e}[/red]")
            for step in steps:
                console.print(f"[dim]  {step}[/dim]")
            if isinstance(e.__cause__, PermissionError):
                console.print("[red]Permission denied. Run as root or with CAP_NET_RAW capability.[/red]")
        sys.exit(1)

    except NetbootError as e:
        if json_out:
            click.echo(json.dumps({"success": False, "error": str(e)}))
        else:
            console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if json_out:
        output = {
            "success": True,
            "conversation": [message.summary() for message in conversation],
            "netconf": netconf.to_dict(),
        }
        click.echo(json.dumps(output, indent=2))
    else:
        console.print("[green]Lease obtained successfully![/green]")
        display_netconf(netconf)


def mac_address(ctx, param, value: str | None) -> bytes | None:
    """Click callback turning --mac into hardware address bytes."""
    if value is None:
        return None
    try:
        hw_addr = parse_mac(value)
    except ValueError:
        hw_addr = b""
    if len(hw_addr) != 6:
        raise click.BadParameter(f"'{value}' is not a MAC address (xx:xx:xx:xx:xx:xx)")
    return hw_addr


def exchange_options(func):
    """Options shared by the dhcp4 and dhcp6 commands."""
    options = [
        click.option("--interface", "-i", required=True, help="Network interface to use"),
        click.option("--read-timeout", type=float, help="Seconds to wait for each reply"),
        click.option("--write-timeout", type=float, help="Seconds allowed for each send"),
        click.option("--wait-up", type=float, default=0.0,
                     help="Wait this many seconds for the link to come up first"),
        click.option("--mac", "-m", callback=mac_address,
                     help="Override MAC address (xx:xx:xx:xx:xx:xx)"),
        click.option("--json-output", "json_out", is_flag=True, help="Output as JSON"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_config(read_timeout: float | None, write_timeout: float | None) -> ExchangeConfig:
    config = ExchangeConfig.from_env()
    if read_timeout is not None:
        config = replace(config, read_timeout=read_timeout)
    if write_timeout is not None:
        config = replace(config, write_timeout=write_timeout)
    return config


@click.command()
@exchange_options
@click.option("--hostname", "-h", help="Client hostname to send")
@click.option("--vendor-class", help="Vendor class identifier (e.g. PXEClient:Arch:00007)")
def dhcp4(
    interface: str,
    read_timeout: float | None,
    write_timeout: float | None,
    wait_up: float,
    mac: bytes | None,
    json_out: bool,
    hostname: str | None,
    vendor_class: str | None,
):
    """Obtain a DHCPv4 lease (full DORA exchange, single attempt).

    \b
    Examples:
        # Obtain a lease on eth0
        netboot dhcp4 -i eth0

        # Wait for the link, then run with longer timeouts
        netboot dhcp4 -i eth0 --wait-up 10 --read-timeout 5

        # PXE-style request
        netboot dhcp4 -i eth0 --vendor-class PXEClient:Arch:00007:UNDI:003016
    """
    modifiers = []
    if mac:
        modifiers.append(with_hwaddr(mac))
    if hostname:
        modifiers.append(with_hostname(hostname))
    if vendor_class:
        modifiers.append(with_vendor_class(vendor_class))

    client = DHCPv4Client(build_config(read_timeout, write_timeout))
    run_exchange(client, interface, modifiers, wait_up, json_out)


@click.command()
@exchange_options
def dhcp6(
    interface: str,
    read_timeout: float | None,
    write_timeout: float | None,
    wait_up: float,
    mac: bytes | None,
    json_out: bool,
):
    """Obtain a DHCPv6 lease (Solicit/Advertise/Request/Reply, single attempt).

    \b
    Examples:
        netboot dhcp6 -i eth0 --json-output
    """
    modifiers = []
    if mac:
        modifiers.append(with_client_duid(duid_ll(mac)))

    client = DHCPv6Client(build_config(read_timeout, write_timeout))
    run_exchange(client, interface, modifiers, wait_up, json_out)
