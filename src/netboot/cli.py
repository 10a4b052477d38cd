"""
netboot command line.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import json
import sys

import click
from rich.console import Console

from netboot import __version__
from netboot.config import LinkConfig
from netboot.dhcp.cli import dhcp4, dhcp6
from netboot.dhcp.messages import format_mac
from netboot.errors import NetbootError
from netboot.interfaces import wait_until_up
from netboot.logging_config import setup_logging

console = Console(stderr=True)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Verbose debug output")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also log to this file")
@click.version_option(__version__, prog_name="netboot")
def main(verbose: bool, log_file: str | None):
    """Obtain network configuration over DHCP for netboot tooling.

    Runs a single DHCP exchange and prints the resulting addresses,
    routers, DNS and NTP servers. The interface itself is never
    reconfigured.

    Note: binding to DHCP client ports usually requires root privileges.
    """
    setup_logging(level="DEBUG" if verbose else "WARNING", log_file=log_file)


main.add_command(dhcp4)
main.add_command(dhcp6)


@main.command("wait-up")
@click.option("--interface", "-i", required=True, help="Network interface to wait for")
@click.option("--timeout", "-t", type=float, help="Timeout in seconds")
@click.option("--poll-interval", type=float, help="Seconds between checks")
@click.option("--json-output", "json_out", is_flag=True, help="Output as JSON")
def wait_up(
    interface: str,
    timeout: float | None,
    poll_interval: float | None,
    json_out: bool,
):
    """Wait until an interface reports that it is up.

    \b
    Examples:
        netboot wait-up -i eth0 -t 30
    """
    link = LinkConfig.from_env()
    timeout = link.timeout if timeout is None else timeout
    poll_interval = link.poll_interval if poll_interval is None else poll_interval

    try:
        iface = wait_until_up(interface, timeout, poll_interval)
    except NetbootError as e:
        if json_out:
            click.echo(json.dumps({"success": False, "error": str(e)}))
        else:
            console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if json_out:
        click.echo(json.dumps({
            "success": True,
            "interface": iface.name,
            "index": iface.index,
            "hardware_addr": format_mac(iface.hardware_addr),
        }))
    else:
        console.print(f"[green]{iface.name} is up[/green] ({format_mac(iface.hardware_addr)})")


if __name__ == "__main__":
    main()
