"""
Exception hierarchy for netboot.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

from typing import Any


class NetbootError(Exception):
    """Base exception for netboot errors."""
    pass


class ExchangeError(NetbootError):
    """Error raised by a DHCP exchange.

    Carries the messages exchanged before the failure so callers can
    inspect how far the transaction got.
    """

    def __init__(self, message: str, conversation: list[Any] | None = None):
        super().__init__(message)
        self.conversation = list(conversation) if conversation else []


class TimeoutExpired(NetbootError):
    """A deadline elapsed while waiting."""
    pass


class DHCPTimeoutError(ExchangeError, TimeoutExpired):
    """No matching reply arrived before the read or write deadline."""
    pass


class TransportError(ExchangeError):
    """Send or receive failed for a reason other than a timeout."""
    pass


class ParseError(NetbootError):
    """Malformed message bytes."""
    pass


class MissingOptionError(NetbootError):
    """A required option is absent from a reply."""
    pass


class MissingFieldError(NetbootError):
    """A required header field is absent or zero."""
    pass


class InvalidValueError(NetbootError):
    """An option is present but empty or semantically invalid."""
    pass


class UnsupportedError(NetbootError):
    """Operation not implemented on this platform."""
    pass


class InterfaceNotFoundError(NetbootError):
    """No network interface with the given name."""
    pass
