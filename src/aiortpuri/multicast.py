"""Unicast/multicast classification of session host addresses."""

import ipaddress
import logging
import socket

logger = logging.getLogger(__name__)


def _parse_literal(host: str) -> "ipaddress.IPv4Address | ipaddress.IPv6Address | None":
    # IPv6 first, then IPv4
    try:
        return ipaddress.IPv6Address(host)
    except ValueError:
        pass
    try:
        return ipaddress.IPv4Address(host)
    except ValueError:
        return None


def is_multicast(host: str) -> bool:
    """Return True if *host* is an IPv4 (224.0.0.0/4) or IPv6 (ff00::/8) group.

    Host names are not resolved and are classified as unicast.
    """
    address = _parse_literal(host.strip("[]"))
    if address is None:
        logger.debug("%s is not an address literal, assuming unicast", host)
        return False
    return address.is_multicast


def address_family(host: str) -> socket.AddressFamily:
    address = _parse_literal(host.strip("[]"))
    if isinstance(address, ipaddress.IPv6Address):
        return socket.AF_INET6
    return socket.AF_INET


def wildcard_address(host: str) -> str:
    """The any-address matching the family of *host*."""
    return "::" if address_family(host) == socket.AF_INET6 else "0.0.0.0"
