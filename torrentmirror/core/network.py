"""Host address helpers for binding the seeder and gating the transport."""

from __future__ import annotations

import ipaddress
import socket

LOCALHOST_NAMES = frozenset({"localhost", "localhost.localdomain", "ip6-localhost"})


def get_self_addresses() -> list[str]:
    """Non-loopback addresses of this host, loopback last as a fallback.

    Raises
    ------
    OSError
        If the host name cannot be resolved at all.
    """
    hostname = socket.gethostname()
    addrinfos = socket.getaddrinfo(hostname, None)

    addresses: list[str] = []
    loopback: list[str] = []
    for addrinfo in addrinfos:
        addr_str = addrinfo[4][0]
        try:
            ip = ipaddress.ip_address(addr_str)
        except ValueError:
            continue
        bucket = loopback if ip.is_loopback else addresses
        if addr_str not in bucket:
            bucket.append(addr_str)
    return addresses or loopback


def is_local_host(host: str | None) -> bool:
    """Whether *host* names this machine's loopback interface.

    Unresolvable names are not local.
    """
    if not host:
        return False
    host = host.strip("[]").lower()
    if host in LOCALHOST_NAMES:
        return True
    try:
        literal = ipaddress.ip_address(host)
    except ValueError:
        literal = None
    if literal is not None:
        return literal.is_loopback
    try:
        addrinfos = socket.getaddrinfo(host, None)
    except socket.gaierror:
        return False
    for addrinfo in addrinfos:
        try:
            if not ipaddress.ip_address(addrinfo[4][0]).is_loopback:
                return False
        except ValueError:
            return False
    return bool(addrinfos)
