"""Best-effort client address extraction behind proxies."""

from __future__ import annotations

import re
from collections.abc import Mapping

UNKNOWN_IP = "unknown"

_IPV4_MAPPED = re.compile(r"::ffff:(\d+\.\d+\.\d+\.\d+)", re.IGNORECASE)
_IPV4_WITH_PORT = re.compile(r"^(\d+\.\d+\.\d+\.\d+):\d+$")


def normalize_ip(ip: str) -> str:
    """Strip IPv4-mapped IPv6 prefixes and IPv4 ports.

    Examples:
        ``::ffff:127.0.0.1`` -> ``127.0.0.1``; ``10.0.0.1:5000`` -> ``10.0.0.1``.
        Plain IPv6 addresses are returned unchanged.
    """
    ip = ip.strip()
    if not ip:
        return ip
    mapped = _IPV4_MAPPED.search(ip)
    if mapped:
        return mapped.group(1)
    with_port = _IPV4_WITH_PORT.match(ip)
    if with_port:
        return with_port.group(1)
    return ip


def client_ip(headers: Mapping[str, str], peer_host: str | None = None) -> str:
    """Return the originating client IP.

    Order: first ``X-Forwarded-For`` hop, ``X-Real-IP``, ``CF-Connecting-IP``,
    then the socket peer. Falls back to ``"unknown"``.
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = normalize_ip(forwarded.split(",")[0])
        if first:
            return first

    for header in ("x-real-ip", "cf-connecting-ip"):
        value = headers.get(header)
        if value and normalize_ip(value):
            return normalize_ip(value)

    if peer_host:
        return normalize_ip(peer_host) or UNKNOWN_IP
    return UNKNOWN_IP
