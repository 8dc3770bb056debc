"""
Client IP resolution from proxy-forwarding headers.

Headers are checked in a fixed precedence order and the first one holding a
well-formed IP address wins. When none do, the transport peer address is used
as-is (minus its port), without validation.
"""

import ipaddress
from collections.abc import Mapping

FORWARDING_HEADERS = (
    "CF-Connecting-IP",
    "X-Forwarded-For",
    "X-Real-IP",
    "X-Client-IP",
    "X-Forwarded",
    "X-Cluster-Client-IP",
    "Forwarded-For",
    "Forwarded",
)


def parse_ip(value: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    """Parse textual IP address, returning None if it isn't one."""
    # Zone identifiers (fe80::1%eth0) are not plain address text
    if "%" in value:
        return None
    try:
        return ipaddress.ip_address(value)
    except ValueError:
        return None


def is_valid_ip(value: str) -> bool:
    return parse_ip(value) is not None


def is_ipv4(value: str) -> bool:
    """True if value is an address representable in 4 bytes (incl. IPv4-mapped IPv6)."""
    address = parse_ip(value)
    if address is None:
        return False
    if isinstance(address, ipaddress.IPv6Address):
        return address.ipv4_mapped is not None
    return True


def split_host_port(address: str) -> tuple[str, str]:
    """
    Split "host:port" or "[host]:port" into its parts.

    Raises:
        ValueError: if the port is missing or the host is malformed
    """
    if address.startswith("["):
        end = address.find("]")
        if end < 0:
            raise ValueError(f"missing ']' in address: {address!r}")
        if end + 1 == len(address):
            raise ValueError(f"missing port in address: {address!r}")
        if address[end + 1] != ":":
            raise ValueError(f"unexpected text after ']' in address: {address!r}")
        host, port = address[1:end], address[end + 2 :]
        if "[" in host or "]" in host:
            raise ValueError(f"unexpected bracket in address: {address!r}")
    else:
        host, sep, port = address.rpartition(":")
        if not sep:
            raise ValueError(f"missing port in address: {address!r}")
        if ":" in host:
            raise ValueError(f"too many colons in address: {address!r}")
        if "[" in host or "]" in host:
            raise ValueError(f"unexpected bracket in address: {address!r}")
    if "[" in port or "]" in port:
        raise ValueError(f"unexpected bracket in address: {address!r}")
    return host, port


def resolve_client_ip(headers: Mapping[str, str], peer_address: str) -> str:
    """
    Return the best guess at the client's IP address.

    Only the first X-Forwarded-For hop is considered; if it isn't a valid
    address the header is skipped entirely. The peer address fallback is not
    validated and may not be an IP at all.
    """
    for header in FORWARDING_HEADERS:
        value = headers.get(header)
        if not value:
            continue
        if header == "X-Forwarded-For":
            value = value.split(",")[0].strip()
        if is_valid_ip(value):
            return value

    try:
        host, _ = split_host_port(peer_address)
    except ValueError:
        return peer_address
    return host


def resolve_client_ipv4(headers: Mapping[str, str], peer_address: str) -> str:
    """Resolved client IP if it's IPv4, else empty string."""
    ip = resolve_client_ip(headers, peer_address)
    return ip if is_ipv4(ip) else ""


def resolve_client_ipv6(headers: Mapping[str, str], peer_address: str) -> str:
    """Resolved client IP if it's IPv6 (and not IPv4-mapped), else empty string."""
    ip = resolve_client_ip(headers, peer_address)
    return ip if is_valid_ip(ip) and not is_ipv4(ip) else ""


def format_peer_address(host: str | None, port: int | None) -> str:
    """Build "host:port" (bracketing IPv6 hosts) from an ASGI client tuple."""
    if not host:
        return ""
    if port is None:
        return host
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"
