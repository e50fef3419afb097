"""Address formatting and local-network helpers."""
from __future__ import annotations

import ipaddress
from typing import Iterable, Optional, Tuple

DEFAULT_LOCAL_NETWORKS: Tuple[str, ...] = ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16")


def format_endpoint(ip: Optional[str], port: Optional[int] = None) -> str:
    """``ip:port`` (``[ip]:port`` for IPv6), or the bare IP when there is no port."""
    if not ip:
        return ""
    if port is None:
        return ip
    if ":" in ip:
        return f"[{ip}]:{port}"
    return f"{ip}:{port}"


def format_hw_endpoint(ip: Optional[str], mac: Optional[str]) -> str:
    """``ip (mac)`` for link-layer-only protocols."""
    return f"{ip or ''} ({mac or ''})"


def bare_ip(address: Optional[str]) -> str:
    """Strip the port or MAC decoration from a descriptor address."""
    address = (address or "").strip()
    if not address:
        return ""
    if " (" in address:
        address = address.split(" (", 1)[0]
    if address.startswith("["):
        end = address.find("]")
        return address[1:end] if end > 0 else address[1:]
    # A single colon separates IPv4 from its port; bare IPv6 has several
    if address.count(":") == 1:
        return address.split(":", 1)[0]
    return address


class LocalNetworks:
    """CIDR containment test deciding which addresses belong to local hosts."""

    def __init__(self, cidrs: Iterable[str] = DEFAULT_LOCAL_NETWORKS):
        self._networks = tuple(ipaddress.ip_network(cidr, strict=False) for cidr in cidrs)

    def is_local(self, ip: Optional[str]) -> bool:
        if not ip:
            return False
        try:
            addr = ipaddress.ip_address(ip)
        except ValueError:
            return False
        return any(addr.version == net.version and addr in net for net in self._networks)
