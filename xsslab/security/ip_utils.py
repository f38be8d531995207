from __future__ import annotations
import ipaddress
from typing import Iterable, List

from starlette.requests import Request


def parse_cidrs(cidrs: Iterable[str]) -> List[ipaddress._BaseNetwork]:
    """
    Parse CIDR strings into network objects; invalid tokens are skipped.
    """
    nets: List[ipaddress._BaseNetwork] = []
    for part in cidrs:
        p = (part or "").strip()
        if not p:
            continue
        try:
            nets.append(ipaddress.ip_network(p, strict=False))
        except ValueError:
            # ignore invalid cidr token
            pass
    return nets


def _is_trusted(ip: str, trusted: List[ipaddress._BaseNetwork]) -> bool:
    try:
        ipobj = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return any(ipobj in net for net in trusted)


def get_client_ip(request: Request, trusted: List[ipaddress._BaseNetwork]) -> str:
    """
    Left-most X-Forwarded-For address when the socket peer is a trusted
    proxy, otherwise the socket peer itself. Empty when unknown.
    """
    remote = request.client.host if request.client else ""
    xff = request.headers.get("x-forwarded-for")
    if xff and _is_trusted(remote, trusted):
        first = xff.split(",")[0].strip()
        try:
            ipaddress.ip_address(first)
            return first
        except ValueError:
            return remote
    return remote
