"""
Client address helpers.
"""
from typing import Optional
from starlette.requests import Request


def normalize_ip(ip: Optional[str]) -> Optional[str]:
    """Unwrap IPv4-mapped IPv6 addresses and map IPv6 loopback."""
    if not ip:
        return ip
    ip = ip.strip()
    if ip == "::1":
        return "127.0.0.1"
    if ip.startswith("::ffff:"):
        return ip[len("::ffff:"):]
    return ip


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return normalize_ip(forwarded.split(",")[0])
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return normalize_ip(real_ip)
    return normalize_ip(request.client.host if request.client else None)
