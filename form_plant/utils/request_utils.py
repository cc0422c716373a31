import ipaddress
from typing import Optional
from fastapi import Request

# checked in order; the first valid address wins
PROXY_IP_HEADERS = ("cf-connecting-ip", "x-forwarded-for", "x-real-ip")


def _valid_ip(value: str) -> Optional[str]:
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


def get_client_ip(request: Request) -> str:
    for header in PROXY_IP_HEADERS:
        raw = request.headers.get(header)
        if not raw:
            continue
        # X-Forwarded-For may carry a chain, the client is leftmost
        ip = _valid_ip(raw.split(",")[0])
        if ip:
            return ip

    if request.client and request.client.host:
        ip = _valid_ip(request.client.host)
        if ip:
            return ip
    return "0.0.0.0"


def get_user_agent(request: Request) -> str:
    return request.headers.get("user-agent", "")


def get_referrer(request: Request) -> str:
    return request.headers.get("referer", "")
