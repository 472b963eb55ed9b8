"""Request context helpers for session audit fields."""

import ipaddress
import logging

from fastapi import Request

logger = logging.getLogger(__name__)

# Longest user agent kept on a session record
MAX_USER_AGENT_LENGTH = 512

_LOCAL_PROXIES = ("127.0.0.1", "::1", "localhost")


def _is_valid_ip(ip_str: str) -> bool:
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request) -> str | None:
    """Get the client IP address from a request.

    X-Real-IP is honoured only when the direct peer is a local reverse proxy.
    X-Forwarded-For is never trusted since clients can set it freely.
    """
    if request.client and request.client.host in _LOCAL_PROXIES:
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            ip = real_ip.strip()
            if _is_valid_ip(ip):
                return ip
            logger.warning(f"Invalid X-Real-IP: {real_ip}")

    if request.client:
        return request.client.host

    return None


def get_user_agent(request: Request) -> str | None:
    user_agent = request.headers.get("User-Agent")
    if not user_agent:
        return None
    return user_agent[:MAX_USER_AGENT_LENGTH]
