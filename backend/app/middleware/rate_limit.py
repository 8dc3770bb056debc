from slowapi import Limiter
from starlette.requests import Request

from app.config import settings
from app.services.client_ip_service import format_peer_address, resolve_client_ip


def get_peer_address(request: Request) -> str:
    """Transport peer of the request as "host:port"."""
    client = request.client
    if client is None:
        return ""
    return format_peer_address(client.host, client.port)


def get_real_client_ip(request: Request) -> str:
    """Key requests by the same client IP the service reports back.

    Uses the full forwarding-header precedence, falling back to the
    connection's peer host for direct connections.
    """
    return resolve_client_ip(request.headers, get_peer_address(request)) or "unknown"


limiter = Limiter(
    key_func=get_real_client_ip,
    strategy="moving-window",
    enabled=settings.rate_limit_enabled,
)
