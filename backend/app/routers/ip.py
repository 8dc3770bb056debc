import time

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.config import settings
from app.middleware.rate_limit import get_peer_address, limiter
from app.schemas.ip import ErrorResponse, HealthResponse, IPResponse
from app.services.client_ip_service import (
    resolve_client_ip,
    resolve_client_ipv4,
    resolve_client_ipv6,
)

router = APIRouter()
logger = structlog.get_logger()


def not_found(family: str) -> JSONResponse:
    logger.info("address_family_not_found", family=family)
    return JSONResponse(
        status_code=404,
        content=ErrorResponse(error=f"No {family} address found").model_dump(),
    )


@router.get("/", response_model=IPResponse)
@limiter.limit(settings.rate_limit_lookups)
async def get_ip(request: Request):
    """Return the caller's IP address, whatever its family."""
    return IPResponse(ip=resolve_client_ip(request.headers, get_peer_address(request)))


@router.get(
    "/ipv4",
    response_model=IPResponse,
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_lookups)
async def get_ipv4(request: Request):
    """Return the caller's IPv4 address, or 404 if it isn't IPv4."""
    ip = resolve_client_ipv4(request.headers, get_peer_address(request))
    if not ip:
        return not_found("IPv4")
    return IPResponse(ip=ip)


@router.get(
    "/ipv6",
    response_model=IPResponse,
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_lookups)
async def get_ipv6(request: Request):
    """Return the caller's IPv6 address, or 404 if it isn't IPv6."""
    ip = resolve_client_ipv6(request.headers, get_peer_address(request))
    if not ip:
        return not_found("IPv6")
    return IPResponse(ip=ip)


@router.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse(status="healthy", timestamp=int(time.time()))
