from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config import settings
from app.logging_config import get_logger, setup_logging
from app.middleware.logging import LoggingMiddleware
from app.middleware.rate_limit import limiter
from app.routers import ip

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging on startup and log the shutdown."""
    setup_logging()
    logger.info("server_starting", host=settings.host, port=settings.port)
    yield
    logger.info("server_stopping")


app = FastAPI(
    title="ClientIPEcho",
    description="Reports the caller's IP address, honouring proxy forwarding headers",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID"],
)

# Outermost, so every response (including CORS and 429s) gets a correlation ID
app.add_middleware(LoggingMiddleware)

# Routers
app.include_router(ip.router, tags=["ip"])
