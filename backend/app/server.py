"""Process entrypoint: runs the app under uvicorn until SIGINT/SIGTERM."""

import uvicorn

from app.config import settings


def build_server() -> uvicorn.Server:
    """
    Build a uvicorn server for the app.

    The server owns the listening socket for its lifetime. uvicorn installs
    SIGINT/SIGTERM handlers and drains in-flight requests for at most
    ``shutdown_timeout_seconds`` before closing.
    """
    config = uvicorn.Config(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        timeout_graceful_shutdown=settings.shutdown_timeout_seconds,
        # The raw peer address is the resolver's fallback; don't let uvicorn rewrite it
        proxy_headers=False,
        access_log=False,
        log_config=None,
    )
    return uvicorn.Server(config)


def main() -> None:
    build_server().run()


if __name__ == "__main__":
    main()
