"""API server for ``authgate``.

Mounts the OAuth2 router at ``/api/v1`` on a bare FastAPI app. The engine
behind it is whatever ``set_oauth_server()`` installed, or the in-memory
development server built from ``Settings``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from authgate.api import router, set_oauth_server
from authgate.server import AuthorizationServer

logger = logging.getLogger(__name__)


def create_app(server: AuthorizationServer | None = None) -> FastAPI:
    """Build the FastAPI application."""
    if server is not None:
        set_oauth_server(server)

    app = FastAPI(
        title="authgate",
        description="OAuth2 authorization server.",
        version="0.1.0",
        docs_url="/api/v1/docs",
        openapi_url="/api/v1/openapi.json",
    )
    app.include_router(router, prefix="/api/v1")
    return app


def run_server(host: str = "127.0.0.1", port: int = 9096, dev: bool = False) -> None:
    """Start the API server with uvicorn."""
    import uvicorn

    logger.info("Starting authgate on http://%s:%d/api/v1", host, port)
    if dev:
        uvicorn.run(
            "authgate.serve:create_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
            log_level="debug",
        )
    else:
        uvicorn.run(create_app(), host=host, port=port)
