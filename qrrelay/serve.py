"""Launch uvicorn: HTTPS + HTTP→HTTPS redirect when certs exist, plain HTTP otherwise."""
import asyncio
import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse

from .config import Settings
from .main import create_app

logger = logging.getLogger(__name__)


def https_url(host_header: str | None, https_port: int, path: str, query: str = "") -> str:
    """Same host (port stripped), TLS port, original path and query."""
    hostname = (host_header or "localhost").split(":")[0]
    url = f"https://{hostname}:{https_port}{path}"
    if query:
        url += f"?{query}"
    return url


def create_redirect_app(https_port: int) -> FastAPI:
    redirect_app = FastAPI(title="QR relay redirect", docs_url=None, redoc_url=None, openapi_url=None)

    @redirect_app.middleware("http")
    async def to_https(request: Request, call_next):
        target = https_url(request.headers.get("host"), https_port, request.url.path, request.url.query)
        return RedirectResponse(target, status_code=302)

    return redirect_app


async def _serve_tls(settings: Settings, key_path, cert_path) -> None:
    https = uvicorn.Server(uvicorn.Config(
        create_app(settings),
        host=settings.host,
        port=settings.https_port,
        ssl_keyfile=str(key_path),
        ssl_certfile=str(cert_path),
        log_config=None,
    ))
    redirect = uvicorn.Server(uvicorn.Config(
        create_redirect_app(settings.https_port),
        host=settings.host,
        port=settings.port,
        log_config=None,
    ))
    logger.info("HTTPS server on port %d: https://localhost:%d", settings.https_port, settings.https_port)
    logger.info("HTTP redirect server on port %d -> HTTPS", settings.port)
    redirect_task = asyncio.create_task(redirect.serve())
    try:
        await https.serve()
    finally:
        redirect.should_exit = True
        await redirect_task


def run(settings: Settings) -> None:
    tls = settings.tls_files()
    if tls:
        key_path, cert_path = tls
        asyncio.run(_serve_tls(settings, key_path, cert_path))
        return
    logger.warning("No SSL certificate in %s, serving plain HTTP on port %d", settings.ssl_dir, settings.port)
    logger.warning("Browsers only allow camera access over HTTPS (or localhost)")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)
