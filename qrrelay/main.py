"""FastAPI app factory: wires the relay router, mounts static files, and has /api/ping + /api/diagnostic.

Served by ``python -m qrrelay``, or directly with ``uvicorn --factory qrrelay.main:create_app``.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from .config import Settings
from .routers import session
from .services.broadcaster import SessionBroadcaster
from .state import SessionState

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format="%(asctime)s  %(message)s", datefmt="%H:%M:%S", force=True)
    for _noisy in ("uvicorn.access", "websockets", "multipart"):
        logging.getLogger(_noisy).setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.broadcaster = SessionBroadcaster(SessionState())
    logger.info("Session started")
    yield
    await app.state.broadcaster.close()
    logger.info("Session closed: %s", app.state.broadcaster.snapshot())


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    static_dir = settings.static_dir

    app = FastAPI(title="QR relay", lifespan=lifespan)
    app.state.settings = settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.include_router(session.router)

    @app.get("/api/ping")
    async def api_ping():
        """Simple connectivity check."""
        return {"ok": True}

    @app.get("/api/diagnostic")
    async def api_diagnostic(request: Request):
        """Connection and session counters."""
        return request.app.state.broadcaster.snapshot()

    def _page(name: str):
        path = static_dir / name
        if not path.exists():
            return {"message": f"Put {name} in the static/ directory"}
        return FileResponse(path)

    @app.get("/")
    async def index():
        """Serve the landing page."""
        return _page("index.html")

    @app.get("/scanner")
    async def scanner_page():
        return _page("scanner.html")

    @app.get("/viewer")
    async def viewer_page():
        return _page("viewer.html")

    if static_dir.is_dir():
        app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")
    else:
        logger.warning("Static directory %s missing, not serving assets", static_dir)

    return app
