# FastAPI application entry point that initialises
# the app, the session store and the sweeper, and registers API routes.

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from phoneqr.core.config import settings
from phoneqr.core.exceptions import VerificationError
from phoneqr.routes.verification import router as verification_router
from phoneqr.services.sessions import InMemorySessionStore, SessionStore
from phoneqr.services.sweeper import SessionSweeper
from phoneqr.services.verification_service import VerificationService
from phoneqr.ui import render_index

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def create_app(store: SessionStore | None = None, sweep_interval: float | None = None) -> FastAPI:
    if store is None:
        store = InMemorySessionStore(ttl_seconds=settings.SESSION_TTL_SECONDS)
    service = VerificationService(store)
    sweeper = SessionSweeper(
        service,
        interval_seconds=settings.SWEEP_INTERVAL_SECONDS if sweep_interval is None else sweep_interval,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper.start()
        yield
        await sweeper.stop()
        logger.info(f"Shutting down with {len(store)} sessions in memory")

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.state.verification_service = service
    app.state.sweeper = sweeper
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(verification_router)

    @app.exception_handler(VerificationError)
    async def verification_error_handler(request: Request, exc: VerificationError):
        return _error(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Rejected malformed request to {request.url.path}: {exc.errors()}")
        return _error(400, "Invalid request data")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}")
        return _error(500, "Internal server error")

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/", response_class=HTMLResponse)
    def index():
        return HTMLResponse(content=render_index(settings.POLL_INTERVAL_MS))

    return app


app = create_app()
