"""FastAPI server for the Pointmarket ledger engine."""

import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pointmarket import __version__
from pointmarket.api.routes import admin_router, auth_router, events_router
from pointmarket.config import Settings, get_settings
from pointmarket.engine import MarketEngine
from pointmarket.exceptions import MarketError
from pointmarket.observability import initialize_logfire
from pointmarket.service import MarketService
from pointmarket.sessions import SessionRegistry
from pointmarket.storage import TableStore

logger = logging.getLogger(__name__)

# Error kinds for HTTP-level failures raised outside the engine
HTTP_ERROR_KINDS = {
    400: "validation",
    401: "authentication",
    403: "authorization",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    413: "payload_too_large",
}


def error_response(status_code: int, kind: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"kind": kind, "message": message}},
    )


class BodySizeLimitMiddleware:
    """Reject request bodies larger than ``max_body_bytes`` with 413."""

    def __init__(self, app, max_body_bytes: int):
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        declared = dict(scope.get("headers") or []).get(b"content-length")
        if declared is not None and declared.isdigit() and int(declared) > self.max_body_bytes:
            response = error_response(413, HTTP_ERROR_KINDS[413], "Payload too large")
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive():
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_bytes:
                    raise HTTPException(status_code=413, detail="Payload too large")
            return message

        await self.app(scope, limited_receive, send)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around a fresh engine, session registry and service."""
    settings = settings or get_settings()

    engine = MarketEngine(TableStore(settings.data_dir), settings)
    service = MarketService(engine, SessionRegistry(settings.auth.session_token_bytes))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting Pointmarket API (data dir: {settings.data_dir})")
        engine.bootstrap()
        yield
        logger.info("Shutting down Pointmarket API")

    app = FastAPI(
        title="Pointmarket API",
        description="Points-based yes/no wagering market",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=settings.server.max_body_bytes)

    @app.exception_handler(MarketError)
    async def market_error_handler(request: Request, exc: MarketError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return error_response(400, "validation", "Invalid request")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        kind = HTTP_ERROR_KINDS.get(exc.status_code, "http_error")
        response = error_response(exc.status_code, kind, str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.get("/health", tags=["Health"])
    def health_check() -> Dict[str, str]:
        return {
            "status": "healthy",
            "service": "pointmarket-api",
            "version": __version__,
        }

    app.include_router(auth_router)
    app.include_router(events_router)
    app.include_router(admin_router)

    initialize_logfire(settings, app)
    return app
