import logging
from contextlib import asynccontextmanager
from typing import Optional

import requests
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings, load_settings
from models.tools import ErrorResponse
from routes import auth, relay
from services.relay_service import N8nRelayClient

logger = logging.getLogger(__name__)

ERROR_KINDS = {
    400: "malformed_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
}


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


def _validation_detail(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Malformed request"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        error = ErrorResponse(error="malformed_request", detail=_validation_detail(exc))
        return JSONResponse(status_code=400, content=error.model_dump())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        error = ErrorResponse(
            error=ERROR_KINDS.get(exc.status_code, "http_error"),
            detail=str(exc.detail)
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=error.model_dump(),
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        error = ErrorResponse(error="internal_error", detail="Internal server error")
        return JSONResponse(status_code=500, content=error.model_dump())


def create_app(
    settings: Optional[Settings] = None,
    session: Optional[requests.Session] = None
) -> FastAPI:
    """
    Build the API.

    Settings are loaded from the environment when not given, so a missing
    webhook URL or credential fails here, at startup.
    """
    if settings is None:
        settings = load_settings()
    configure_logging(settings.log_level)

    relay_client = N8nRelayClient(
        webhook_url=settings.n8n_webhook_url,
        token=settings.n8n_webhook_token,
        timeout=settings.relay_timeout_seconds,
        session=session
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Relaying tool invocations to %s", settings.n8n_webhook_url)
        yield
        relay_client.close()

    app = FastAPI(title="Tool Relay", lifespan=lifespan)
    app.state.settings = settings
    app.state.relay_client = relay_client

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(relay.router, tags=["Tools"])
    app.include_router(auth.router, prefix="/auth", tags=["Authentication"])

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:create_app", factory=True, host="0.0.0.0", port=8000)
