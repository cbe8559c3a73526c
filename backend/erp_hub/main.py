from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
from logging.handlers import RotatingFileHandler

from erp_hub.config import Settings
from erp_hub.errors import ExternalServiceError, InvalidTransitionError, NotFoundError, ServiceDisabledError
from erp_hub.models.base import engine, init_db
from erp_hub.api.action_items import router as action_items_router
from erp_hub.api.ai import router as ai_router
from erp_hub.api.categories import router as categories_router
from erp_hub.api.email import drafts_router, templates_router
from erp_hub.api.issues import router as issues_router
from erp_hub.api.meetings import router as meetings_router
from erp_hub.api.notes import router as notes_router
from erp_hub.api.settings import router as settings_router
from erp_hub.api.vendor_tickets import router as vendor_tickets_router
from erp_hub.api.zendesk import router as zendesk_router
from erp_hub.services.meeting_lifecycle import MeetingWatchdog


settings = Settings()
logger = logging.getLogger("erp_hub")


def _validation_details(errors: List[Dict[str, Any]]) -> Dict[str, List[str]]:
    details: Dict[str, List[str]] = {}
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        # Drop the "body"/"query" prefix
        field = ".".join(loc[1:]) if len(loc) > 1 else (loc[0] if loc else "request")
        details.setdefault(field, []).append(str(err.get("msg", "Invalid value")))
    return details


def _error(status_code: int, message: Any, details: Optional[Dict[str, Any]] = None) -> JSONResponse:
    content: Dict[str, Any] = {"error": message}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def create_app(start_watchdog: bool = True) -> FastAPI:
    app = FastAPI(title="ERP Admin Hub Backend", version="0.1.0")
    watchdog = MeetingWatchdog(engine, settings.watchdog_interval_seconds, settings.display_timezone)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def _startup() -> None:
        settings.ensure_dirs()
        log_file = settings.logs_dir / "backend.log"
        handler = RotatingFileHandler(str(log_file), maxBytes=5_000_000, backupCount=2)
        handler.setFormatter(logging.Formatter(fmt="%(asctime)s %(levelname)s %(name)s %(message)s"))
        root = logging.getLogger()
        if not any(isinstance(h, RotatingFileHandler) for h in root.handlers):
            root.addHandler(handler)
        root.setLevel(logging.INFO)
        init_db()
        if start_watchdog:
            watchdog.start()
            logger.info("Meeting watchdog running every %ss", watchdog.interval_seconds)

    @app.on_event("shutdown")
    def _shutdown() -> None:
        watchdog.stop()

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(issues_router)
    app.include_router(categories_router)
    app.include_router(notes_router)
    app.include_router(meetings_router)
    app.include_router(action_items_router)
    app.include_router(vendor_tickets_router)
    app.include_router(zendesk_router)
    app.include_router(templates_router)
    app.include_router(drafts_router)
    app.include_router(ai_router)
    app.include_router(settings_router)

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        return _error(400, "Validation error", _validation_details(list(exc.errors())))

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        response = _error(exc.status_code, exc.detail)
        if getattr(exc, "headers", None):
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(NotFoundError)
    async def _not_found_handler(request: Request, exc: NotFoundError):  # type: ignore[override]
        return _error(404, str(exc) or "Not found")

    @app.exception_handler(InvalidTransitionError)
    async def _transition_handler(request: Request, exc: InvalidTransitionError):  # type: ignore[override]
        return _error(409, str(exc))

    @app.exception_handler(ServiceDisabledError)
    async def _disabled_handler(request: Request, exc: ServiceDisabledError):  # type: ignore[override]
        return _error(503, str(exc))

    @app.exception_handler(ExternalServiceError)
    async def _external_handler(request: Request, exc: ExternalServiceError):  # type: ignore[override]
        logger.warning("External service failure: %s", exc)
        return _error(502, str(exc))

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):  # type: ignore[override]
        logging.getLogger("erp_hub.api").exception("Unhandled exception")
        return _error(500, "Internal server error")

    return app


app = create_app()


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="ERP Admin Hub Backend Server")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload (dev only)")

    args = parser.parse_args()

    uvicorn.run(
        "erp_hub.main:app" if args.reload else app,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )
