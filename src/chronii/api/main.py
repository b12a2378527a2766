from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..context import AppContext
from ..errors import NotAuthenticatedError, StoreError
from ..logging_setup import setup_logging
from .routers import notes as notes_router
from .routers import session as session_router
from .routers import sync as sync_router
from .routers import timers as timers_router
from .routers import todos as todos_router

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "todos", "description": "Todo items with filtering, bulk completion and pagination."},
    {"name": "timers", "description": "Task timers: start/stop sessions, totals and grouping."},
    {"name": "notes", "description": "Notes with debounced autosave."},
    {"name": "session", "description": "Anonymous and email/password sessions."},
    {"name": "sync", "description": "Manual local/cloud synchronization."},
]


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


def _jsonable_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    # ctx of value errors can hold exception instances, which JSON cannot encode
    errors = []
    for err in exc.errors():
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        errors.append(err)
    return errors


# PUBLIC_INTERFACE
def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Build the FastAPI application around ``context``.

    Without a context one is created from environment settings. The
    context is started when the application starts up and closed (pending
    note saves flushed, stores closed) when it shuts down.
    """
    ctx = context or AppContext()
    settings = ctx.settings
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await ctx.start()
        try:
            yield
        finally:
            await ctx.close()

    app = FastAPI(
        title="Chronii Backend",
        description="Todos, task timers and notes with local storage and per-user cloud sync.",
        version=__version__,
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.context = ctx

    # Configure CORS based on settings (CORS_ALLOW_ORIGINS), with '*' fallback
    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Return a consistent JSON structure for request validation errors.

        Response format:
            {
                "error": "ValidationError",
                "detail": [... pydantic/fastapi error details ...],
                "message": "Request validation failed"
            }
        """
        return JSONResponse(
            status_code=422,
            content={
                "error": "ValidationError",
                "message": "Request validation failed",
                "detail": _jsonable_errors(exc),
            },
        )

    @app.exception_handler(NotAuthenticatedError)
    async def not_authenticated_handler(request: Request, exc: NotAuthenticatedError) -> JSONResponse:
        return _error(401, "NotAuthenticated", str(exc))

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        return _error(503, "StoreError", str(exc))

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object with the configured store backends and whether the
            data is currently served from the local or the cloud store.
        """
        return {
            "message": "Healthy",
            "local_backend": settings.local_store_backend,
            "cloud_backend": settings.cloud_store_backend,
            "mode": ctx.mode,
        }

    app.include_router(todos_router.router)
    app.include_router(timers_router.router)
    app.include_router(notes_router.router)
    app.include_router(session_router.router)
    app.include_router(sync_router.router)
    return app


app = create_app()
