from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import AsyncGenerator
import logging

from services.app_state import AppState
from services.auth_middleware import AuthRedirectMiddleware
from services.error_handler import setup_error_handlers

logger = logging.getLogger(__name__)


def create_app(state: AppState) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    This factory pattern allows for:
    - Dependency injection of application state
    - Easier testing with different configurations
    - Clean separation of concerns
    """
    from routes import analysis_router, speech_router, valuations_router, payments_router, pages_router

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        logger.info("[STARTUP] Antique Appraiser starting...")
        logger.info(f"[STARTUP] Debug mode: {state.debug_mode}")
        logger.info(f"[STARTUP] Services: {state.service_status()}")

        yield

        logger.info("[SHUTDOWN] Antique Appraiser shutting down...")
        logger.info(f"[SHUTDOWN] Total requests: {state.stats['total_requests']}, "
                    f"valuations: {state.stats['valuations_created']}")
        close = getattr(state.db, "close", None)
        if close:
            close()

    app = FastAPI(
        title="Antique Appraiser",
        description="AI antique appraisals with free daily valuations and token payments",
        lifespan=lifespan,
    )

    # Routes reach the state through request.app.state
    app.state.app_state = state

    app.add_middleware(AuthRedirectMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_error_handlers(app, debug=state.debug_mode)

    @app.middleware("http")
    async def count_requests(request, call_next):
        state.increment_stat("total_requests")
        return await call_next(request)

    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon():
        return Response(status_code=204)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "services": state.service_status(),
            "total_requests": state.stats["total_requests"],
            "session_duration_seconds": round(state.get_session_duration(), 1),
        }

    app.include_router(analysis_router)
    app.include_router(speech_router)
    app.include_router(valuations_router)
    app.include_router(payments_router)
    app.include_router(pages_router)

    return app
