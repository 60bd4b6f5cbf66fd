"""
InfoRx Interpreter - FastAPI Application

Turns prescriptions, lab results and scan summaries into plain-language
explanations in English or Nigerian Pidgin, with optional spoken audio.

IMPORTANT: This is NOT a diagnostic tool.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.api.routes import router
from app.services.session_store import session_store
from app.api.middleware import (
    ErrorHandlingMiddleware,
    RequestContextMiddleware,
    setup_rate_limiting
)
from app.utils.logger import get_logger, configure_logging

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    configure_logging(
        log_level=settings.log_level,
        json_format=not settings.debug
    )

    logger.info(
        "Starting InfoRx Interpreter",
        version=settings.app_version,
        debug=settings.debug,
        speech_configured=settings.speech_configured,
        interpretation_url=settings.interpretation_url
    )

    yield

    closed = session_store.close_all()
    logger.info("Shutting down InfoRx Interpreter", sessions_closed=closed)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance
    """
    app = FastAPI(
        title=settings.app_name,
        description="""
## InfoRx Interpreter

Plain-language interpretation of medical text for patients, with
optional spoken audio.

### ⚠️ Important Disclaimer

**This is NOT a diagnostic tool.** Always consult a healthcare provider.

### API Endpoints

| Endpoint | Method | Description |
|----------|--------|-------------|
| `/examples` | GET | Example snippets |
| `/sessions` | POST | Start an interpreter session |
| `/sessions/{id}` | GET | Interpreter state |
| `/sessions/{id}/submit` | POST | Interpret medical text |
| `/sessions/{id}/audio` | POST | Read a summary aloud |
| `/sessions/{id}/reset` | POST | Clear the session |
| `/sessions/{id}` | DELETE | Close the session |
| `/api/interpret` | POST | Interpretation capability |
| `/health` | GET | Health check |
        """,
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc" if settings.debug else None,
    )

    # Setup middleware (order matters - last added is outermost)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestContextMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_rate_limiting(app)

    app.include_router(router)

    return app


app = create_app()


# Run with: uvicorn app.main:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
