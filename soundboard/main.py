"""
Soundboard Web - Discord Voice Soundboard Server

Web interface for playing short sounds into a Discord voice channel.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from typing import Optional
import logging

from .auth.session import router as auth_router
from .api.moderation import router as moderation_router
from .api.playback import router as playback_router
from .api.settings import router as settings_router
from .api.sounds import router as sounds_router
from .api.tags import router as tags_router
from .api.voice import router as voice_router
from .config import SoundboardConfig, config as default_config
from .errors import SessionRevokedError, SoundboardError
from .services.context import SoundboardContext

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logging.getLogger("discord").setLevel(logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting Soundboard Web Service...")
    if app.state.context is None:
        app.state.context = SoundboardContext.create(app.state.config)
    context: SoundboardContext = app.state.context

    if not context.config.USERS:
        logger.warning("No users configured; set SOUNDBOARD_USERS to enable login")

    await context.voice.start()

    yield

    logger.info("Shutting down Soundboard Web Service...")
    await context.voice.shutdown()


async def soundboard_error_handler(request: Request, exc: SoundboardError):
    response = JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=exc.headers
    )
    if isinstance(exc, SessionRevokedError):
        response.delete_cookie(request.app.state.config.COOKIE_NAME)
    return response


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are reported as 400 like every other validation failure."""
    errors = exc.errors()
    field = ".".join(str(part) for part in errors[0]["loc"][1:]) if errors else ""
    detail = f"Invalid value for {field}" if field else "Invalid request"
    return JSONResponse(status_code=400, content={"detail": detail})


def create_app(
    config: Optional[SoundboardConfig] = None,
    context: Optional[SoundboardContext] = None
) -> FastAPI:
    config = config or (context.config if context else default_config)

    app = FastAPI(
        title="Soundboard Web",
        description="Web-controlled Discord voice soundboard",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.config = config
    app.state.context = context

    if config.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(SoundboardError, soundboard_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Include routers
    app.include_router(auth_router, prefix="/api", tags=["Authentication"])
    app.include_router(voice_router, prefix="/api", tags=["Voice"])
    app.include_router(sounds_router, prefix="/api", tags=["Sounds"])
    app.include_router(tags_router, prefix="/api", tags=["Tags"])
    app.include_router(settings_router, prefix="/api", tags=["Settings"])
    app.include_router(moderation_router, prefix="/api", tags=["Moderation"])
    app.include_router(playback_router, prefix="/api", tags=["Playback"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "soundboard-web"}

    # Web UI, mounted last so it never shadows the API
    if config.PUBLIC_DIR.is_dir():
        app.mount("/", StaticFiles(directory=config.PUBLIC_DIR, html=True), name="public")

    return app


app = create_app()


def run():
    """Console entry point."""
    import uvicorn

    uvicorn.run("soundboard.main:app", host="0.0.0.0", port=default_config.PORT)
