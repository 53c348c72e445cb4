"""FastAPI application entry point."""
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from image_studio.core.config import get_settings
from image_studio.core.logging import setup_logging

# Setup logging
logger = setup_logging("main")
# Module loggers (image_studio.services.*, image_studio.api.*) propagate here
setup_logging("image_studio")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialize services at startup, clean up at shutdown."""
    settings = get_settings()
    try:
        from image_studio.services.cooldown import CooldownGate
        from image_studio.services.orchestrator import VariationOrchestrator
        from image_studio.services.poller import VideoJobPoller
        from image_studio.services.preferences import JsonFileStore, PreferencesStore
        from image_studio.services.provider import provider_from_settings
        from image_studio.services.request_builder import RequestBuilder
        from image_studio.services.studio import StudioService

        preferences = PreferencesStore(JsonFileStore(Path(settings.preferences_path)))
        provider = provider_from_settings(settings, preferences.get_api_key())

        app.state.preferences = preferences
        app.state.cooldown_gate = CooldownGate(settings.rate_limit_cooldown_seconds)
        app.state.studio_service = StudioService(
            provider=provider,
            builder=RequestBuilder(
                image_generation_model=settings.image_generation_model,
                image_edit_model=settings.image_edit_model,
                text_model=settings.text_model,
                video_model=settings.video_model,
            ),
            orchestrator=VariationOrchestrator(delay_seconds=settings.variation_delay_seconds),
            poller=VideoJobPoller(
                provider=provider,
                videos_dir=Path(settings.videos_dir),
                interval_seconds=settings.poll_interval_seconds,
                max_attempts=settings.max_poll_attempts,
            ),
        )
        logger.info("Services initialized successfully")
    except Exception as exc:
        logger.error(
            "Service initialization failed, running in degraded mode",
            exc_info=True,
            extra={"service": "main", "error_type": type(exc).__name__},
        )
        # Continue without services; endpoints return 503 until fixed

    yield


# Create FastAPI app
app = FastAPI(
    title="Image Studio",
    description="Image generation, editing, face swap and video studio on Gemini",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=[f"http://localhost:{settings.frontend_port}"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
from image_studio.api.preferences import router as preferences_router  # noqa: E402
from image_studio.api.studio import router as studio_router  # noqa: E402

app.include_router(studio_router)
app.include_router(preferences_router)

# Serve downloaded videos at /videos
_videos_dir = Path(settings.videos_dir)
_videos_dir.mkdir(parents=True, exist_ok=True)
app.mount("/videos", StaticFiles(directory=str(_videos_dir)), name="videos")


@app.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint.

    Always returns HTTP 200; check `services` for actual status.
    """
    svc = getattr(request.app.state, "studio_service", None)
    gate = getattr(request.app.state, "cooldown_gate", None)
    provider = getattr(svc, "provider", None)
    credentials_ok = bool(
        provider is not None and (provider.api_key or provider.use_vertex_ai)
    )

    logger.info("Health check requested")
    return {
        "status": "ok",
        "version": app.version,
        "services": {
            "studio": "ok" if svc is not None else "unavailable",
            "credentials": "ok" if credentials_ok else "missing",
        },
        "cooldown_seconds": round(gate.remaining()) if gate is not None else 0,
    }
