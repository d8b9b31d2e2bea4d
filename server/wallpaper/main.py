"""FastAPI application entrypoint for the Vibe Wallpaper service."""
from pathlib import Path
import sys

# Ensure the server directory (parent of this package) is on sys.path for script runs.
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from wallpaper import __version__
from wallpaper.config import Settings, settings
from wallpaper.models.session import Operation
from wallpaper.routers import realtime, session
from wallpaper.services.orchestration import WallpaperOrchestrator

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


def create_app(
    orchestrator: Optional[WallpaperOrchestrator] = None,
    *,
    config: Optional[Settings] = None,
) -> FastAPI:
    """Instantiate the application around a single session orchestrator.

    The session lives as long as the process. When ``auto_generate_on_start`` is
    set, the lifespan schedules the initial-load generation in the background so
    the UI can render the busy state while it runs.
    """
    config = config or settings
    orchestrator = orchestrator or WallpaperOrchestrator.from_settings(config)

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        initial_load: Optional[asyncio.Task] = None
        if config.auto_generate_on_start and not orchestrator.started:
            orchestrator.reserve(Operation.GENERATE)
            initial_load = asyncio.create_task(orchestrator.start())
        try:
            yield
        finally:
            if initial_load is not None and not initial_load.done():
                logger.info("Waiting for the initial generation to settle before shutdown")
                await initial_load

    application = FastAPI(
        title="Vibe Wallpaper Generator",
        description="Describe a scene, optionally enhance it, and render it as a wallpaper.",
        version=__version__,
        lifespan=lifespan,
    )
    application.state.orchestrator = orchestrator
    application.include_router(session.router)
    application.include_router(realtime.router)

    @application.get("/")
    async def root() -> dict[str, str]:
        """Lightweight health endpoint for service discovery."""
        return {"service": "vibe-wallpaper", "status": "ok"}

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        # Data URLs for generated images can exceed the default frame size.
        ws_max_size=16 * 1024 * 1024,
    )
