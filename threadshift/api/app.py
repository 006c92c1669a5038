import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from threadshift.api import router
from threadshift.plugin import ThreadshiftCore
from threadshift.storage import JsonSettingsStore

load_dotenv(Path(__file__).parent.parent.parent / ".env")

DEFAULT_DATA_DIR = Path(__file__).parent.parent.parent / "data"
SETTINGS_FILE = "extension-settings.json"

logger = logging.getLogger(__name__)


def create_app(data_dir: Path | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    core = ThreadshiftCore(JsonSettingsStore(resolved / SETTINGS_FILE))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not await core.initialize():
            logger.error("threadshift core failed to start; API will answer 503")
        yield
        core.shutdown()

    app = FastAPI(title="Threadshift", lifespan=lifespan)
    app.state.core = core
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
