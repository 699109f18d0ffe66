from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from backend import config
from backend.routes import router
from backend.service import GameService
from emberfall.content import BundledContentStore, ContentStore, HttpContentStore
from emberfall.dice import DiceRoller
from emberfall.storage import FileProgressStore, ResilientProgressStore

load_dotenv(Path(__file__).parent.parent / ".env")


def default_content_store() -> ContentStore:
    url = config.campaign_url()
    return HttpContentStore(url) if url else BundledContentStore()


def create_app(
    data_dir: Path | None = None,
    content: ContentStore | None = None,
    dice: DiceRoller | None = None,
) -> FastAPI:
    resolved = config.init_data_dir(data_dir)

    app = FastAPI(title="Emberfall")
    app.state.service = GameService(
        content or default_content_store(),
        ResilientProgressStore(FileProgressStore(resolved)),
        dice=dice,
    )
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
