"""FastAPI application for the Juice Genius chat assistant."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)

load_dotenv()

from src import config
from src.completion import CompletionClient
from src.conversation import ConversationManager
from src.kv_store import build_store
from src.prompt_store import PromptStore
from src.token_tracker import TokenTracker

from .routes import error_response, router
from .sessions import CookieSessionResolver

logger = logging.getLogger(__name__)


def create_app(store=None, completion=None, website_dir: str | Path | None = config.WEBSITE_DIR) -> FastAPI:
    """Build the app; `store` and `completion` default to the configured backends."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        kv = store or build_store(config.STORE_BACKEND, config.REDIS_URL)
        completer = completion or CompletionClient(tracker=TokenTracker(config.TOKEN_USAGE_PATH))
        prompts = PromptStore(kv)
        prompts.ensure_seeded()

        app.state.store = kv
        app.state.prompts = prompts
        app.state.manager = ConversationManager(kv, prompts, completer)
        app.state.resolver = CookieSessionResolver()
        logger.info("Ready: store=%s model=%s", type(kv).__name__, getattr(completer, "model", "?"))
        yield
        if store is None:
            kv.close()

    app = FastAPI(title="Juice Genius Chat API", lifespan=lifespan)

    if config.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    else:
        # Reflect any origin (dev-friendly)
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=".*",
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError):
        logger.info("Rejected request to %s: %s", request.url.path, exc.errors())
        return error_response(400, "invalid_request", "Request body is invalid.")

    app.include_router(router)

    # Serve the website (index.html, styles, app.js) when present
    if website_dir and Path(website_dir).is_dir():
        app.mount("/", StaticFiles(directory=website_dir, html=True), name="website")

    return app


app = create_app()
