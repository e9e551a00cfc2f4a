from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import router
from .background import get_background_tasks
from .config import get_settings
from .webhooks import router as telephony_router

# Configure logging for the entire assistant_bridge package
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logging.getLogger("assistant_bridge").setLevel(logging.INFO)

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Assistant bridge starting up")
    yield
    logger.info("Assistant bridge shutting down")
    await get_background_tasks().drain(timeout=settings.shutdown_grace_seconds)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Assistant Bridge",
        description="OpenAI Assistants orchestration with Twilio voice and SMS",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    app.include_router(telephony_router)
    return app


app = create_app()
