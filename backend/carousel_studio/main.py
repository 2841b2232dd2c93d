"""FastAPI app for the carousel template & rendering engine"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from carousel_studio.config import get_settings
from carousel_studio.database import dispose_db, init_db
from carousel_studio.logging_config import setup_logging
from carousel_studio.routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize logging and database on startup."""
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info("Starting carousel studio...")
    await init_db()
    yield
    logger.info("Shutting down...")
    await dispose_db()


app = FastAPI(title="Carousel Studio", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(router, prefix="/api")
