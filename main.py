"""Main FastAPI application for the AI subtitle translation add-on"""

import logging
import uvicorn
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Environment must be loaded before settings are first read
load_dotenv()

from subtranslate.api.routes import router, cleanup_pipeline, get_cache_store  # noqa: E402
from subtranslate.config import get_settings  # noqa: E402
from subtranslate import __version__, __description__  # noqa: E402

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logging.getLogger("urllib3").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup: missing credentials or an unusable cache directory are fatal
    logger.info("Starting AI subtitle translation add-on")
    settings.validate()
    get_cache_store(settings).ensure_directory()
    logger.info(f"Settings: {settings.to_dict()}")
    logger.info(f"Manifest URL: {settings.base_url}/manifest.json")
    yield
    # Shutdown
    logger.info("Shutting down AI subtitle translation add-on")
    cleanup_pipeline()


# Create FastAPI application
app = FastAPI(
    title="AI Subtitle Translator",
    description=__description__,
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Players load add-ons from a browser context
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "HEAD", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(router)


def run():
    """Console entry point"""
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    run()
