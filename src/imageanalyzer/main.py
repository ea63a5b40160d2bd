"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from imageanalyzer.analyzer.component import ImageAnalyzer
from imageanalyzer.api.middleware import analyzer_error_handler
from imageanalyzer.api.routes import public_router, router
from imageanalyzer.config import get_settings
from imageanalyzer.errors import AnalyzerError
from imageanalyzer.ml.inference import InferencePool
from imageanalyzer.ml.model_loader import OnnxModelLoader

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: mount the analyzer on startup, unmount on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting ImageAnalyzer (device=%s, model_dir=%s, camera=%s)",
        settings.device,
        settings.model_dir,
        settings.camera_index,
    )

    inference_pool = InferencePool(settings)
    app.state.inference_pool = inference_pool

    analyzer = ImageAnalyzer(settings, inference_pool, OnnxModelLoader(settings))
    app.state.analyzer = analyzer
    analyzer.mount()

    logger.info("ImageAnalyzer ready, model loading in background")
    yield

    logger.info("Shutting down ImageAnalyzer")
    await analyzer.unmount()
    inference_pool.shutdown()
    logger.info("ImageAnalyzer shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="ImageAnalyzer",
        description="Classify webcam frames or uploaded images with a Teachable Machine model",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_exception_handler(AnalyzerError, analyzer_error_handler)  # type: ignore[arg-type]
    application.include_router(public_router)
    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "imageanalyzer.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
