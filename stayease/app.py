"""
FastAPI application entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from stayease.config import get_settings
from stayease.dependencies import get_db_client
from stayease.index_sync import ListingIndexSynchronizer
from stayease.routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.listing_index.bootstrap(get_db_client())
    yield
    logger.info("Shutting down; search index discarded")


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
    )
    app = FastAPI(title="StayEase Backend (FastAPI)", version="0.1.0", lifespan=lifespan)
    app.state.listing_index = ListingIndexSynchronizer()
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
