# /shopgenie/utils/lifecycle.py

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from shopgenie.utils.logging import setup_logging
from shopgenie.services.cache_service import cache_service
from shopgenie.services.db_service import db_service
from shopgenie.services.geocoding_service import geocoding_service
from shopgenie.services.whatsapp_service import whatsapp_service

# This file manages the application's lifespan, handling startup tasks like
# creating indexes and shutdown tasks like closing client connections.

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    setup_logging()

    logger.info("Application starting up...")
    await db_service.create_indexes()
    logger.info("Application startup complete. Ready to accept requests.")

    yield  # Application is now running

    logger.info("Application shutting down...")
    await whatsapp_service.http_client.aclose()
    await geocoding_service.http_client.aclose()
    if cache_service.redis:
        await cache_service.redis.aclose()
    if db_service.client:
        db_service.client.close()
