"""
ASGI entry point for uvicorn
This module exposes the FastAPI app for use with uvicorn command line
(uvicorn roku_remote.asgi:app)
"""

import logging
import os
from contextlib import asynccontextmanager

from .api.main_api import RemoteAPI
from .config_loader import load_config, setup_logging
from .services.remote_engine import RemoteEngine

# Load configuration
config = load_config(os.environ.get('CONFIG_FILE', 'config/config.yaml'))
setup_logging(config)

logger = logging.getLogger(__name__)

logger.info("Initializing application components...")

engine = RemoteEngine(config)


@asynccontextmanager
async def lifespan(app):
    """Restore the stored device on startup, release sessions on shutdown"""
    logger.info("Starting up application...")
    await engine.start()
    yield
    logger.info("Shutting down application...")
    await api.close()
    await engine.stop()
    logger.info("Application shut down complete")


# Create API (which contains the FastAPI app)
api = RemoteAPI(engine, config, lifespan=lifespan)

# Expose the FastAPI app for uvicorn
app = api.app

logger.info("ASGI app ready for uvicorn")
