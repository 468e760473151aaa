"""
ASGI entry point for uvicorn
This module exposes the FastAPI app for use with uvicorn command line
"""

import logging
import os

from services.hotspot_server import HotspotServer

logger = logging.getLogger(__name__)

# Initialize components synchronously for uvicorn
server = HotspotServer(config_path=os.environ.get('CONFIG_FILE', 'config/config.yaml'))

# Expose the FastAPI app for uvicorn
app = server.api.app

# Lifespan events for proper initialization and cleanup
@app.on_event("startup")
async def startup_event():
    """Initialize router store, reconnects and monitoring on startup"""
    logger.info("Starting up application...")
    await server.start_services()

@app.on_event("shutdown")
async def shutdown_event():
    """Close router sessions and the database on shutdown"""
    logger.info("Shutting down application...")
    await server.stop()
    logger.info("Application shut down complete")

logger.info("ASGI app ready for uvicorn")
