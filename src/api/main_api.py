"""
Main FastAPI application setup
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from typing import Dict
import logging

# Import modular route factories
from .router_routes import create_router_routes
from .hotspot_routes import create_hotspot_routes
from .system_routes import create_system_routes

logger = logging.getLogger(__name__)


class HotspotAPI:
    """Local HTTP API for router discovery, connections and hotspot management"""

    def __init__(self, router_service, config: Dict):
        self.service = router_service
        self.config = config
        self.app = FastAPI(
            title="RouterOS Hotspot Manager Server",
            description="Local API for MikroTik discovery, router sessions and hotspot users",
            version="1.0.0"
        )
        self._setup_middleware()
        self._setup_routes()

    def _setup_middleware(self):
        origins = self.config.get('api', {}).get('cors_origins', ['*'])
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _setup_routes(self):
        """Setup FastAPI routes using modular approach"""
        self.app.include_router(create_router_routes(self.service))
        self.app.include_router(create_hotspot_routes(self.service))
        self.app.include_router(create_system_routes(self.service))
