"""
Hotspot Server - Main orchestrator for discovery, router sessions and the API
"""

import asyncio
import logging
from typing import Dict, List, Optional

import uvicorn

from config_loader import load_config, setup_logging
from connections import ConnectionRegistry
from database.manager import DatabaseManager
from discovery import MNDPDiscovery, MNDPListener, DiscoveredDevice
from api.main_api import HotspotAPI
from services.router_service import RouterService

logger = logging.getLogger(__name__)


def create_registry(config: Dict) -> ConnectionRegistry:
    """Build the process-wide registry from the routers config section"""
    routers = config['routers']
    return ConnectionRegistry(
        connect_timeout=routers['connect_timeout_seconds'],
        command_timeout=routers['command_timeout_seconds'],
        transport_options={
            'use_ssl': routers['use_ssl'],
            'ssl_verify': routers['ssl_verify'],
            'plaintext_login': routers['plaintext_login'],
        }
    )


class HotspotServer:
    """Main server owning the registry, discovery, router store and HTTP API"""

    def __init__(self, config_path: str = "config/config.yaml", config: Optional[Dict] = None):
        self.config = config if config is not None else load_config(config_path)
        setup_logging(self.config)

        self.db: Optional[DatabaseManager] = None
        self.discovery = MNDPDiscovery(self.config['discovery'])
        self.registry = create_registry(self.config)
        self.service = RouterService(self.registry, self.discovery, None, self.config)
        self.api = HotspotAPI(self.service, self.config)

        self.listener: Optional[MNDPListener] = None
        self.running = False
        self.tasks: List[asyncio.Task] = []

    async def start(self):
        """Start background services, then serve the API until stopped"""
        logger.info("Starting RouterOS Hotspot Manager server...")
        try:
            await self.start_services()
            await self._start_api_server()
        except Exception as e:
            logger.error(f"Server startup failed: {e}")
            await self.stop()
            raise

    async def start_services(self):
        """Everything except the HTTP listener (uvicorn may own that, see asgi.py)"""
        await self._initialize_database()
        self.running = True

        if self.config['routers'].get('reconnect_on_startup', False):
            await self.service.reconnect_saved_routers()

        if self.config['discovery'].get('passive_listener', False):
            await self._start_passive_listener()

        self.tasks = [asyncio.create_task(self._monitoring_service())]
        logger.info(f"All services started successfully ({len(self.tasks)} background tasks)")

    async def stop(self):
        """Stop all server services gracefully"""
        logger.info("Stopping server...")
        self.running = False

        if self.listener:
            self.listener.close()
            self.listener = None

        for task in self.tasks:
            task.cancel()
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks = []

        await self.registry.close_all()

        if self.db:
            await self.db.close()
            self.db = None
            self.service.db = None
        logger.info("Server stopped")

    async def _initialize_database(self):
        """Connect the router store; fall back to in-memory mode on any failure"""
        if not self.config['database'].get('enabled', False):
            logger.warning("Database disabled - running without persistence (in-memory only)")
            return

        db = DatabaseManager(self.config)
        try:
            await db.initialize()
        except Exception as e:
            logger.warning(f"Database unavailable ({e}) - continuing without persistence (in-memory only)")
            return

        self.db = db
        self.service.db = db
        logger.info("Database initialized successfully")

    async def _start_passive_listener(self):
        try:
            self.listener = await self.discovery.listen(self._on_neighbor)
        except OSError as e:
            logger.warning(f"MNDP passive listener not started: {e}")

    def _on_neighbor(self, device: DiscoveredDevice):
        logger.debug(f"MNDP announcement: {device.identity} at {device.host} ({device.mac_address})")

    async def _monitoring_service(self):
        """Background liveness sweep over connected routers"""
        monitoring = self.config['monitoring']
        check_interval = monitoring['health_check_interval_minutes'] * 60
        max_missed = monitoring['max_missed_health_checks']

        logger.info(f"Monitoring service started (every {check_interval/60} minutes)")

        while self.running:
            try:
                await asyncio.sleep(check_interval)

                if not self.running:
                    break

                evicted = await self.registry.check_health(max_missed=max_missed)
                if self.db:
                    for session_id in evicted:
                        await self.db.mark_router_inactive(session_id)

                logger.info(f"Health check: {len(self.registry)} router session(s) active, "
                            f"{len(evicted)} evicted")

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Monitoring service error: {e}")

    async def _start_api_server(self):
        """Start the FastAPI server"""
        config = uvicorn.Config(
            self.api.app,
            host=self.config['api']['host'],
            port=self.config['api']['port'],
            log_level="info",
            access_log=False  # We handle our own logging
        )

        server = uvicorn.Server(config)

        logger.info(f"Starting API server on {self.config['api']['host']}:{self.config['api']['port']}")
        await server.serve()
