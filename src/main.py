"""
RouterOS Hotspot Manager Server - process entry point

Runs MNDP discovery, the router session registry and the HTTP API in one
event loop. The config file comes from CONFIG_FILE (default config/config.yaml).
"""

import asyncio
import logging
import os
import signal
import sys

from services.hotspot_server import HotspotServer

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = 'config/config.yaml'


async def main() -> int:
    config_path = os.environ.get('CONFIG_FILE', DEFAULT_CONFIG_PATH)
    try:
        server = HotspotServer(config_path=config_path)
    except Exception as e:
        logger.error(f"Cannot start with configuration {config_path}: {e}")
        return 1

    loop = asyncio.get_running_loop()
    serving = asyncio.create_task(server.start())

    def request_shutdown(signame: str):
        logger.info(f"Received {signame}, shutting down...")
        serving.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_shutdown, sig.name)
        except NotImplementedError:
            # No loop signal support on Windows; Ctrl+C raises KeyboardInterrupt instead
            pass

    try:
        await serving
    except asyncio.CancelledError:
        logger.info("Server task cancelled")
    except Exception as e:
        logger.error(f"Server failed: {e}")
        return 1
    finally:
        await server.stop()

    return 0


def run():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nServer stopped by user")
        sys.exit(0)


if __name__ == "__main__":
    run()
