"""
Router discovery and connection API routes
"""

from fastapi import APIRouter
from pydantic import BaseModel
from typing import Optional
import logging

from .responses import to_response

logger = logging.getLogger(__name__)

# Request models
class ConnectionTestRequest(BaseModel):
    host: str
    username: str
    password: str = ""
    port: Optional[int] = None

class RouterConnectRequest(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    host: str
    username: str
    password: str = ""
    port: Optional[int] = None


def create_router_routes(router_service):
    """Create discovery and router session routes"""
    router = APIRouter(prefix="/api", tags=["routers"])

    @router.get("/router/discover")
    async def discover_routers():
        """Discover MikroTik routers on the network using MNDP"""
        logger.info("Starting MNDP router discovery...")
        result = await router_service.discover()
        return to_response(result)

    @router.get("/router/neighbors")
    async def list_neighbors():
        """Routers seen since startup by scans or the passive listener"""
        return router_service.neighbors()

    @router.post("/router/test")
    async def test_connection(request: ConnectionTestRequest):
        """Test router credentials without keeping the connection"""
        result = await router_service.test_connection(
            request.host, request.username, request.password, request.port
        )
        return to_response(result, failure_status=400)

    @router.post("/router/connect")
    async def connect_router(request: RouterConnectRequest):
        """Connect (or reconnect) to a router"""
        result = await router_service.connect(
            request.host,
            request.username,
            request.password,
            port=request.port,
            name=request.name,
            session_id=request.id
        )
        return to_response(result, failure_status=400)

    @router.get("/routers")
    async def list_routers():
        """List connected and saved routers"""
        result = await router_service.list_sessions()
        return to_response(result)

    @router.get("/router/{router_id}")
    async def get_router(router_id: str):
        """Fresh stats for one connected router"""
        result = await router_service.get_router(router_id)
        return to_response(result)

    @router.delete("/router/{router_id}")
    async def disconnect_router(router_id: str):
        """Disconnect from a router"""
        result = await router_service.disconnect(router_id)
        return to_response(result)

    return router
