"""
System health API routes
"""

from fastapi import APIRouter
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

def create_system_routes(router_service):
    """Create system monitoring routes"""
    router = APIRouter(prefix="/api", tags=["system"])

    @router.get("/health")
    async def health():
        """Server health check"""
        status = router_service.health()
        status["timestamp"] = datetime.now(timezone.utc).isoformat()
        return status

    return router
