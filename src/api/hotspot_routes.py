"""
Hotspot user and session API routes
"""

from fastapi import APIRouter
from pydantic import BaseModel
from typing import Optional
import logging

from .responses import to_response

logger = logging.getLogger(__name__)

class HotspotUserRequest(BaseModel):
    name: str
    password: str
    profile: Optional[str] = None
    comment: Optional[str] = None


def create_hotspot_routes(router_service):
    """Create hotspot management routes"""
    router = APIRouter(prefix="/api/router/{router_id}/hotspot", tags=["hotspot"])

    @router.get("/active")
    async def get_active_sessions(router_id: str):
        """Currently logged-in hotspot clients"""
        return to_response(await router_service.get_active_sessions(router_id))

    @router.post("/active/{user_id}/disconnect")
    async def disconnect_active_session(router_id: str, user_id: str):
        """Kick an active hotspot client"""
        return to_response(await router_service.disconnect_active_session(router_id, user_id))

    @router.get("/users")
    async def get_hotspot_users(router_id: str):
        """All hotspot users, not just active ones"""
        return to_response(await router_service.get_hotspot_users(router_id))

    @router.post("/users")
    async def create_hotspot_user(router_id: str, request: HotspotUserRequest):
        result = await router_service.create_hotspot_user(
            router_id, request.name, request.password,
            profile=request.profile, comment=request.comment
        )
        return to_response(result)

    @router.delete("/users/{user_id}")
    async def delete_hotspot_user(router_id: str, user_id: str):
        return to_response(await router_service.delete_hotspot_user(router_id, user_id))

    @router.get("/profiles")
    async def get_hotspot_profiles(router_id: str):
        return to_response(await router_service.get_hotspot_profiles(router_id))

    return router
