"""
Result dict -> HTTP response mapping shared by the route modules
"""

from fastapi.responses import JSONResponse
from typing import Dict, Any

from router_client import RouterErrorKind


def to_response(result: Dict[str, Any], failure_status: int = 500) -> JSONResponse:
    """200 on success, 404 for unknown routers, failure_status otherwise"""
    if result.get("success"):
        return JSONResponse(content=result)
    if result.get("error") == RouterErrorKind.NOT_FOUND.value:
        return JSONResponse(status_code=404, content=result)
    return JSONResponse(status_code=failure_status, content=result)
