"""
Server services: router operations and orchestration
"""

from .router_service import RouterService

__all__ = ['RouterService']
