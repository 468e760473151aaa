"""
Connection registry for live router sessions
"""

from .registry import ConnectionRegistry, ConnectParams

__all__ = ['ConnectionRegistry', 'ConnectParams']
