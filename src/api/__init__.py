"""
API module for the local hotspot manager HTTP interface
"""

from .main_api import HotspotAPI

__all__ = ['HotspotAPI']
