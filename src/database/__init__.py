"""
Database module for saved router configurations
"""

from .manager import DatabaseManager
from .models import RouterRecord

__all__ = ['DatabaseManager', 'RouterRecord']
