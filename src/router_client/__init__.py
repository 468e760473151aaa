"""
RouterOS API client: sessions, transport and error classification
"""

from .errors import RouterError, RouterErrorKind
from .models import ResourceStats, DEFAULT_API_PORT
from .session import RouterSession
from .transport import RouterOSTransport

__all__ = ['RouterError', 'RouterErrorKind', 'ResourceStats', 'DEFAULT_API_PORT',
           'RouterSession', 'RouterOSTransport']
