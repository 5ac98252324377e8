"""
Cross-Post Module
=================

Shares published articles on Bluesky (AT Protocol):
- SessionManager: login / refresh of the stored token pair
- CrossPostService: publish hook, deferred send, weekly refresh task
"""

from .crosspost_service import CrossPostService, crosspost_service, SEND_POST_TASK, REFRESH_TOKEN_TASK
from .session_manager import SessionManager
from .errors import CrossPostError, AuthError, TransportError, NotConfigured, MalformedResponse

__all__ = [
    'CrossPostService', 'crosspost_service', 'SEND_POST_TASK', 'REFRESH_TOKEN_TASK',
    'SessionManager',
    'CrossPostError', 'AuthError', 'TransportError', 'NotConfigured', 'MalformedResponse',
]
