"""
SkyShare Core
=============

Core utilities and shared functionality for SkyShare modules.
"""

from .config import Config, WEEK_IN_SECONDS
from .database import Database
from .logging_service import LoggingService
from .tasks import TaskQueue, TaskWorker

__all__ = [
    'Config', 'WEEK_IN_SECONDS', 'Database', 'LoggingService',
    'TaskQueue', 'TaskWorker',
]
