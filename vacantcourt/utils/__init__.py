# Utilities Module

from .config import ConfigManager
from .concurrency import CancellationToken, Dispatcher

__all__ = [
    'ConfigManager',
    'CancellationToken',
    'Dispatcher',
]
