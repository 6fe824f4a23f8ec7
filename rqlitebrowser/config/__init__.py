"""Configuration system"""

from .manager import DEFAULT_CONFIG_FILE, ConfigManager
from .settings import (
    BrowserSettings,
    ConsistencyLevel,
    LoggingSettings,
    RqliteSettings,
    TransferSettings,
)

__all__ = [
    "BrowserSettings",
    "ConfigManager",
    "ConsistencyLevel",
    "DEFAULT_CONFIG_FILE",
    "LoggingSettings",
    "RqliteSettings",
    "TransferSettings",
]
