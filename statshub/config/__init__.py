"""
statshub
Configuration Module
"""
from .settings import (
    ArchiveSettings,
    AuthSettings,
    RedisSettings,
    Settings,
    WarehouseSettings,
    get_settings,
)

__all__ = [
    "ArchiveSettings",
    "AuthSettings",
    "RedisSettings",
    "Settings",
    "WarehouseSettings",
    "get_settings",
]
