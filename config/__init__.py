"""
Configuration Management Module
"""
from .settings import (
    GenerationSettings,
    HostingSettings,
    SchedulerSettings,
    Settings,
    StorageSettings,
)

__all__ = [
    "GenerationSettings",
    "HostingSettings",
    "SchedulerSettings",
    "Settings",
    "StorageSettings",
]
