"""
Hosting Module
Video hosting adapters.
"""
from .base import BaseHostingAdapter
from .youtube import YouTubeAdapter, rfc3339

__all__ = [
    "BaseHostingAdapter",
    "YouTubeAdapter",
    "rfc3339",
]
