"""Hosting adapter boundary."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

from core import UploadResult, WorkItem


class BaseHostingAdapter:
    """Base adapter that can be replaced by a concrete provider or fakes."""

    provider = "base"

    def upload(self, item: WorkItem, file_path: Path) -> UploadResult:
        """Upload one file as a private video scheduled at ``item.publish_at``."""
        raise NotImplementedError

    def latest_scheduled_publish_at(self) -> Optional[datetime]:
        """Latest publish instant already scheduled on the hosting side, if any."""
        raise NotImplementedError
