"""Canonical data contracts for the generation/scheduling pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ItemState(str, Enum):
    """Lifecycle state derived from a work item's fields."""

    PENDING = "pending"
    SCHEDULED = "scheduled"
    UPLOADED = "uploaded"


class WorkItem(BaseModel):
    """One unit of schedulable content, persisted in the item store."""

    model_config = ConfigDict(extra="ignore")

    unique_id: Optional[str] = None
    file_name: str
    title: str = ""
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    category_id: str = "24"
    privacy: str = "private"
    uploaded: bool = False
    publish_at: Optional[datetime] = None
    is_manual: bool = False
    ignore_calc: bool = False
    download_url: Optional[str] = None

    @field_validator("file_name", mode="before")
    @classmethod
    def _non_empty_file_name(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("file_name is required")
        return text

    @field_validator("unique_id", "download_url", mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> Optional[str]:
        text = str(value or "").strip()
        return text or None

    @field_validator("publish_at", mode="before")
    @classmethod
    def _blank_publish_at(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("publish_at")
    @classmethod
    def _utc_publish_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_list(cls, value: Any) -> List[str]:
        if value is None:
            return []
        return [str(tag) for tag in value]

    @property
    def state(self) -> ItemState:
        if self.uploaded:
            return ItemState.UPLOADED
        if self.publish_at is not None:
            return ItemState.SCHEDULED
        return ItemState.PENDING

    def counts_in_baseline(self) -> bool:
        """True when publish_at should seed slot computation for other items."""
        return self.publish_at is not None and not self.ignore_calc

    def to_record(self) -> Dict[str, Any]:
        """Serialize for the store file, omitting unset optional fields."""
        record: Dict[str, Any] = {
            "unique_id": self.unique_id or "",
            "file_name": self.file_name,
            "title": self.title,
            "description": self.description,
            "tags": list(self.tags),
            "category_id": self.category_id,
            "privacy": self.privacy,
            "uploaded": self.uploaded,
        }
        if self.publish_at is not None:
            record["publish_at"] = _as_utc(self.publish_at).strftime("%Y-%m-%dT%H:%M:%SZ")
        if self.is_manual:
            record["is_manual"] = True
        if self.ignore_calc:
            record["ignore_calc"] = True
        if self.download_url:
            record["download_url"] = self.download_url
        return record


class CompletionRecord(BaseModel):
    """One entry of the generation service's result feed."""

    record_id: str = ""
    kind: str = ""
    display_text: str = ""
    task_id: Optional[str] = None
    draft_id: Optional[str] = None
    url: str = ""
    is_complete: bool = False

    @classmethod
    def from_feed_item(cls, item: Dict[str, Any], *, complete_kind: str) -> "CompletionRecord":
        obj = item.get("object")
        draft = obj.get("draft") if isinstance(obj, dict) else None
        if not isinstance(draft, dict):
            draft = {}
        kind = str(item.get("kind") or "").strip()
        return cls(
            record_id=str(item.get("id") or "").strip(),
            kind=kind,
            display_text=str(item.get("display_str") or ""),
            task_id=str(draft.get("task_id") or "").strip() or None,
            draft_id=str(draft.get("id") or "").strip() or None,
            url=str(draft.get("downloadable_url") or "").strip(),
            is_complete=kind == complete_kind,
        )

    @property
    def has_url(self) -> bool:
        return bool(self.url)


class MatchTier(str, Enum):
    """Which resolution tier produced a match."""

    EXACT = "exact"
    FUZZY = "fuzzy"
    FALLBACK = "fallback"
    NOT_FOUND = "not_found"


class MatchResult(BaseModel):
    """Tagged outcome of resolving a task to artifact URLs."""

    tier: MatchTier
    urls: List[str] = Field(default_factory=list)

    @property
    def url(self) -> Optional[str]:
        return self.urls[0] if self.urls else None

    @property
    def found(self) -> bool:
        return self.tier != MatchTier.NOT_FOUND and bool(self.urls)

    @property
    def is_low_confidence(self) -> bool:
        return self.tier == MatchTier.FALLBACK


class FetchStatus(str, Enum):
    DOWNLOADED = "downloaded"
    SKIPPED_EXISTING = "skipped_existing"
    FAILED = "failed"


class FetchResult(BaseModel):
    """Outcome of one artifact download."""

    status: FetchStatus
    path: str
    bytes_written: int = 0
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != FetchStatus.FAILED


class TaskSubmission(BaseModel):
    """Accepted generation request."""

    task_id: str
    remaining_quota: Optional[int] = None


class PollResult(BaseModel):
    """Generation task progress as seen from the pending list and feed."""

    task_id: str
    state: Literal["running", "done"]
    match: Optional[MatchResult] = None


class DownloadReport(BaseModel):
    """Result of registering metadata and fetching an artifact."""

    file_name: str
    url: Optional[str] = None
    fetch: Optional[FetchResult] = None
    message: str = "ok"


class UploadResult(BaseModel):
    """Hosting adapter result for one upload."""

    file_name: str
    success: bool
    video_id: Optional[str] = None
    error: Optional[str] = None


class RunReport(BaseModel):
    """Summary of one orchestrator batch run."""

    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    first_slot: Optional[datetime] = None
    limit: int = 0
    processed: int = 0
    uploaded: List[str] = Field(default_factory=list)
    skipped_missing: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)


class ItemStatus(BaseModel):
    """Pending item entry for status listings."""

    unique_id: Optional[str] = None
    file_name: str
    title: str = ""
    status: Literal["Available", "Missing"]


class StatusSummary(BaseModel):
    """Backlog overview for operators."""

    pending_count: int = 0
    automatic: List[ItemStatus] = Field(default_factory=list)
    manual: List[ItemStatus] = Field(default_factory=list)
    next_schedule: Optional[datetime] = None
