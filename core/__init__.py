"""Core contracts and shared types."""

from .contracts import (
    CompletionRecord,
    DownloadReport,
    FetchResult,
    FetchStatus,
    ItemState,
    ItemStatus,
    MatchResult,
    MatchTier,
    PollResult,
    RunReport,
    StatusSummary,
    TaskSubmission,
    UploadResult,
    WorkItem,
)

__all__ = [
    "CompletionRecord",
    "DownloadReport",
    "FetchResult",
    "FetchStatus",
    "ItemState",
    "ItemStatus",
    "MatchResult",
    "MatchTier",
    "PollResult",
    "RunReport",
    "StatusSummary",
    "TaskSubmission",
    "UploadResult",
    "WorkItem",
]
