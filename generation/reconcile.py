"""Reconcile generation tasks with feed artifacts and the item store."""

from __future__ import annotations

from datetime import datetime
import logging
from pathlib import Path
import re
from typing import Any, Dict, Optional

from core import DownloadReport, FetchStatus, PollResult, TaskSubmission, WorkItem
from storage.fetcher import ArtifactFetcher
from storage.item_store import BaseItemStore
from utils.exceptions import NotFoundError

from .client import BaseGenerationClient
from .matcher import TaskMatcher


logger = logging.getLogger(__name__)

_FILE_UUID_RE = re.compile(r"files/([a-zA-Z0-9_-]+)/")

SYNC_DESCRIPTION = "Synced from Sora Mailbox."


def file_uuid_from_url(url: Optional[str]) -> Optional[str]:
    match = _FILE_UUID_RE.search(str(url or ""))
    return match.group(1) if match else None


def default_file_name(url: Optional[str], *, now: Optional[datetime] = None) -> str:
    """Local file name for an artifact when no metadata names it."""
    stamp = now or datetime.now()
    if url:
        file_uuid = file_uuid_from_url(url)
        if file_uuid:
            return f"sora_{file_uuid}.mp4"
        return f"sora_{stamp.strftime('%Y%m%d_%H%M%S')}.mp4"
    return f"pending_{stamp.strftime('%H%M%S')}.mp4"


class ReconciliationService:
    """Drives a generation task from submission to a registered local file."""

    def __init__(
        self,
        *,
        client: BaseGenerationClient,
        store: BaseItemStore,
        matcher: TaskMatcher,
        fetcher: ArtifactFetcher,
        video_dir: str | Path = ".",
    ) -> None:
        self._client = client
        self._store = store
        self._matcher = matcher
        self._fetcher = fetcher
        self.video_dir = Path(video_dir)

    def submit(self, prompt: str) -> TaskSubmission:
        return self._client.create_task(prompt)

    def poll(self, task_id: str, *, request_text: Optional[str] = None) -> PollResult:
        """Report ``running`` while the task is pending, else resolve its artifact."""
        target = str(task_id or "").strip()
        if target:
            for entry in self._client.list_pending():
                if target in {str(entry.get("id") or ""), str(entry.get("task_id") or "")}:
                    return PollResult(task_id=target, state="running")

        feed = self._client.fetch_feed()
        match = self._matcher.resolve(target, feed, request_text=request_text)
        return PollResult(task_id=target, state="done", match=match)

    def sync_feed(self) -> int:
        """Register completed feed artifacts the store does not know yet."""
        feed = self._client.fetch_feed()
        items = self._store.load()
        by_id: Dict[str, WorkItem] = {item.unique_id: item for item in items if item.unique_id}
        file_names = {item.file_name for item in items}

        created = 0
        for record in feed:
            if not (record.is_complete and record.has_url):
                continue
            file_uuid = file_uuid_from_url(record.url)
            if not file_uuid:
                continue

            short_id = self._matcher.extract_short_id(record.display_text)
            if short_id:
                existing = by_id.get(short_id)
                if existing is not None:
                    if not existing.uploaded:
                        existing.download_url = record.url
                    continue
                file_name = f"{short_id}.mp4"
                if file_name in file_names:
                    continue
                title = f"SYNC: {short_id}"
                if len(record.display_text) > 30:
                    title += " " + record.display_text[:30]
                item = self._synced_item(file_name, title, record.url, unique_id=short_id)
                by_id[short_id] = item
            else:
                file_name = f"sora_{file_uuid}.mp4"
                if file_name in file_names:
                    continue
                item = self._synced_item(file_name, f"SYNC: {file_uuid}", record.url)

            items.append(item)
            file_names.add(file_name)
            created += 1

        self._store.save(items)
        logger.info("feed_synced created=%s total=%s", created, len(items))
        return created

    def download(
        self,
        *,
        url: Optional[str] = None,
        file_name: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        unique_id: Optional[str] = None,
    ) -> DownloadReport:
        """
        Register metadata (if given), locate the artifact URL and fetch it.

        URL lookup order: explicit ``url``, the stored item, then the feed by
        the item's correlation id. Feed lookup never falls back to an
        unrelated record.
        """
        target_url = str(url or "").strip() or None
        target_name = str(file_name or "").strip() or None

        if metadata:
            target_name, target_url = self._register_metadata(metadata, target_name, target_url)
            unique_id = unique_id or metadata.get("unique_id")

        if not target_name and unique_id:
            known = self._store.find(unique_id=unique_id)
            if known is not None:
                target_name = known.file_name

        if target_url is None and (unique_id or target_name):
            target_url = self._lookup_url(unique_id=unique_id, file_name=target_name)

        if not target_name:
            target_name = default_file_name(target_url)

        if target_url is None:
            logger.warning("download_metadata_only file=%s", target_name)
            return DownloadReport(file_name=target_name, message="metadata only (no download url)")

        result = self._fetcher.fetch(target_url, self.video_dir / target_name)
        if result.status == FetchStatus.SKIPPED_EXISTING:
            message = "file exists, download skipped"
        elif result.status == FetchStatus.FAILED:
            message = f"download failed: {result.reason}"
        else:
            message = "ok"
        return DownloadReport(file_name=target_name, url=target_url, fetch=result, message=message)

    def _register_metadata(
        self,
        metadata: Dict[str, Any],
        file_name: Optional[str],
        url: Optional[str],
    ) -> tuple[Optional[str], Optional[str]]:
        record = dict(metadata)
        if not str(record.get("file_name") or "").strip():
            if not file_name:
                file_name = default_file_name(url)
            record["file_name"] = file_name

        item = WorkItem.model_validate(record)
        item.uploaded = False
        item.is_manual = False

        stored, created = self._store.upsert(item, explicit_url=url)
        logger.info("metadata_registered file=%s created=%s", stored.file_name, created)
        return stored.file_name, url or stored.download_url

    def _lookup_url(self, *, unique_id: Optional[str], file_name: Optional[str]) -> Optional[str]:
        lookup_id = str(unique_id or "").strip() or None
        item = self._store.find(unique_id=lookup_id) if lookup_id else None
        if item is None and file_name:
            item = self._store.find(file_name=file_name)

        if item is not None:
            if item.download_url:
                return item.download_url
            lookup_id = lookup_id or item.unique_id

        if lookup_id is None:
            return None

        found = self._matcher.find_by_short_id(lookup_id, self._client.fetch_feed())
        if not found:
            logger.warning("feed_lookup_miss unique_id=%s", lookup_id)
            return None

        if item is not None:
            try:
                self._store.update(item.file_name, lambda entry: setattr(entry, "download_url", found))
                logger.info("download_url_recorded file=%s unique_id=%s", item.file_name, lookup_id)
            except NotFoundError:
                logger.warning("download_url_not_recorded file=%s", item.file_name)
        return found

    @staticmethod
    def _synced_item(file_name: str, title: str, url: str, *, unique_id: Optional[str] = None) -> WorkItem:
        return WorkItem(
            unique_id=unique_id,
            file_name=file_name,
            title=title,
            description=SYNC_DESCRIPTION,
            category_id="24",
            privacy="private",
            uploaded=False,
            is_manual=True,
            download_url=url,
        )
