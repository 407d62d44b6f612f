"""Scheduling orchestrator: batch runs, manual overrides and backlog status."""

from __future__ import annotations

from datetime import date, datetime
import logging
from pathlib import Path
import shutil
from typing import List, Optional

from core import ItemStatus, RunReport, StatusSummary, UploadResult, WorkItem
from utils.exceptions import HostingError, InvalidStateError, NotFoundError, UploadError

from .context import EngineContext


logger = logging.getLogger(__name__)


def _local_baseline(items: List[WorkItem]) -> Optional[datetime]:
    times = [item.publish_at for item in items if item.counts_in_baseline()]
    return max(times) if times else None


class SchedulingOrchestrator:
    """
    Moves items from pending to uploaded, one at a time.

    Every run loads the store fresh and writes the whole collection back
    after each successful upload, so a crash mid-batch keeps the uploads
    already made and leaves the rest untouched.
    """

    def __init__(self, context: EngineContext) -> None:
        self.ctx = context

    @property
    def video_dir(self) -> Path:
        return self.ctx.video_dir

    def run_batch(
        self,
        *,
        limit: Optional[int] = None,
        start_date: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> RunReport:
        max_uploads = int(limit if limit is not None else self.ctx.settings.scheduler.max_uploads_per_run)
        items = self.ctx.store.load()

        baseline = self._baseline(items)
        clock = self.ctx.allocator.start_slot(baseline, start_date, now=now)
        report = RunReport(first_slot=clock, limit=max_uploads)
        logger.info(
            "batch_start limit=%s baseline=%s first_slot=%s",
            max_uploads,
            baseline.isoformat() if baseline else "-",
            clock.isoformat(),
        )

        for item in items:
            if report.processed >= max_uploads:
                break
            if item.uploaded:
                continue
            if not self._file_path(item).exists():
                logger.warning("skip_missing_file file=%s", item.file_name)
                report.skipped_missing.append(item.file_name)
                continue

            previous_publish_at = item.publish_at
            previous_clock = clock
            if item.is_manual and item.publish_at is not None:
                if not item.ignore_calc and item.publish_at > clock:
                    clock = self.ctx.allocator.next_slot(item.publish_at)
            else:
                item.publish_at = clock
                clock = self.ctx.allocator.next_slot(clock)

            logger.info("upload_start file=%s publish_at=%s", item.file_name, item.publish_at.isoformat())
            result = self._upload(item)
            if not result.success:
                item.publish_at = previous_publish_at
                clock = previous_clock
                report.failed[item.file_name] = result.error or "upload failed"
                continue

            item.uploaded = True
            self.archive(item)
            self.ctx.store.save(items)
            report.processed += 1
            report.uploaded.append(item.file_name)
            logger.info("upload_done file=%s publish_at=%s", item.file_name, item.publish_at.isoformat())

        logger.info(
            "batch_done uploaded=%s missing=%s failed=%s",
            report.processed,
            len(report.skipped_missing),
            len(report.failed),
        )
        return report

    def manual_schedule(
        self,
        file_name: str,
        local_time: datetime,
        *,
        count_in_baseline: bool = False,
    ) -> WorkItem:
        """Pin one item to an operator-chosen instant and upload it right away."""
        items = self.ctx.store.load()
        item = next((entry for entry in items if entry.file_name == file_name), None)
        if item is None:
            raise NotFoundError("item not found", {"file_name": file_name})
        if item.uploaded:
            raise InvalidStateError("item already uploaded", {"file_name": file_name})

        item.publish_at = self.ctx.allocator.localize(local_time)
        item.is_manual = True
        item.ignore_calc = not count_in_baseline
        self.ctx.store.save(items)
        logger.info(
            "manual_scheduled file=%s publish_at=%s count_in_baseline=%s",
            file_name,
            item.publish_at.isoformat(),
            count_in_baseline,
        )

        if not self._file_path(item).exists():
            raise NotFoundError("backing file missing", {"file_name": file_name, "video_dir": str(self.video_dir)})

        result = self._upload(item)
        if not result.success:
            raise UploadError(result.error or "upload failed", file_name=file_name)

        item.uploaded = True
        self.archive(item)
        self.ctx.store.save(items)
        logger.info("manual_upload_done file=%s", file_name)
        return item.model_copy(deep=True)

    def status(self, now: Optional[datetime] = None) -> StatusSummary:
        """Pending backlog split by manual/automatic plus the next slot from local baselines."""
        items = self.ctx.store.load()
        summary = StatusSummary()
        for item in items:
            if item.uploaded:
                continue
            summary.pending_count += 1
            entry = ItemStatus(
                unique_id=item.unique_id,
                file_name=item.file_name,
                title=item.title,
                status="Available" if self._file_path(item).exists() else "Missing",
            )
            if item.is_manual:
                summary.manual.append(entry)
            else:
                summary.automatic.append(entry)

        summary.next_schedule = self.ctx.allocator.next_slot(_local_baseline(items), now=now)
        return summary

    def delete_item(self, file_name: str) -> WorkItem:
        return self.ctx.store.delete(file_name)

    def archive(self, item: WorkItem) -> Optional[Path]:
        """Move an uploaded item's file out of the backlog directory."""
        source = self._file_path(item)
        target_dir = self.ctx.archive_dir
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            target = target_dir / item.file_name
            shutil.move(str(source), str(target))
        except OSError as exc:
            logger.error("archive_failed file=%s error=%s", item.file_name, exc)
            return None
        logger.info("archived file=%s to=%s", item.file_name, target)
        return target

    def _baseline(self, items: List[WorkItem]) -> Optional[datetime]:
        try:
            external = self.ctx.hosting.latest_scheduled_publish_at()
        except HostingError as exc:
            logger.warning("hosting_baseline_unavailable error=%s", exc)
            external = None

        local = _local_baseline(items)
        candidates = [value for value in (external, local) if value is not None]
        return max(candidates) if candidates else None

    def _upload(self, item: WorkItem) -> UploadResult:
        try:
            result = self.ctx.hosting.upload(item, self._file_path(item))
        except UploadError as exc:
            result = UploadResult(file_name=item.file_name, success=False, error=str(exc))
        if not result.success:
            logger.error("upload_failed file=%s error=%s", item.file_name, result.error)
        return result

    def _file_path(self, item: WorkItem) -> Path:
        return self.video_dir / item.file_name
