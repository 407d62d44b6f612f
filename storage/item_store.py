"""
Item Store
Durable work-item collection, rewritten wholesale on every mutation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import json
import logging
import os
from pathlib import Path
from threading import Lock
from typing import Callable, List, Optional, Sequence, Tuple
from uuid import uuid4

from pydantic import ValidationError

from core import WorkItem
from utils.exceptions import NotFoundError, StoreError


logger = logging.getLogger(__name__)


def _ensure_unique(items: Sequence[WorkItem]) -> None:
    seen = set()
    for item in items:
        if item.file_name in seen:
            raise StoreError("duplicate file_name in item store", {"file_name": item.file_name})
        seen.add(item.file_name)


def _match_index(items: Sequence[WorkItem], incoming: WorkItem) -> Optional[int]:
    """Index of the entry an incoming item merges into: unique_id first, then file_name."""
    if incoming.unique_id:
        for idx, existing in enumerate(items):
            if existing.unique_id == incoming.unique_id:
                return idx
    for idx, existing in enumerate(items):
        if existing.file_name == incoming.file_name:
            return idx
    return None


class BaseItemStore(ABC):
    """
    Repository for work items.

    ``save`` is the only mutation primitive: callers load, mutate in memory
    and save the full collection. Helpers below follow the same cycle.
    """

    @abstractmethod
    def load(self) -> List[WorkItem]:
        """Return all items in store order."""
        pass

    @abstractmethod
    def save(self, items: Sequence[WorkItem]) -> None:
        """Replace the whole collection."""
        pass

    def find(
        self,
        *,
        file_name: Optional[str] = None,
        unique_id: Optional[str] = None,
    ) -> Optional[WorkItem]:
        for item in self.load():
            if file_name and item.file_name == file_name:
                return item
            if unique_id and item.unique_id == unique_id:
                return item
        return None

    def upsert(self, item: WorkItem, *, explicit_url: Optional[str] = None) -> Tuple[WorkItem, bool]:
        """
        Merge an item by unique_id first, then by file_name.

        An existing download_url survives when the incoming item has none;
        ``explicit_url`` always wins. An uploaded entry keeps its record, and a
        merge that would take over another entry's file_name raises StoreError.

        Returns:
            (stored item, created)
        """
        incoming = item.model_copy(deep=True)
        if explicit_url:
            incoming.download_url = explicit_url

        items = self.load()
        idx = _match_index(items, incoming)
        if idx is not None:
            existing = items[idx]
            for other_idx, other in enumerate(items):
                if other_idx != idx and other.file_name == incoming.file_name:
                    raise StoreError(
                        "file_name already belongs to another item",
                        {"file_name": incoming.file_name, "unique_id": incoming.unique_id},
                    )

            if existing.uploaded:
                # Uploaded items are terminal; only the download url may change.
                kept = existing.model_copy(deep=True)
                if explicit_url:
                    kept.download_url = explicit_url
                items[idx] = kept
                self.save(items)
                logger.info("upsert_kept_uploaded file=%s", kept.file_name)
                return kept.model_copy(deep=True), False

            if not incoming.download_url and existing.download_url:
                incoming.download_url = existing.download_url
            items[idx] = incoming
            self.save(items)
            return incoming.model_copy(deep=True), False

        items.append(incoming)
        self.save(items)
        return incoming.model_copy(deep=True), True

    def update(self, file_name: str, mutate: Callable[[WorkItem], None]) -> WorkItem:
        """Apply ``mutate`` to one item and persist the collection."""
        items = self.load()
        for item in items:
            if item.file_name == file_name:
                mutate(item)
                self.save(items)
                return item.model_copy(deep=True)
        raise NotFoundError("item not found", {"file_name": file_name})

    def delete(self, file_name: str) -> WorkItem:
        items = self.load()
        kept = [item for item in items if item.file_name != file_name]
        if len(kept) == len(items):
            raise NotFoundError("item not found", {"file_name": file_name})
        removed = next(item for item in items if item.file_name == file_name)
        self.save(kept)
        logger.info("item_deleted file=%s", file_name)
        return removed


class InMemoryItemStore(BaseItemStore):
    """Process-local store with the same copy-in/copy-out contract as the file store."""

    def __init__(self, items: Optional[Sequence[WorkItem]] = None) -> None:
        self._items: List[WorkItem] = [item.model_copy(deep=True) for item in list(items or [])]
        self._lock = Lock()
        self.save_count = 0

    def load(self) -> List[WorkItem]:
        with self._lock:
            return [item.model_copy(deep=True) for item in self._items]

    def save(self, items: Sequence[WorkItem]) -> None:
        _ensure_unique(items)
        with self._lock:
            self._items = [item.model_copy(deep=True) for item in items]
            self.save_count += 1


class JsonFileItemStore(BaseItemStore):
    """JSON-array store file with atomic full overwrite."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> List[WorkItem]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"cannot read item store: {exc}", {"path": str(self.path)}) from exc

        if raw is None:
            return []
        if not isinstance(raw, list):
            raise StoreError("item store must hold a JSON array", {"path": str(self.path)})

        items: List[WorkItem] = []
        for idx, record in enumerate(raw):
            try:
                items.append(WorkItem.model_validate(record))
            except ValidationError as exc:
                raise StoreError(f"invalid item at index {idx}: {exc}", {"path": str(self.path)}) from exc
        return items

    def save(self, items: Sequence[WorkItem]) -> None:
        _ensure_unique(items)
        payload = json.dumps([item.to_record() for item in items], ensure_ascii=False, indent=2)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.parent / f".{self.path.name}.{uuid4().hex}.tmp"
        try:
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            tmp.unlink(missing_ok=True)
            raise StoreError(f"cannot write item store: {exc}", {"path": str(self.path)}) from exc
