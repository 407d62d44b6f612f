"""Explicit wiring of engine collaborators for CLI and tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from config import Settings
from generation import BaseGenerationClient, ReconciliationService, SoraGenerationClient, TaskMatcher
from hosting import BaseHostingAdapter, YouTubeAdapter
from scheduling import SlotAllocator
from storage import ArtifactFetcher, BaseItemStore, JsonFileItemStore

from .guard import RunGuard


@dataclass
class EngineContext:
    """Everything a run needs; passed explicitly instead of module singletons."""

    settings: Settings
    store: BaseItemStore
    allocator: SlotAllocator
    hosting: BaseHostingAdapter
    fetcher: ArtifactFetcher
    matcher: TaskMatcher
    generation: BaseGenerationClient
    guard: RunGuard = field(default_factory=RunGuard)

    @property
    def video_dir(self) -> Path:
        return Path(self.settings.storage.video_dir)

    @property
    def archive_dir(self) -> Path:
        return Path(self.settings.storage.archive_dir)

    def reconciler(self) -> ReconciliationService:
        return ReconciliationService(
            client=self.generation,
            store=self.store,
            matcher=self.matcher,
            fetcher=self.fetcher,
            video_dir=self.video_dir,
        )


def build_context(
    settings: Settings,
    *,
    store: Optional[BaseItemStore] = None,
    hosting: Optional[BaseHostingAdapter] = None,
    generation: Optional[BaseGenerationClient] = None,
    fetcher: Optional[ArtifactFetcher] = None,
) -> EngineContext:
    """Build the default collaborators from settings; any of them can be overridden."""
    gen = settings.generation
    return EngineContext(
        settings=settings,
        store=store or JsonFileItemStore(settings.storage.store_path),
        allocator=SlotAllocator(settings.scheduler.slots, tz=settings.scheduler.timezone),
        hosting=hosting or YouTubeAdapter(
            token_path=settings.hosting.token_path,
            recent_window=settings.hosting.recent_window,
        ),
        fetcher=fetcher or ArtifactFetcher(
            min_valid_bytes=settings.storage.min_valid_bytes,
            timeout_s=settings.storage.download_timeout_s,
            referer=gen.referer,
            user_agent=gen.user_agent,
        ),
        matcher=TaskMatcher(short_id_pattern=gen.short_id_pattern, key_length=gen.match_key_length),
        generation=generation or SoraGenerationClient(gen),
    )
