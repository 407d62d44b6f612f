from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

from core import CompletionRecord, FetchResult, FetchStatus, MatchTier, TaskSubmission, WorkItem
from generation import BaseGenerationClient, ReconciliationService, TaskMatcher, default_file_name, file_uuid_from_url
from storage.item_store import InMemoryItemStore


def _feed_item(text: str, url: str, *, task_id: str = "", kind: str = "sora_gen_complete") -> Dict[str, Any]:
    return {
        "id": f"rec_{abs(hash(text)) % 1000}",
        "kind": kind,
        "display_str": text,
        "object": {"draft": {"id": "gen_1", "task_id": task_id, "downloadable_url": url}},
    }


class _FakeGeneration(BaseGenerationClient):
    def __init__(self, *, pending: List[Dict[str, Any]] = None, feed: List[Dict[str, Any]] = None) -> None:
        self.pending = list(pending or [])
        self.feed = list(feed or [])
        self.prompts: List[str] = []
        self.feed_calls = 0

    def create_task(self, prompt: str) -> TaskSubmission:
        self.prompts.append(prompt)
        return TaskSubmission(task_id="task_new", remaining_quota=7)

    def list_pending(self) -> List[Dict[str, Any]]:
        return list(self.pending)

    def fetch_feed(self) -> List[CompletionRecord]:
        self.feed_calls += 1
        return [CompletionRecord.from_feed_item(item, complete_kind="sora_gen_complete") for item in self.feed]


class _FakeFetcher:
    def __init__(self, status: FetchStatus = FetchStatus.DOWNLOADED) -> None:
        self.status = status
        self.calls: List[tuple] = []

    def fetch(self, url: str, destination: Path) -> FetchResult:
        self.calls.append((url, Path(destination)))
        reason = "size mismatch" if self.status == FetchStatus.FAILED else None
        return FetchResult(status=self.status, path=str(destination), bytes_written=10, reason=reason)


def _service(tmp_path: Path, client: _FakeGeneration, store: InMemoryItemStore, fetcher: _FakeFetcher = None):
    return ReconciliationService(
        client=client,
        store=store,
        matcher=TaskMatcher(),
        fetcher=fetcher or _FakeFetcher(),
        video_dir=tmp_path,
    )


URL_A = "https://videos.example.com/az/files/00000000-aaaa-bbbb/raw?sig=1"
URL_B = "https://videos.example.com/az/files/11111111-cccc-dddd/raw?sig=2"


def test_file_name_helpers() -> None:
    assert file_uuid_from_url(URL_A) == "00000000-aaaa-bbbb"
    assert file_uuid_from_url("https://cdn/other.mp4") is None
    assert default_file_name(URL_A) == "sora_00000000-aaaa-bbbb.mp4"
    assert default_file_name("https://cdn/other.mp4").startswith("sora_")
    assert default_file_name(None).startswith("pending_")


def test_submit_returns_task_and_quota(tmp_path: Path) -> None:
    client = _FakeGeneration()
    submission = _service(tmp_path, client, InMemoryItemStore()).submit("a fox in snow")
    assert submission.task_id == "task_new"
    assert submission.remaining_quota == 7
    assert client.prompts == ["a fox in snow"]


def test_poll_reports_running_while_pending(tmp_path: Path) -> None:
    client = _FakeGeneration(pending=[{"id": "task_1"}], feed=[_feed_item("x", URL_A, task_id="task_1")])
    result = _service(tmp_path, client, InMemoryItemStore()).poll("task_1")
    assert result.state == "running"
    assert result.match is None
    assert client.feed_calls == 0


def test_poll_resolves_done_task(tmp_path: Path) -> None:
    client = _FakeGeneration(
        feed=[
            _feed_item("other prompt", URL_B, task_id="task_2"),
            _feed_item("fox prompt", URL_A, task_id="task_1"),
        ]
    )
    result = _service(tmp_path, client, InMemoryItemStore()).poll("task_1", request_text="fox prompt")
    assert result.state == "done"
    assert result.match.tier == MatchTier.EXACT
    assert result.match.url == URL_A


def test_sync_feed_creates_and_updates_items(tmp_path: Path) -> None:
    store = InMemoryItemStore([WorkItem(file_name="S2_1_1_1.mp4", unique_id="S2_1_1_1", title="known")])
    long_text = "S2_2_2_2 a very long prompt describing a fox in the snow"
    client = _FakeGeneration(
        feed=[
            _feed_item("S2_1_1_1 known prompt", URL_A),
            _feed_item(long_text, URL_B),
            _feed_item("no correlation id here", "https://videos.example.com/files/22222222-eeee/raw"),
            _feed_item("S2_3_3_3 unfinished", "https://videos.example.com/files/33333333/raw", kind="sora_gen_pending"),
            _feed_item("S2_4_4_4 bad url", "https://cdn/no-uuid.mp4"),
        ]
    )

    created = _service(tmp_path, client, store).sync_feed()

    items = {item.file_name: item for item in store.load()}
    assert created == 2
    assert set(items) == {"S2_1_1_1.mp4", "S2_2_2_2.mp4", "sora_22222222-eeee.mp4"}
    assert items["S2_1_1_1.mp4"].download_url == URL_A
    assert items["S2_1_1_1.mp4"].title == "known"

    synced = items["S2_2_2_2.mp4"]
    assert synced.unique_id == "S2_2_2_2"
    assert synced.title == "SYNC: S2_2_2_2 " + long_text[:30]
    assert synced.is_manual is True
    assert synced.privacy == "private"
    assert synced.download_url == URL_B
    assert store.save_count == 1


def test_sync_feed_is_idempotent(tmp_path: Path) -> None:
    store = InMemoryItemStore()
    client = _FakeGeneration(feed=[_feed_item("S2_5_5_5 fox", URL_A), _feed_item("plain", URL_B)])
    service = _service(tmp_path, client, store)

    assert service.sync_feed() == 2
    assert service.sync_feed() == 0
    assert len(store.load()) == 2
    assert store.load()[0].title == "SYNC: S2_5_5_5"


def test_download_with_metadata_registers_then_fetches(tmp_path: Path) -> None:
    store = InMemoryItemStore()
    fetcher = _FakeFetcher()
    meta = {"unique_id": "S2_7_7_7", "file_name": "fox.mp4", "title": "Fox", "uploaded": True, "is_manual": True}

    report = _service(tmp_path, _FakeGeneration(), store, fetcher).download(url=URL_A, metadata=meta)

    assert report.file_name == "fox.mp4"
    assert report.message == "ok"
    assert fetcher.calls == [(URL_A, tmp_path / "fox.mp4")]
    stored = store.load()[0]
    assert stored.uploaded is False
    assert stored.is_manual is False
    assert stored.download_url == URL_A


def test_download_looks_up_feed_by_unique_id_and_persists_url(tmp_path: Path) -> None:
    store = InMemoryItemStore([WorkItem(file_name="fox.mp4", unique_id="S2_7_7_7")])
    client = _FakeGeneration(
        feed=[
            _feed_item("unrelated", URL_B),
            _feed_item("[S2_7_7_7] fox", URL_A),
        ]
    )
    fetcher = _FakeFetcher()

    report = _service(tmp_path, client, store, fetcher).download(file_name="fox.mp4")

    assert report.url == URL_A
    assert fetcher.calls == [(URL_A, tmp_path / "fox.mp4")]
    assert store.load()[0].download_url == URL_A


def test_download_without_match_never_uses_unrelated_record(tmp_path: Path) -> None:
    store = InMemoryItemStore([WorkItem(file_name="fox.mp4", unique_id="S2_7_7_7")])
    client = _FakeGeneration(feed=[_feed_item("unrelated", URL_B)])
    fetcher = _FakeFetcher()

    report = _service(tmp_path, client, store, fetcher).download(file_name="fox.mp4")

    assert report.url is None
    assert report.fetch is None
    assert fetcher.calls == []
    assert store.load()[0].download_url is None


def test_download_prefers_stored_url(tmp_path: Path) -> None:
    store = InMemoryItemStore([WorkItem(file_name="fox.mp4", unique_id="S2_7_7_7", download_url=URL_A)])
    client = _FakeGeneration()
    fetcher = _FakeFetcher(FetchStatus.SKIPPED_EXISTING)

    report = _service(tmp_path, client, store, fetcher).download(unique_id="S2_7_7_7")

    assert report.url == URL_A
    assert report.file_name == "fox.mp4"
    assert report.message == "file exists, download skipped"
    assert client.feed_calls == 0


def test_download_reports_failed_fetch(tmp_path: Path) -> None:
    report = _service(tmp_path, _FakeGeneration(), InMemoryItemStore(), _FakeFetcher(FetchStatus.FAILED)).download(
        url=URL_B,
    )
    assert report.file_name == "sora_11111111-cccc-dddd.mp4"
    assert report.message == "download failed: size mismatch"
    assert report.fetch.ok is False


def test_download_metadata_never_reopens_uploaded_item(tmp_path: Path) -> None:
    store = InMemoryItemStore([WorkItem(file_name="fox.mp4", unique_id="S2_7_7_7", title="Fox", uploaded=True)])
    meta = {"unique_id": "S2_7_7_7", "file_name": "fox.mp4", "title": "Fox again"}

    report = _service(tmp_path, _FakeGeneration(), store).download(url=URL_A, metadata=meta)

    assert report.file_name == "fox.mp4"
    stored = store.load()
    assert len(stored) == 1
    assert stored[0].uploaded is True
    assert stored[0].title == "Fox"
    assert stored[0].download_url == URL_A
