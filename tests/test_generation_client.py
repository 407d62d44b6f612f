from __future__ import annotations

from typing import Any, Dict, List

import httpx
import pytest

from config import GenerationSettings
from generation.client import SoraGenerationClient
from utils.exceptions import ConfigurationError, GenerationError


class _Response:
    def __init__(self, status_code: int, payload: Any = None, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.text = text or "ok"

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def _settings(**kwargs) -> GenerationSettings:
    base = {"bearer_token": "tok_123", "base_url": "https://gen.example.com/backend", "cookie": "sid=1", "device_id": "dev-1"}
    base.update(kwargs)
    return GenerationSettings(**base)


def _install_client(monkeypatch: pytest.MonkeyPatch, responses: List[Any]) -> List[Dict[str, Any]]:
    calls: List[Dict[str, Any]] = []
    queue = list(responses)

    class _Client:
        def __init__(self, *args, **kwargs):
            _ = args, kwargs

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            _ = exc_type, exc, tb
            return False

        def _next(self):
            item = queue.pop(0)
            if isinstance(item, Exception):
                raise item
            return item

        def get(self, url, headers=None, params=None):
            calls.append({"method": "GET", "url": url, "headers": dict(headers or {}), "params": params})
            return self._next()

        def request(self, method, url, headers=None, json=None):
            calls.append({"method": method, "url": url, "headers": dict(headers or {}), "json": json})
            return self._next()

    monkeypatch.setattr("generation.client.httpx.Client", _Client)
    return calls


def test_create_task_posts_prompt_and_parses_quota(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install_client(
        monkeypatch,
        [_Response(200, {"id": "task_abc", "rate_limit_and_credit_balance": {"estimated_num_videos_remaining": 4}})],
    )

    submission = SoraGenerationClient(_settings()).create_task("  a fox in snow  ")

    assert submission.task_id == "task_abc"
    assert submission.remaining_quota == 4
    call = calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://gen.example.com/backend/nf/create"
    assert call["json"]["prompt"] == "a fox in snow"
    assert call["json"]["model"] == "sy_8"
    assert call["headers"]["Authorization"] == "Bearer tok_123"
    assert call["headers"]["Cookie"] == "sid=1"
    assert call["headers"]["Oai-Device-Id"] == "dev-1"


def test_create_task_requires_task_id(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_client(monkeypatch, [_Response(200, {"status": "queued"})])
    with pytest.raises(GenerationError):
        SoraGenerationClient(_settings()).create_task("prompt")


def test_missing_token_is_configuration_error(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install_client(monkeypatch, [])
    client = SoraGenerationClient(_settings(bearer_token=""))
    with pytest.raises(ConfigurationError):
        client.fetch_feed()
    assert calls == []


def test_fetch_feed_parses_records(monkeypatch: pytest.MonkeyPatch) -> None:
    payload = {
        "items": [
            {
                "id": "m1",
                "kind": "sora_gen_complete",
                "display_str": "S2_1_1_1 fox",
                "object": {"draft": {"id": "gen_1", "task_id": "task_1", "downloadable_url": "https://cdn/files/a/raw"}},
            },
            {"id": "m2", "kind": "sora_gen_pending", "display_str": "owl", "object": None},
        ]
    }
    calls = _install_client(monkeypatch, [_Response(200, payload)])

    records = SoraGenerationClient(_settings(feed_limit=20)).fetch_feed()

    assert [record.is_complete for record in records] == [True, False]
    assert records[0].task_id == "task_1"
    assert records[0].url == "https://cdn/files/a/raw"
    assert records[1].url == ""
    assert calls[0]["params"] == {"limit": 20}
    assert calls[0]["url"].endswith("/project_y/mailbox")


def test_list_pending_accepts_list_or_items(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_client(monkeypatch, [_Response(200, [{"id": "t1"}, "junk"]), _Response(200, {"items": [{"id": "t2"}]})])
    client = SoraGenerationClient(_settings())
    assert client.list_pending() == [{"id": "t1"}]
    assert client.list_pending() == [{"id": "t2"}]


@pytest.mark.parametrize("status_code", [401, 403, 429, 500])
def test_http_errors_raise_generation_error(monkeypatch: pytest.MonkeyPatch, status_code: int) -> None:
    _install_client(monkeypatch, [_Response(status_code, {"detail": "nope"}, text="nope")])
    with pytest.raises(GenerationError) as excinfo:
        SoraGenerationClient(_settings()).list_pending()
    assert excinfo.value.status_code == status_code


def test_non_json_response_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_client(monkeypatch, [_Response(200, None, text="<html>")])
    with pytest.raises(GenerationError):
        SoraGenerationClient(_settings()).fetch_feed()


def test_reads_retry_transport_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(SoraGenerationClient._get_with_retry.retry, "sleep", lambda _seconds: None)
    calls = _install_client(
        monkeypatch,
        [httpx.ConnectError("reset"), _Response(200, [{"id": "t1"}])],
    )

    assert SoraGenerationClient(_settings()).list_pending() == [{"id": "t1"}]
    assert len(calls) == 2


def test_reads_give_up_after_three_attempts(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(SoraGenerationClient._get_with_retry.retry, "sleep", lambda _seconds: None)
    calls = _install_client(monkeypatch, [httpx.ConnectError("reset")] * 3)

    with pytest.raises(GenerationError):
        SoraGenerationClient(_settings()).list_pending()
    assert len(calls) == 3
