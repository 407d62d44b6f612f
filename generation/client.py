"""Generation service client boundary with an httpx implementation."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from config import GenerationSettings
from core import CompletionRecord, TaskSubmission
from utils.exceptions import ConfigurationError, GenerationError


logger = logging.getLogger(__name__)


class BaseGenerationClient:
    """Base client that can be replaced by the HTTP implementation or fakes."""

    provider = "base"

    def create_task(self, prompt: str) -> TaskSubmission:
        raise NotImplementedError

    def list_pending(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def fetch_feed(self) -> List[CompletionRecord]:
        raise NotImplementedError


class SoraGenerationClient(BaseGenerationClient):
    """HTTP client for the video generation backend."""

    provider = "sora"

    def __init__(self, settings: GenerationSettings) -> None:
        self.settings = settings
        self.base_url = str(settings.base_url or "").strip().rstrip("/")
        self.timeout_s = float(settings.timeout_s)

    def create_task(self, prompt: str) -> TaskSubmission:
        text = str(prompt or "").strip()
        if not text:
            raise GenerationError("prompt is required")

        payload = {
            "kind": "video",
            "prompt": text,
            "orientation": self.settings.orientation,
            "size": self.settings.size,
            "n_frames": int(self.settings.n_frames),
            "model": self.settings.model,
        }
        body = self._request_json("POST", self.settings.create_path, json=payload)
        if not isinstance(body, dict):
            raise GenerationError("unexpected create response")

        task_id = str(body.get("id") or body.get("task_id") or "").strip()
        if not task_id:
            raise GenerationError("create response missing task id", keys=sorted(body.keys()))

        submission = TaskSubmission(task_id=task_id, remaining_quota=_remaining_quota(body))
        logger.info("task_submitted task_id=%s remaining=%s", submission.task_id, submission.remaining_quota)
        return submission

    def list_pending(self) -> List[Dict[str, Any]]:
        body = self._get_json(self.settings.pending_path)
        if isinstance(body, dict):
            body = body.get("items") or []
        if not isinstance(body, list):
            return []
        return [dict(item) for item in body if isinstance(item, dict)]

    def fetch_feed(self) -> List[CompletionRecord]:
        body = self._get_json(self.settings.feed_path, params={"limit": int(self.settings.feed_limit)})
        items = body.get("items") if isinstance(body, dict) else None
        if not isinstance(items, list):
            raise GenerationError("feed response missing items")

        records = [
            CompletionRecord.from_feed_item(item, complete_kind=self.settings.complete_kind)
            for item in items
            if isinstance(item, dict)
        ]
        logger.info("feed_fetched records=%s complete=%s", len(records), sum(1 for r in records if r.is_complete))
        return records

    def _headers(self) -> Dict[str, str]:
        token = str(self.settings.bearer_token or "").strip()
        if not token or not self.base_url:
            raise ConfigurationError("generation credentials missing: GENERATION_BEARER_TOKEN/GENERATION_BASE_URL")
        if not token.lower().startswith("bearer "):
            token = f"Bearer {token}"

        headers = {
            "Authorization": token,
            "User-Agent": self.settings.user_agent,
            "Content-Type": "application/json",
        }
        if self.settings.cookie:
            headers["Cookie"] = self.settings.cookie
        if self.settings.device_id:
            headers["Oai-Device-Id"] = self.settings.device_id
        return headers

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        headers = self._headers()
        try:
            response = self._get_with_retry(f"{self.base_url}{path}", headers=headers, params=params)
        except httpx.TimeoutException as exc:
            raise GenerationError("generation service timeout") from exc
        except httpx.HTTPError as exc:
            raise GenerationError(f"generation request failed: {exc}") from exc
        return self._decode(response)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    def _get_with_retry(self, url: str, *, headers: Dict[str, str], params: Optional[Dict[str, Any]]) -> httpx.Response:
        with httpx.Client(timeout=self.timeout_s) as client:
            return client.get(url, headers=headers, params=params)

    def _request_json(self, method: str, path: str, *, json: Any = None) -> Any:
        headers = self._headers()
        try:
            with httpx.Client(timeout=self.timeout_s) as client:
                response = client.request(method, f"{self.base_url}{path}", headers=headers, json=json)
        except httpx.TimeoutException as exc:
            raise GenerationError("generation service timeout") from exc
        except httpx.HTTPError as exc:
            raise GenerationError(f"generation request failed: {exc}") from exc
        return self._decode(response)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if response.status_code in {401, 403}:
            raise GenerationError("generation auth failed", status_code=response.status_code)
        if response.status_code == 429:
            raise GenerationError("generation quota exceeded", status_code=429)
        if response.status_code >= 400:
            raise GenerationError(
                f"generation http {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise GenerationError("generation response is not JSON") from exc


def _remaining_quota(body: Dict[str, Any]) -> Optional[int]:
    balance = body.get("rate_limit_and_credit_balance")
    candidates = [
        balance.get("estimated_num_videos_remaining") if isinstance(balance, dict) else None,
        body.get("remaining_quota"),
        body.get("remaining"),
    ]
    for value in candidates:
        if value is None:
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return None
