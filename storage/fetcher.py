"""Idempotent, integrity-checked artifact download."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Optional
from uuid import uuid4

import httpx

from core import FetchResult, FetchStatus
from utils.exceptions import TransferError


logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024
_PROGRESS_STEP = 1024 * 1024


class ArtifactFetcher:
    """Streams a remote artifact to disk, never leaving a partial file behind."""

    def __init__(
        self,
        *,
        min_valid_bytes: int = 1024,
        timeout_s: float = 300.0,
        referer: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        self.min_valid_bytes = max(0, int(min_valid_bytes))
        self.timeout_s = float(timeout_s)
        self.referer = str(referer or "").strip()
        self.user_agent = str(user_agent or "").strip()

    def fetch(self, url: str, destination: str | Path) -> FetchResult:
        """Download ``url`` to ``destination`` unless a valid file is already there."""
        target = Path(destination)

        if target.exists():
            size = target.stat().st_size
            if size > self.min_valid_bytes:
                logger.info("fetch_skip_existing path=%s bytes=%s", target, size)
                return FetchResult(status=FetchStatus.SKIPPED_EXISTING, path=str(target), bytes_written=0)
            logger.info("fetch_replace_small path=%s bytes=%s", target, size)
            target.unlink()

        try:
            written = self._download(url, target)
        except TransferError as exc:
            logger.warning("fetch_failed path=%s reason=%s", target, exc.message)
            return FetchResult(status=FetchStatus.FAILED, path=str(target), reason=exc.message)

        logger.info("fetch_done path=%s bytes=%s", target, written)
        return FetchResult(status=FetchStatus.DOWNLOADED, path=str(target), bytes_written=written)

    def _headers(self) -> Dict[str, str]:
        # Content-Length is checked against wire bytes; ask for them unencoded.
        headers: Dict[str, str] = {"Accept-Encoding": "identity"}
        if self.referer:
            headers["Referer"] = self.referer
        if self.user_agent:
            headers["User-Agent"] = self.user_agent
        return headers

    def _download(self, url: str, target: Path) -> int:
        if not str(url or "").strip():
            raise TransferError("empty download url", url=url)

        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.parent / f".{target.name}.{uuid4().hex}.part"
        try:
            with httpx.Client(timeout=self.timeout_s, follow_redirects=True) as client:
                with client.stream("GET", url, headers=self._headers()) as response:
                    if response.status_code != 200:
                        body = response.read()[:200].decode("utf-8", errors="replace")
                        raise TransferError(f"http {response.status_code}: {body}", url=url)

                    content_type = str(response.headers.get("content-type") or "").lower()
                    if "xml" in content_type or "text" in content_type:
                        body = response.read()[:200].decode("utf-8", errors="replace")
                        raise TransferError(f"invalid content-type ({content_type}): {body}", url=url)

                    expected = _content_length(response.headers.get("content-length"))
                    written = self._stream_to(response, tmp, expected)
                    received = response.num_bytes_downloaded

            if expected is not None and expected > 0 and received != expected:
                raise TransferError(
                    f"size mismatch: expected {expected} bytes, got {received}",
                    url=url,
                    expected=expected,
                    written=received,
                )
            os.replace(tmp, target)
            return written
        except httpx.TimeoutException as exc:
            raise TransferError("download timeout", url=url) from exc
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as exc:
            raise TransferError(f"download failed: {exc}", url=url) from exc
        except OSError as exc:
            raise TransferError(f"write failed: {exc}", url=url) from exc
        finally:
            tmp.unlink(missing_ok=True)

    @staticmethod
    def _stream_to(response: httpx.Response, tmp: Path, expected: Optional[int]) -> int:
        written = 0
        next_report = _PROGRESS_STEP
        with tmp.open("wb") as fh:
            for chunk in response.iter_bytes(chunk_size=_CHUNK_SIZE):
                if not chunk:
                    continue
                fh.write(chunk)
                written += len(chunk)
                if written >= next_report:
                    if expected:
                        logger.debug("fetch_progress %.0f%%", written / float(expected) * 100)
                    else:
                        logger.debug("fetch_progress bytes=%s", written)
                    next_report += _PROGRESS_STEP
        return written


def _content_length(value: Optional[str]) -> Optional[int]:
    try:
        return int(str(value).strip()) if value is not None else None
    except ValueError:
        return None
