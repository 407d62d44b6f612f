"""YouTube Data API adapter: scheduled private uploads and baseline lookup."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaFileUpload
from httplib2 import HttpLib2Error

from core import UploadResult, WorkItem
from utils.exceptions import ConfigurationError, HostingError, UploadError

from .base import BaseHostingAdapter


logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/youtube.upload",
    "https://www.googleapis.com/auth/youtube.readonly",
]


def rfc3339(value: datetime) -> str:
    """UTC ``YYYY-MM-DDTHH:MM:SSZ``; naive values are read as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_publish_at(text: Any) -> Optional[datetime]:
    raw = str(text or "").strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def load_service(token_path: str | Path):
    """Build a YouTube client from an already-authorized user token file."""
    path = Path(token_path)
    if not path.exists():
        raise ConfigurationError("hosting token file not found", {"token_path": str(path)})

    try:
        creds = Credentials.from_authorized_user_file(str(path), SCOPES)
        if not creds.valid:
            if creds.expired and creds.refresh_token:
                creds.refresh(Request())
                path.write_text(creds.to_json(), encoding="utf-8")
            else:
                raise ConfigurationError("hosting token is invalid and cannot be refreshed", {"token_path": str(path)})
    except (GoogleAuthError, ValueError) as exc:
        raise ConfigurationError(f"hosting token unusable: {exc}", {"token_path": str(path)}) from exc

    return build("youtube", "v3", credentials=creds, cache_discovery=False)


class YouTubeAdapter(BaseHostingAdapter):
    """
    Upload videos as private with a scheduled ``publishAt``.

    The service object is built lazily from ``token_path`` unless one is
    injected. Token acquisition (the OAuth consent flow) happens outside
    this process.
    """

    provider = "youtube"

    def __init__(
        self,
        service: Any = None,
        *,
        token_path: str | Path = "token.json",
        recent_window: int = 10,
        media_factory: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self._service = service
        self.token_path = Path(token_path)
        self.recent_window = max(1, int(recent_window))
        self._media_factory = media_factory or (lambda path: MediaFileUpload(path, chunksize=-1, resumable=True))

    @property
    def service(self):
        if self._service is None:
            self._service = load_service(self.token_path)
        return self._service

    def upload(self, item: WorkItem, file_path: Path) -> UploadResult:
        if item.publish_at is None:
            raise UploadError("publish_at is required for scheduled upload", file_name=item.file_name)

        body = {
            "snippet": {
                "title": item.title,
                "description": item.description,
                "tags": list(item.tags),
                "categoryId": item.category_id,
            },
            "status": {
                "privacyStatus": "private",
                "publishAt": rfc3339(item.publish_at),
                "selfDeclaredMadeForKids": False,
            },
        }

        try:
            request = self.service.videos().insert(
                part="snippet,status",
                body=body,
                media_body=self._media_factory(str(file_path)),
            )
            response = None
            while response is None:
                status, response = request.next_chunk()
                if status is not None:
                    logger.debug("upload_progress file=%s pct=%d", item.file_name, int(status.progress() * 100))
        except HttpError as exc:
            logger.error("upload_rejected file=%s error=%s", item.file_name, exc)
            return UploadResult(file_name=item.file_name, success=False, error=str(exc))
        except (GoogleAuthError, HttpLib2Error, OSError) as exc:
            logger.error("upload_transport_error file=%s error=%s", item.file_name, exc)
            return UploadResult(file_name=item.file_name, success=False, error=str(exc))

        video_id = str((response or {}).get("id") or "") or None
        logger.info("upload_accepted file=%s video_id=%s publish_at=%s", item.file_name, video_id, body["status"]["publishAt"])
        return UploadResult(file_name=item.file_name, success=True, video_id=video_id)

    def latest_scheduled_publish_at(self) -> Optional[datetime]:
        """Max ``publishAt`` among private videos in the channel's recent uploads."""
        try:
            return self._latest_scheduled()
        except HttpError as exc:
            raise HostingError(f"schedule query failed: {exc}") from exc
        except (GoogleAuthError, HttpLib2Error, OSError) as exc:
            raise HostingError(f"schedule query unreachable: {exc}") from exc

    def _latest_scheduled(self) -> Optional[datetime]:
        channels = self.service.channels().list(part="contentDetails", mine=True).execute()
        items = channels.get("items") or []
        if not items:
            return None
        uploads = (items[0].get("contentDetails") or {}).get("relatedPlaylists", {}).get("uploads")
        if not uploads:
            return None

        playlist = self.service.playlistItems().list(
            part="contentDetails",
            playlistId=uploads,
            maxResults=self.recent_window,
        ).execute()
        video_ids: List[str] = [
            str((entry.get("contentDetails") or {}).get("videoId") or "")
            for entry in playlist.get("items") or []
        ]
        video_ids = [vid for vid in video_ids if vid]
        if not video_ids:
            return None

        videos = self.service.videos().list(part="status", id=",".join(video_ids)).execute()
        latest: Optional[datetime] = None
        for video in videos.get("items") or []:
            status: Dict[str, Any] = video.get("status") or {}
            if status.get("privacyStatus") != "private":
                continue
            publish_at = _parse_publish_at(status.get("publishAt"))
            if publish_at is not None and (latest is None or publish_at > latest):
                latest = publish_at

        logger.info("hosting_baseline latest=%s inspected=%s", latest.isoformat() if latest else "-", len(video_ids))
        return latest
