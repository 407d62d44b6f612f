"""
Settings Configuration
Pydantic-validated settings for scheduling, storage, generation and hosting.
"""
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/142.0.0.0 Safari/537.36"
)


class SchedulerSettings(BaseSettings):
    """Publication slot configuration"""
    slots: List[str] = Field(
        default_factory=lambda: ["00:00", "08:00", "12:00", "16:00"],
        description="Daily publish slots (HH:MM, ascending)",
    )
    timezone: str = Field(default="Asia/Taipei", description="Reference time zone for slots")
    max_uploads_per_run: int = Field(default=5, description="Successful uploads allowed per batch run")

    model_config = SettingsConfigDict(env_prefix="SCHEDULER_")


class StorageSettings(BaseSettings):
    """Local files: item store, backlog and archive"""
    store_path: str = Field(default="videos.json", description="Item store JSON file")
    video_dir: str = Field(default=".", description="Backlog directory holding downloaded videos")
    archive_dir: str = Field(default="_uploaded_videos", description="Where uploaded videos are moved")
    min_valid_bytes: int = Field(default=1024, description="Existing files above this size are kept")
    download_timeout_s: float = Field(default=300.0, description="Artifact download timeout (seconds)")

    model_config = SettingsConfigDict(env_prefix="STORAGE_")


class GenerationSettings(BaseSettings):
    """Video generation service"""
    base_url: str = Field(default="https://sora.chatgpt.com/backend", description="Service base URL")
    create_path: str = Field(default="/nf/create")
    pending_path: str = Field(default="/nf/pending")
    feed_path: str = Field(default="/project_y/mailbox")
    feed_limit: int = Field(default=50, description="Records requested per feed fetch")

    bearer_token: Optional[str] = Field(default=None, description="Authorization bearer token")
    cookie: Optional[str] = Field(default=None, description="Session cookie header")
    device_id: Optional[str] = Field(default=None, description="Device id header")
    user_agent: str = Field(default=DEFAULT_USER_AGENT)
    referer: str = Field(default="https://sora.chatgpt.com/", description="Referer for artifact downloads")

    model: str = Field(default="sy_8")
    orientation: str = Field(default="portrait")
    size: str = Field(default="small")
    n_frames: int = Field(default=300)
    timeout_s: float = Field(default=30.0)

    complete_kind: str = Field(default="sora_gen_complete", description="Feed kind marking a finished task")
    short_id_pattern: str = Field(default=r"(S2_\d+_\d+_\d+)", description="Correlation id embedded in prompts")
    match_key_length: int = Field(default=30, description="Normalized prompt prefix length for fuzzy matching")

    model_config = SettingsConfigDict(env_prefix="GENERATION_")


class HostingSettings(BaseSettings):
    """Video hosting (YouTube Data API)"""
    token_path: str = Field(default="token.json", description="Authorized user token file")
    recent_window: int = Field(default=10, description="Recent uploads inspected for the schedule baseline")

    model_config = SettingsConfigDict(env_prefix="HOSTING_")


class Settings(BaseSettings):
    """Aggregated settings"""

    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    hosting: HostingSettings = Field(default_factory=HostingSettings)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """Load settings after applying the given .env file (default: config/.env)."""
        if env_path is None:
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        return cls(
            scheduler=SchedulerSettings(),
            storage=StorageSettings(),
            generation=GenerationSettings(),
            hosting=HostingSettings(),
        )
