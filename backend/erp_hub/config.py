from __future__ import annotations

from pathlib import Path
from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings
import os


class Settings(BaseSettings):
    app_name: str = "ERP Admin Hub"

    # Base data dir (e.g., ~/.erp_hub)
    data_dir: Path = Field(default_factory=lambda: Path(os.getenv("HUB_HOME", str(Path.home() / ".erp_hub"))))
    logs_dir: Path = Field(default_factory=lambda: Path(os.getenv("HUB_HOME", str(Path.home() / ".erp_hub"))) / "logs")
    attachments_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("HUB_HOME", str(Path.home() / ".erp_hub"))) / "attachments"
    )

    database_url: str = "sqlite:///./erp_hub.db"

    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )

    # Seconds between watchdog sweeps over ACTIVE meetings
    watchdog_interval_seconds: int = 60

    display_timezone: str = "America/Los_Angeles"

    class Config:
        env_prefix = "HUB_"
        case_sensitive = False

    def ensure_dirs(self) -> None:
        for d in [self.data_dir, self.logs_dir, self.attachments_dir]:
            d.mkdir(parents=True, exist_ok=True)


class ZendeskSettings(BaseSettings):
    subdomain: str = ""
    api_token: str = ""
    api_email: str = ""
    oauth_access_token: str = ""
    oauth_client_id: str = ""
    oauth_client_secret: str = ""
    oauth_redirect_uri: str = ""
    timeout_seconds: int = 30

    class Config:
        env_prefix = "ZENDESK_"
        case_sensitive = False

    @property
    def base_url(self) -> str:
        return f"https://{self.subdomain}.zendesk.com/api/v2"

    def is_configured(self) -> bool:
        return bool(self.subdomain and (self.api_token or self.oauth_access_token))

    def oauth_ready(self) -> bool:
        return bool(self.subdomain and self.oauth_client_id and self.oauth_redirect_uri)


class OpenAISettings(BaseSettings):
    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    base_url: str = "https://api.openai.com"
    timeout_seconds: int = 120

    class Config:
        env_prefix = "OPENAI_"
        case_sensitive = False

    def is_enabled(self) -> bool:
        return bool(self.api_key)
