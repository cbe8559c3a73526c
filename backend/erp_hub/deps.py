from __future__ import annotations

from functools import lru_cache
from typing import Iterator, Optional

from fastapi import Depends
from sqlmodel import Session

from erp_hub.config import OpenAISettings, Settings, ZendeskSettings
from erp_hub.models.base import engine
from erp_hub.repositories.settings import get_app_settings
from erp_hub.services.llm_client import LLMClient
from erp_hub.services.zendesk_client import ZendeskClient


def get_session() -> Iterator[Session]:
    with Session(engine) as session:
        yield session


@lru_cache
def get_settings() -> Settings:
    return Settings()


@lru_cache
def get_zendesk_settings() -> ZendeskSettings:
    return ZendeskSettings()


@lru_cache
def get_openai_settings() -> OpenAISettings:
    return OpenAISettings()


def get_zendesk_client(
    session: Session = Depends(get_session),
    config: ZendeskSettings = Depends(get_zendesk_settings),
) -> ZendeskClient:
    # A token stored by the OAuth callback wins over the environment
    runtime = get_app_settings(session).get("zendesk", {})
    return ZendeskClient(config, oauth_token=runtime.get("oauth_access_token"))


def get_llm_client(config: OpenAISettings = Depends(get_openai_settings)) -> Optional[LLMClient]:
    if not config.is_enabled():
        return None
    return LLMClient(config)
