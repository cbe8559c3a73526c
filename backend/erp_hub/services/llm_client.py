from __future__ import annotations

from typing import Dict, List
import logging

import requests

from erp_hub.config import OpenAISettings
from erp_hub.errors import ExternalServiceError

logger = logging.getLogger("erp_hub.llm")


class LLMClient:
    """Chat completions against OpenAI or an OpenAI-compatible API."""

    def __init__(self, config: OpenAISettings) -> None:
        self._api_key = config.api_key or ""
        self._model = config.model
        self._base_url = config.base_url.rstrip("/")
        self._timeout = config.timeout_seconds

    @property
    def model(self) -> str:
        return self._model

    def chat(self, messages: List[Dict[str, str]], temperature: float = 0.7, max_tokens: int = 2000) -> str:
        request_body = {
            "model": self._model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        try:
            response = requests.post(
                f"{self._base_url}/v1/chat/completions",
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
                json=request_body,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            logger.error("OpenAI request failed: %s", exc)
            raise ExternalServiceError("Failed to reach OpenAI") from exc

        if response.status_code != 200:
            logger.error("OpenAI error %s: %s", response.status_code, response.text[:500])
            raise ExternalServiceError(f"OpenAI error: {response.status_code}", status_code=response.status_code)

        choices = response.json().get("choices", [])
        if not choices:
            raise ExternalServiceError("OpenAI response missing choices")
        return str(choices[0].get("message", {}).get("content") or "").strip()

    def complete(self, system_prompt: str, prompt: str, temperature: float = 0.7, max_tokens: int = 2000) -> str:
        return self.chat(
            [{"role": "system", "content": system_prompt}, {"role": "user", "content": prompt}],
            temperature=temperature,
            max_tokens=max_tokens,
        )
