"""Client for third-party chat-completion and transcription APIs."""

import base64
import json
import logging
import re
from typing import Any

import httpx

from soilsense.config import get_settings
from soilsense.errors import BadRequestError, ServiceUnavailableError

logger = logging.getLogger("soilsense")

FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)
BARE_JSON = re.compile(r"\{.*\}", re.DOTALL)


def extract_json(content: str | None) -> dict | None:
    """Pull the first JSON object out of a model reply, fenced or bare. None if there is none."""
    if not content:
        return None
    for pattern in (FENCED_JSON, BARE_JSON):
        match = pattern.search(content)
        if not match:
            continue
        candidate = match.group(1) if pattern is FENCED_JSON else match.group(0)
        try:
            parsed = json.loads(candidate.strip())
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


class CompletionClient:
    """One OpenAI-compatible provider: a chat-completions URL plus an API key."""

    def __init__(self, name: str, api_key: str, api_url: str, timeout: float, audio_url: str | None = None) -> None:
        self.name = name
        self.api_key = api_key
        self.api_url = api_url
        self.audio_url = audio_url
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _require_key(self) -> None:
        if not self.configured:
            raise ServiceUnavailableError()

    def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = httpx.post(
                url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
                **kwargs,
            )
        except httpx.TimeoutException:
            logger.warning("%s API timed out", self.name)
            raise ServiceUnavailableError() from None
        except httpx.RequestError as e:
            logger.warning("%s API unreachable: %s", self.name, e)
            raise ServiceUnavailableError() from None

        if response.status_code >= 400:
            logger.error("%s API error %d: %s", self.name, response.status_code, response.text[:500])
            raise ServiceUnavailableError(f"{self.name} API error: {response.status_code}")
        return response

    def complete(
        self,
        messages: list[dict[str, Any]],
        model: str,
        max_tokens: int = 1000,
        temperature: float = 0.7,
    ) -> str | None:
        """Send a chat completion request and return the first choice's content."""
        self._require_key()
        response = self._post(
            self.api_url,
            json={
                "model": model,
                "messages": messages,
                "max_tokens": max_tokens,
                "temperature": temperature,
            },
        )
        data = response.json()
        choices = data.get("choices") or []
        if not choices:
            return None
        return (choices[0].get("message") or {}).get("content")

    def transcribe(self, audio_base64: str, language: str = "en") -> str:
        """Transcribe base64-encoded webm audio."""
        self._require_key()
        try:
            audio = base64.b64decode(audio_base64, validate=True)
        except ValueError:
            raise BadRequestError("Voice transcription failed", reason="AUDIO_INVALID") from None

        response = self._post(
            self.audio_url,
            files={"file": ("audio.webm", audio, "audio/webm")},
            data={"model": "whisper-1", "language": language},
        )
        return response.json().get("text", "")


_openai_client: CompletionClient | None = None
_deepseek_client: CompletionClient | None = None


def get_openai_client() -> CompletionClient:
    """Get singleton OpenAI client (chat, vision, transcription)."""
    global _openai_client
    if _openai_client is None:
        settings = get_settings()
        _openai_client = CompletionClient(
            "OpenAI",
            settings.OPENAI_API_KEY,
            settings.OPENAI_API_URL,
            settings.PROVIDER_TIMEOUT_SECONDS,
            audio_url=settings.OPENAI_AUDIO_URL,
        )
    return _openai_client


def get_deepseek_client() -> CompletionClient:
    """Get singleton DeepSeek client (structured recommendations)."""
    global _deepseek_client
    if _deepseek_client is None:
        settings = get_settings()
        _deepseek_client = CompletionClient(
            "DeepSeek",
            settings.DEEPSEEK_API_KEY,
            settings.DEEPSEEK_API_URL,
            settings.PROVIDER_TIMEOUT_SECONDS,
        )
    return _deepseek_client
