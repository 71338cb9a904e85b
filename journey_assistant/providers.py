"""HTTP clients for the remote multimodal analysis models."""

from __future__ import annotations

import json
import logging
import socket
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Protocol

from .config import AssistantConfig
from .errors import BackendError
from .models import ImagePayload

logger = logging.getLogger(__name__)

Opener = Callable[..., Any]

OPENAI_URL = "https://api.openai.com/v1"
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta"


class AnalysisBackend(Protocol):
    """Anything that turns a prompt plus images into free-form model text."""

    name: str

    def complete(self, system_prompt: str, user_prompt: str, images: List[ImagePayload]) -> str:
        ...

    def test_connection(self) -> bool:
        ...


class _HTTPBackend(ABC):
    name = "http"

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        timeout: float = 60.0,
        max_tokens: int = 10000,
        temperature: float = 0.1,
        opener: Optional[Opener] = None,
    ) -> None:
        if not api_key:
            raise ValueError(f"{self.name} backend requires an API key")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._open = opener or urllib.request.urlopen

    def _request(
        self,
        url: str,
        *,
        payload: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        request = urllib.request.Request(
            url,
            data=data,
            headers={"Content-Type": "application/json", **(headers or {})},
            method="POST" if data is not None else "GET",
        )
        try:
            with self._open(request, timeout=self.timeout) as response:
                body = response.read()
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", "replace")[:200] if exc.fp else str(exc.reason)
            raise BackendError(self.name, detail or str(exc.reason), status=exc.code) from exc
        except urllib.error.URLError as exc:
            if isinstance(exc.reason, (socket.timeout, TimeoutError)):
                raise BackendError(self.name, f"timed out after {self.timeout:g}s") from exc
            raise BackendError(self.name, f"network error: {exc.reason}") from exc
        except (socket.timeout, TimeoutError) as exc:
            raise BackendError(self.name, f"timed out after {self.timeout:g}s") from exc
        except OSError as exc:
            raise BackendError(self.name, f"connection failed: {exc}") from exc
        try:
            decoded = json.loads(body)
        except ValueError as exc:
            raise BackendError(self.name, "response body is not JSON") from exc
        if not isinstance(decoded, dict):
            raise BackendError(self.name, "response body is not a JSON object")
        return decoded

    def test_connection(self) -> bool:
        try:
            self._probe()
        except BackendError as exc:
            logger.warning("Connection test failed for %s: %s", self.name, exc)
            return False
        return True

    @abstractmethod
    def complete(self, system_prompt: str, user_prompt: str, images: List[ImagePayload]) -> str:
        ...

    @abstractmethod
    def _probe(self) -> None:
        """Issue the cheapest authenticated request the provider offers."""


class OpenAIBackend(_HTTPBackend):
    """Chat completions endpoint with inline image URLs."""

    name = "openai"

    def __init__(self, api_key: str, model: str = "gpt-4o", **kwargs: Any) -> None:
        super().__init__(api_key, model, **kwargs)

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def complete(self, system_prompt: str, user_prompt: str, images: List[ImagePayload]) -> str:
        content: List[Dict[str, Any]] = [{"type": "text", "text": user_prompt}]
        for image in images:
            content.append({"type": "image_url", "image_url": {"url": image.data_url(), "detail": "high"}})
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": content},
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        response = self._request(f"{OPENAI_URL}/chat/completions", payload=payload, headers=self._headers())
        try:
            text = response["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise BackendError(self.name, "response has no message content") from exc
        if not isinstance(text, str):
            raise BackendError(self.name, "message content is not text")
        return text

    def _probe(self) -> None:
        self._request(f"{OPENAI_URL}/models", headers=self._headers())


class GeminiBackend(_HTTPBackend):
    """``generateContent`` REST endpoint with inline image data."""

    name = "gemini"

    def __init__(self, api_key: str, model: str = "gemini-1.5-flash", **kwargs: Any) -> None:
        super().__init__(api_key, model, **kwargs)

    def _url(self, path: str) -> str:
        return f"{GEMINI_URL}/{path}?{urllib.parse.urlencode({'key': self.api_key})}"

    def complete(self, system_prompt: str, user_prompt: str, images: List[ImagePayload]) -> str:
        parts: List[Dict[str, Any]] = [{"text": f"{system_prompt}\n\n{user_prompt}"}]
        for image in images:
            parts.append({"inline_data": {"mime_type": image.mime_type, "data": image.to_base64()}})
        payload = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {"temperature": self.temperature, "maxOutputTokens": self.max_tokens},
        }
        response = self._request(self._url(f"models/{self.model}:generateContent"), payload=payload)
        try:
            candidate_parts = response["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as exc:
            raise BackendError(self.name, "response has no candidates") from exc
        text = "".join(part.get("text", "") for part in candidate_parts if isinstance(part, dict))
        if not text:
            raise BackendError(self.name, "candidate contains no text")
        return text

    def _probe(self) -> None:
        self._request(self._url("models"))


_BACKENDS = {"openai": OpenAIBackend, "gemini": GeminiBackend}


def select_backend(
    config: AssistantConfig,
    provider: Optional[str] = None,
    *,
    opener: Optional[Opener] = None,
) -> AnalysisBackend | None:
    """Build the configured backend, or ``None`` when it has no API key."""

    provider = (provider or config.provider).lower()
    backend_cls = _BACKENDS.get(provider)
    if backend_cls is None:
        logger.warning("Unknown analysis provider %s", provider)
        return None
    api_key = config.api_key(provider)
    if not api_key:
        logger.info("No API key configured for %s", provider)
        return None
    model = config.model if provider == config.provider and config.model else None
    kwargs: Dict[str, Any] = {
        "timeout": config.timeout,
        "max_tokens": config.max_tokens,
        "temperature": config.temperature,
        "opener": opener,
    }
    if model:
        return backend_cls(api_key, model, **kwargs)
    return backend_cls(api_key, **kwargs)
