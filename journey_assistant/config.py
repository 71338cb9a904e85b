"""Runtime configuration for Journey Assistant."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import dotenv_values

PROVIDERS = ("openai", "gemini")
DEFAULT_MODELS = {"openai": "gpt-4o", "gemini": "gemini-1.5-flash"}

_API_KEY_VARIABLES = {
    "openai": ("OPENAI_API_KEY", "VITE_OPENAI_API_KEY"),
    "gemini": ("GEMINI_API_KEY", "VITE_GEMINI_API_KEY"),
}
_TRUTHY = {"1", "true", "yes", "on"}

DEFAULT_DB_PATH = "~/.journey_assistant/learning.db"


def read_env_file(path: str | Path) -> Dict[str, str]:
    """Values from a dotenv file; keys declared without a value are dropped."""

    env_path = Path(path).expanduser()
    if not env_path.is_file():
        raise FileNotFoundError(f"env file not found: {env_path}")
    return {key: value for key, value in dotenv_values(env_path).items() if value is not None}


@dataclass(slots=True)
class AssistantConfig:
    provider: str = "openai"
    model: Optional[str] = None
    api_keys: Dict[str, str] = field(default_factory=dict)
    timeout: float = 60.0
    db_path: str = DEFAULT_DB_PATH
    enhance_results: bool = True
    max_tokens: int = 10000
    temperature: float = 0.1

    def __post_init__(self) -> None:
        self.provider = self.provider.strip().lower()
        if self.provider not in PROVIDERS:
            raise ValueError(f"Unsupported provider {self.provider!r}; expected one of {', '.join(PROVIDERS)}")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")

    @property
    def resolved_model(self) -> str:
        return self.model or DEFAULT_MODELS[self.provider]

    def api_key(self, provider: Optional[str] = None) -> str:
        return self.api_keys.get(provider or self.provider, "")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AssistantConfig":
        env = os.environ if environ is None else environ
        api_keys: Dict[str, str] = {}
        for provider, names in _API_KEY_VARIABLES.items():
            for name in names:
                value = (env.get(name) or "").strip()
                if value:
                    api_keys[provider] = value
                    break
        timeout = env.get("JOURNEY_ASSISTANT_TIMEOUT")
        enhance = env.get("JOURNEY_ASSISTANT_ENHANCE")
        return cls(
            provider=env.get("JOURNEY_ASSISTANT_PROVIDER") or "openai",
            model=env.get("JOURNEY_ASSISTANT_MODEL") or None,
            api_keys=api_keys,
            timeout=float(timeout) if timeout else 60.0,
            db_path=env.get("JOURNEY_ASSISTANT_DB") or DEFAULT_DB_PATH,
            enhance_results=enhance.strip().lower() in _TRUTHY if enhance else True,
        )

    @classmethod
    def from_env_file(cls, path: str | Path, environ: Optional[Mapping[str, str]] = None) -> "AssistantConfig":
        """Load settings from a dotenv file; process environment wins on conflicts."""

        merged = read_env_file(path)
        merged.update(os.environ if environ is None else environ)
        return cls.from_env(merged)
