"""Configuration helpers for the wallpaper service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


DEFAULT_SCENE = (
    "A stylish person wearing a cap, shades, headset, and jacket walks alone on a grassy "
    "field under the moonlight, with a dark forest in the distance."
)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Centralized environment-driven configuration.

    Values are read once when this module is imported; reload the module (as the
    tests do) to pick up environment changes.
    """

    gemini_api_key: Optional[str] = os.getenv("GEMINI_API_KEY")
    gemini_base_url: str = os.getenv(
        "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
    )
    image_model: str = os.getenv("GEMINI_IMAGE_MODEL", "imagen-3.0-generate-002")
    text_model: str = os.getenv("GEMINI_TEXT_MODEL", "gemini-2.5-flash-preview-05-20")
    request_timeout: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "120"))
    default_prompt: str = os.getenv("DEFAULT_PROMPT", DEFAULT_SCENE)
    auto_generate_on_start: bool = _env_flag("AUTO_GENERATE_ON_START", True)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance to avoid repeated environment reads."""

    return Settings()


settings = get_settings()
