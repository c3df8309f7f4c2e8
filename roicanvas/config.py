from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, Field


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


class Settings(BaseModel):
    # Caller-side gate: the portfolio is computed once this many use cases exist.
    min_use_cases: int = Field(default_factory=lambda: _env_int("ROICANVAS_MIN_USE_CASES", 5))

    llm_provider: str = Field(default_factory=lambda: os.getenv("LLM_PROVIDER", "anthropic"))
    llm_model: str = Field(default_factory=lambda: os.getenv("LLM_MODEL", ""))

    canvas_title: str = Field(
        default_factory=lambda: os.getenv("ROICANVAS_TITLE", "AI ROI & Roadmap Canvas")
    )
    # Download name for canvas documents served over HTTP.
    export_filename: str = Field(
        default_factory=lambda: os.getenv("ROICANVAS_EXPORT_FILENAME", "AI_ROI_Roadmap_Canvas.json")
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
