from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class ProcessedImage(BaseModel):
    """Engine output: encoded bytes plus the format tag, when the engine knows it."""

    model_config = ConfigDict(frozen=True)

    data: Any
    format: str | None = None
