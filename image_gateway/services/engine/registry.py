from __future__ import annotations

from functools import lru_cache

from image_gateway.config import get_settings

from .base import ImageEngine
from .pillow_engine import PillowEngine

_ENGINES: dict[str, type[ImageEngine]] = {
    "pillow": PillowEngine,
}


@lru_cache()
def get_engine() -> ImageEngine:
    settings = get_settings()
    engine_key = settings.image_engine.lower()
    if engine_key not in _ENGINES:
        raise ValueError(f"Unsupported image engine: {engine_key}")
    return _ENGINES[engine_key]()
