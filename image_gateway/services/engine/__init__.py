from __future__ import annotations

from .base import ImageEngine
from .registry import get_engine
from .sources import ImageSourceError, SourceLoader

__all__ = [
    "ImageEngine",
    "ImageSourceError",
    "SourceLoader",
    "get_engine",
]
