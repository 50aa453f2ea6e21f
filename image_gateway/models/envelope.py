from __future__ import annotations

from typing import Union

from pydantic import BaseModel, ConfigDict

from .placeholder import PlaceholderDescriptor


class ImageEnvelope(BaseModel):
    """Binary image ready to be sent back with cache headers."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    content_type: str


class PlaceholderEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True)

    descriptor: PlaceholderDescriptor


ResponseEnvelope = Union[ImageEnvelope, PlaceholderEnvelope]
