from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PlaceholderPlan(BaseModel):
    """Reduced operation set for blur previews."""

    model_config = ConfigDict(frozen=True)

    width: str = "32"
    quality: str = "50"
    blur: str = "3"
    format: str = "webp"

    def as_operations(self) -> dict[str, str]:
        return self.model_dump()


class PlaceholderDescriptor(BaseModel):
    """JSON body returned for ``placeholder=blur&format=json``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: str = "blur"
    placeholder_data_url: str = Field(..., alias="placeholderDataUrl")
    optimized_image_url: str = Field(..., alias="optimizedImageUrl")
    placeholder_width: int | None = Field(None, alias="placeholderWidth")
    placeholder_quality: int | None = Field(None, alias="placeholderQuality")
    blur_sigma: int | None = Field(None, alias="blurSigma")
