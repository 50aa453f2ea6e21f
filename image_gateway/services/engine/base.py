from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping

from image_gateway.models import ProcessedImage


class ImageEngine(ABC):
    """Abstract interface for a pixel-level image engine."""

    name: str = "abstract"

    @abstractmethod
    async def process(self, locator: str, operations: Mapping[str, str]) -> ProcessedImage:
        """Load *locator*, apply *operations* and encode the result.

        Returns
        -------
        ProcessedImage
            encoded bytes and the output format tag
        """
