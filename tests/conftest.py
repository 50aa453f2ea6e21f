"""Shared fixtures for the gateway test-suite.

The optimize endpoint depends on ``get_engine``; tests swap it for a
recording fake so the pipeline can be exercised without decoding images.
"""
from __future__ import annotations

import io
from typing import Mapping

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from image_gateway.models import ProcessedImage
from image_gateway.services.engine import ImageEngine, get_engine


class RecordingEngine(ImageEngine):
    """Engine double that records calls and returns a canned result."""

    name = "recording"

    def __init__(self, result: ProcessedImage | None = None, error: Exception | None = None):
        self.calls: list[tuple[str, dict[str, str]]] = []
        self.result = result or ProcessedImage(data=b"fake-image-bytes", format=None)
        self.error = error

    async def process(self, locator: str, operations: Mapping[str, str]) -> ProcessedImage:
        self.calls.append((locator, dict(operations)))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def engine():
    return RecordingEngine()


@pytest.fixture
def client(engine):
    from image_gateway.main import app

    app.dependency_overrides[get_engine] = lambda: engine
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_image(path, size=(100, 50), color=(255, 0, 0), mode="RGB", format="PNG"):
    """Write a solid-colour image to *path* and return its bytes."""
    img = Image.new(mode, size, color)
    buf = io.BytesIO()
    img.save(buf, format=format)
    path.write_bytes(buf.getvalue())
    return buf.getvalue()
