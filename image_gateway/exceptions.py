"""Failure taxonomy of the optimize pipeline.

Every error the pipeline reports is a :class:`PipelineError`. The pipeline
returns these instead of raising them; mapping to HTTP status codes is left to
the handler.
"""
from __future__ import annotations


class PipelineError(Exception):
    """Base class for failures surfaced by the optimize pipeline."""

    summary = "Image processing failed"

    def __init__(self, message: str, *, stack: str | None = None):
        super().__init__(message)
        self.message = message
        self.stack = stack


class EmptyPathError(PipelineError):
    """The request carried no usable image path."""

    summary = "Missing image path"

    def __init__(self, message: str = "Missing image path", **kwargs):
        super().__init__(message, **kwargs)


class MalformedEncodingError(PipelineError):
    """Percent-decoding of the image path failed."""


class EngineFailure(PipelineError):
    """The image engine rejected or failed the request."""


class UnsupportedResultTypeError(EngineFailure):
    """The engine returned data that cannot be normalised to bytes."""
