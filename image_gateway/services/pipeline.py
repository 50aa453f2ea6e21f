"""Request-to-operation pipeline behind ``GET /optimize/...``.

:func:`run_pipeline` never raises for per-request failures. It returns either
a response envelope or a :class:`PipelineError`, and the HTTP handler decides
status codes from the error type.
"""
from __future__ import annotations

import logging
import traceback
from typing import Iterable, Sequence

from image_gateway.exceptions import EmptyPathError, EngineFailure, PipelineError
from image_gateway.models import ImageEnvelope, PlaceholderEnvelope, ResponseEnvelope
from image_gateway.services.engine import ImageEngine
from image_gateway.services.operations import build_operations, first_values, has_operation_params
from image_gateway.services.paths import parse_image_path
from image_gateway.services.placeholder import (
    PLACEHOLDER_PARAM,
    build_blur_placeholder_operations,
    build_placeholder_descriptor,
    is_blur_placeholder,
    wants_json,
)
from image_gateway.utils.media import FALLBACK_FORMAT, ensure_bytes, resolve_content_type

logger = logging.getLogger(__name__)


async def run_pipeline(
    segments: Sequence[str],
    query: Iterable[tuple[str, str]],
    request_url: str,
    engine: ImageEngine,
) -> ResponseEnvelope | PipelineError:
    lookup = first_values(query)
    image_path: str | None = None

    if not segments:
        logger.info("Rejected optimize request without image path")
        return EmptyPathError()

    try:
        image_path = parse_image_path(segments)
        if not image_path:
            raise EmptyPathError()

        if is_blur_placeholder(lookup):
            return await _render_placeholder(image_path, lookup, request_url, engine)

        if not has_operation_params(lookup):
            result = await engine.process(image_path, {})
            return ImageEnvelope(
                data=ensure_bytes(result.data),
                content_type=resolve_content_type(result.format or FALLBACK_FORMAT),
            )

        operations = build_operations(lookup)
        result = await engine.process(image_path, operations)
        return ImageEnvelope(
            data=ensure_bytes(result.data),
            content_type=resolve_content_type(
                result.format or operations.get("format") or FALLBACK_FORMAT
            ),
        )
    except Exception as exc:
        error = _as_pipeline_error(exc)
        _log_failure(error, image_path, lookup.get(PLACEHOLDER_PARAM))
        return error


async def _render_placeholder(
    image_path: str,
    lookup: dict[str, str],
    request_url: str,
    engine: ImageEngine,
) -> ResponseEnvelope:
    plan = build_blur_placeholder_operations(lookup)
    result = await engine.process(image_path, plan.as_operations())
    data = ensure_bytes(result.data)
    mime_type = resolve_content_type(result.format or plan.format)

    if wants_json(lookup):
        return PlaceholderEnvelope(
            descriptor=build_placeholder_descriptor(plan, data, mime_type, request_url)
        )
    return ImageEnvelope(data=data, content_type=mime_type)


def _as_pipeline_error(exc: Exception) -> PipelineError:
    stack = "".join(traceback.format_exception(exc))
    if isinstance(exc, PipelineError):
        exc.stack = exc.stack or stack
        return exc
    error = EngineFailure(str(exc), stack=stack)
    error.__cause__ = exc
    return error


def _log_failure(error: PipelineError, image_path: str | None, placeholder_type: str | None) -> None:
    logger.error(
        "Image processing error: %s",
        error.message,
        exc_info=error,
        extra={
            "diagnostic": {
                "message": error.message,
                "stack": error.stack,
                "imagePath": image_path,
                "placeholderType": placeholder_type,
            }
        },
    )
