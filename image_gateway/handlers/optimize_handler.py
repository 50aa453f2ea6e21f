"""HTTP adapter for the image optimize endpoint.

    GET /optimize/{path...}?w=800&q=80
    GET /optimize/{path...}?placeholder=blur[&format=json]

The tail is read from the raw request path so that percent-escapes are
decoded exactly once, by the pipeline.
"""
from __future__ import annotations

import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from image_gateway.exceptions import EmptyPathError, PipelineError
from image_gateway.models import ImageEnvelope, ResponseEnvelope
from image_gateway.services.engine import ImageEngine, get_engine
from image_gateway.services.paths import split_route_path
from image_gateway.services.pipeline import run_pipeline

router = APIRouter()
logger = logging.getLogger(__name__)

ROUTE_PREFIX = "/optimize"
CACHE_CONTROL = "public, max-age=60, stale-while-revalidate=60"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def route_tail(request: Request) -> str:
    """Return the still-encoded part of the path after ``/optimize``."""

    raw_path = request.scope.get("raw_path")
    if raw_path:
        raw = raw_path.decode("latin-1")
        index = raw.find(ROUTE_PREFIX)
        if index != -1:
            return raw[index + len(ROUTE_PREFIX):]
    return quote(request.path_params.get("path", ""), safe="/:")


def request_url(request: Request) -> str:
    """Return the request URL with its path exactly as the client encoded it."""

    raw_path = request.scope.get("raw_path")
    if not raw_path:
        return str(request.url)
    return str(request.url.replace(path=raw_path.decode("latin-1")))


def to_response(outcome: ResponseEnvelope | PipelineError) -> Response:
    if isinstance(outcome, EmptyPathError):
        return JSONResponse({"error": outcome.summary}, status_code=400)
    if isinstance(outcome, PipelineError):
        return JSONResponse(
            {"error": outcome.summary, "details": outcome.message},
            status_code=500,
        )
    if isinstance(outcome, ImageEnvelope):
        return Response(
            content=outcome.data,
            status_code=200,
            media_type=outcome.content_type,
            headers={"Cache-Control": CACHE_CONTROL},
        )
    return JSONResponse(outcome.descriptor.model_dump(by_alias=True), status_code=200)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/optimize")
@router.get("/optimize/{path:path}")
async def optimize(request: Request, engine: ImageEngine = Depends(get_engine)) -> Response:
    segments = split_route_path(route_tail(request))
    outcome = await run_pipeline(
        segments,
        request.query_params.multi_items(),
        request_url(request),
        engine,
    )
    return to_response(outcome)
