"""Blur placeholder planning and the JSON descriptor built from its result."""
from __future__ import annotations

import re
from typing import Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from image_gateway.models import PlaceholderDescriptor, PlaceholderPlan
from image_gateway.services.operations import DEFAULT_FORMAT
from image_gateway.utils.media import encode_data_url

PLACEHOLDER_PARAM = "placeholder"
PLACEHOLDER_TYPE_BLUR = "blur"
PLACEHOLDER_WIDTH_PARAM = "placeholderWidth"
PLACEHOLDER_QUALITY_PARAM = "placeholderQuality"
PLACEHOLDER_BLUR_PARAM = "placeholderBlur"

DEFAULT_PLACEHOLDER_WIDTH = "32"
DEFAULT_PLACEHOLDER_QUALITY = "50"
DEFAULT_PLACEHOLDER_BLUR = "3"

PLACEHOLDER_ONLY_PARAMS: tuple[str, ...] = (
    PLACEHOLDER_PARAM,
    PLACEHOLDER_WIDTH_PARAM,
    PLACEHOLDER_QUALITY_PARAM,
    PLACEHOLDER_BLUR_PARAM,
)

JSON_FORMAT = "json"

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def is_blur_placeholder(query: Mapping[str, str]) -> bool:
    return query.get(PLACEHOLDER_PARAM) == PLACEHOLDER_TYPE_BLUR


def wants_json(query: Mapping[str, str]) -> bool:
    return query.get("format") == JSON_FORMAT


def build_blur_placeholder_operations(query: Mapping[str, str]) -> PlaceholderPlan:
    """Build the placeholder plan; empty or missing values fall back to defaults.

    The output format is always webp.
    """
    return PlaceholderPlan(
        width=query.get(PLACEHOLDER_WIDTH_PARAM) or DEFAULT_PLACEHOLDER_WIDTH,
        quality=query.get(PLACEHOLDER_QUALITY_PARAM) or DEFAULT_PLACEHOLDER_QUALITY,
        blur=query.get(PLACEHOLDER_BLUR_PARAM) or DEFAULT_PLACEHOLDER_BLUR,
        format=DEFAULT_FORMAT,
    )


def remove_placeholder_params(url: str) -> str:
    """Drop placeholder-only query parameters, keeping the path and every other parameter."""
    parts = urlsplit(url)
    kept = [
        (name, value)
        for name, value in parse_qsl(parts.query, keep_blank_values=True)
        if name not in PLACEHOLDER_ONLY_PARAMS
    ]
    return urlunsplit(parts._replace(query=urlencode(kept)))


def parse_int(value: str) -> int | None:
    """Parse a leading integer the way ``parseInt(value, 10)`` does; None stands in for NaN."""
    match = _LEADING_INT_RE.match(value)
    if match is None:
        return None
    return int(match.group(1))


def build_placeholder_descriptor(
    plan: PlaceholderPlan,
    data: bytes,
    mime_type: str,
    request_url: str,
) -> PlaceholderDescriptor:
    return PlaceholderDescriptor(
        type=PLACEHOLDER_TYPE_BLUR,
        placeholderDataUrl=encode_data_url(data, mime_type),
        optimizedImageUrl=remove_placeholder_params(request_url),
        placeholderWidth=parse_int(plan.width),
        placeholderQuality=parse_int(plan.quality),
        blurSigma=parse_int(plan.blur),
    )
