"""Media-type helpers shared by the pipeline and the engine."""
from __future__ import annotations

import base64
from typing import Any

from image_gateway.exceptions import UnsupportedResultTypeError

FALLBACK_FORMAT = "webp"


def resolve_content_type(format_tag: str) -> str:
    """Map a canonical format tag (``jpeg``, ``png``, ``webp``...) to its MIME type.

    Unknown tags still produce ``image/<tag>``.
    """
    return f"image/{format_tag}"


def ensure_bytes(data: Any) -> bytes:
    if isinstance(data, bytes):
        return data
    if isinstance(data, (bytearray, memoryview)):
        return bytes(data)
    raise UnsupportedResultTypeError("Unsupported data type for image processing")


def encode_data_url(data: bytes, mime_type: str) -> str:
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{payload}"
