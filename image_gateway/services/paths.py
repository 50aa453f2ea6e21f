"""Resolve the optimize route tail into an image locator.

The router hands over the tail of ``/optimize/...`` still percent-encoded.
Proxies and URL normalisers tend to collapse ``https://host`` into
``https:/host``, so the scheme slash is restored after decoding.
"""
from __future__ import annotations

import re
from typing import Sequence
from urllib.parse import unquote_to_bytes

from image_gateway.exceptions import EmptyPathError, MalformedEncodingError

NOOP_MARKER = "_/"

_COLLAPSED_PROTOCOL_RE = re.compile(r"^(https?:/)([^/])")
_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def restore_protocol_slashes(path: str) -> str:
    """Turn a leading ``http:/x`` or ``https:/x`` back into ``http(s)://x``.

    Only the start of the string is touched; ``:/`` elsewhere is left alone.
    """
    return _COLLAPSED_PROTOCOL_RE.sub(r"\1/\2", path, count=1)


def decode_uri_component(value: str) -> str:
    """Percent-decode *value* strictly.

    Raises :class:`MalformedEncodingError` for a ``%`` that does not start a
    two-digit hex escape, or for escapes that do not decode as UTF-8.
    """
    bad = _BAD_ESCAPE_RE.search(value)
    if bad is not None:
        raise MalformedEncodingError(f"URI malformed: invalid escape at position {bad.start()}")
    try:
        return unquote_to_bytes(value).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedEncodingError(f"URI malformed: {exc}") from exc


def split_route_path(raw: str) -> list[str]:
    """Split the raw route tail into non-empty segments."""
    return [segment for segment in raw.split("/") if segment]


def parse_image_path(segments: Sequence[str]) -> str:
    if not segments:
        raise EmptyPathError()

    image_path = "/".join(segments)

    if image_path.startswith(NOOP_MARKER):
        image_path = image_path[len(NOOP_MARKER):]

    image_path = decode_uri_component(image_path)
    return restore_protocol_slashes(image_path)
