"""Pillow implementation of the image engine.

Operation values arrive as untyped strings straight from the query string.
They are parsed here and a malformed value raises ``ValueError``, which the
pipeline reports as an engine failure.
"""
from __future__ import annotations

import asyncio
import io
import logging
import re
from typing import Callable, Mapping

from PIL import Image, ImageChops, ImageColor, ImageFilter, ImageOps, ImageSequence

from image_gateway.models import ProcessedImage

from .base import ImageEngine
from .sources import SourceLoader

logger = logging.getLogger(__name__)

Operations = Mapping[str, str]

_FORMAT_ALIASES = {"jpg": "jpeg", "tif": "tiff"}
_PIL_FORMATS = {
    "jpeg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
    "avif": "AVIF",
    "gif": "GIF",
    "tiff": "TIFF",
}
_ALPHA_FORMATS = {"png", "webp", "avif", "gif", "tiff"}
_QUALITY_FORMATS = {"jpeg", "webp", "avif"}
_ANIMATED_FORMATS = {"webp", "gif"}

_KERNELS = {
    "nearest": Image.Resampling.NEAREST,
    "linear": Image.Resampling.BILINEAR,
    "cubic": Image.Resampling.BICUBIC,
    "mitchell": Image.Resampling.BICUBIC,
    "lanczos2": Image.Resampling.LANCZOS,
    "lanczos3": Image.Resampling.LANCZOS,
}
_DEFAULT_KERNEL = Image.Resampling.LANCZOS

_FITS = {"cover", "contain", "fill", "inside", "outside"}
_WORKING_MODES = ("L", "LA", "RGB", "RGBA")

# (x, y) centering for ImageOps.fit / ImageOps.pad
_POSITIONS = {
    "center": (0.5, 0.5),
    "centre": (0.5, 0.5),
    "entropy": (0.5, 0.5),
    "attention": (0.5, 0.5),
    "top": (0.5, 0.0),
    "north": (0.5, 0.0),
    "bottom": (0.5, 1.0),
    "south": (0.5, 1.0),
    "left": (0.0, 0.5),
    "west": (0.0, 0.5),
    "right": (1.0, 0.5),
    "east": (1.0, 0.5),
    "northwest": (0.0, 0.0),
    "northeast": (1.0, 0.0),
    "southwest": (0.0, 1.0),
    "southeast": (1.0, 1.0),
}

_DEFAULT_TRIM_THRESHOLD = 10
_PAIR_SPLIT_RE = re.compile(r"[x_,]")
_LIST_SPLIT_RE = re.compile(r"[_,]")
_HEX_COLOR_RE = re.compile(r"^(?:[0-9a-fA-F]{3,4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


class PillowEngine(ImageEngine):
    name = "pillow"

    def __init__(self, loader: SourceLoader | None = None) -> None:
        self._loader = loader or SourceLoader.from_settings()

    async def process(self, locator: str, operations: Operations) -> ProcessedImage:
        source = await self._loader.load(locator)
        data, format_tag = await asyncio.to_thread(self.transform, source, dict(operations))
        logger.debug("Processed %s -> %s (%d bytes)", locator, format_tag, len(data))
        return ProcessedImage(data=data, format=format_tag)

    # ------------------------------------------------------------------
    # Transform
    # ------------------------------------------------------------------

    def transform(self, source: bytes, operations: Operations) -> tuple[bytes, str]:
        """Decode *source*, apply *operations* and return ``(encoded, format_tag)``."""

        with Image.open(io.BytesIO(source)) as img:
            source_format = normalize_format(img.format or "webp")
            format_tag = normalize_format(operations.get("format") or source_format)
            if format_tag not in _PIL_FORMATS:
                raise ValueError(f"Unsupported output format: {format_tag}")

            save_kwargs: dict = {"format": _PIL_FORMATS[format_tag]}
            if "quality" in operations and format_tag in _QUALITY_FORMATS:
                save_kwargs["quality"] = _parse_quality(operations["quality"])

            animate = (
                "animated" in operations
                and getattr(img, "n_frames", 1) > 1
                and format_tag in _ANIMATED_FORMATS
            )
            if animate:
                frames = [
                    _prepare_for_format(apply_operations(frame.copy(), operations), format_tag, operations)
                    for frame in ImageSequence.Iterator(img)
                ]
                save_kwargs.update(save_all=True, append_images=frames[1:], loop=img.info.get("loop", 0))
                if "duration" in img.info:
                    save_kwargs["duration"] = img.info["duration"]
                output = frames[0]
            else:
                frame = ImageOps.exif_transpose(img)
                output = _prepare_for_format(apply_operations(frame, operations), format_tag, operations)

            buffer = io.BytesIO()
            output.save(buffer, **save_kwargs)
            return buffer.getvalue(), format_tag


def normalize_format(tag: str) -> str:
    tag = tag.lower()
    return _FORMAT_ALIASES.get(tag, tag)


def apply_operations(img: Image.Image, ops: Operations) -> Image.Image:
    """Apply the geometric and colour operations in a fixed order."""

    if img.mode not in _WORKING_MODES:
        img = img.convert("RGBA" if _has_alpha(img) else "RGB")
    background = _parse_color(ops["background"]) if "background" in ops else None

    if "extract" in ops:
        img = _extract(img, ops["extract"])
    if "trim" in ops:
        img = _trim(img, ops["trim"])
    if "rotate" in ops:
        angle = _parse_float(ops["rotate"], "rotate")
        img = img.rotate(-angle, expand=True, fillcolor=_color_for(img, background))
    if "flip" in ops:
        img = ImageOps.flip(img)
    if "flop" in ops:
        img = ImageOps.mirror(img)

    img = _resize(img, ops, background)

    if "extend" in ops:
        img = _extend(img, ops["extend"], background)
    if "blur" in ops:
        img = img.filter(ImageFilter.GaussianBlur(radius=_parse_float(ops["blur"], "blur")))
    if "sharpen" in ops:
        img = img.filter(ImageFilter.UnsharpMask(radius=_parse_float(ops["sharpen"], "sharpen")))
    if "median" in ops:
        size = _parse_int(ops["median"], "median")
        img = img.filter(ImageFilter.MedianFilter(size if size % 2 else size + 1))
    if "gamma" in ops:
        gamma = _parse_float(ops["gamma"], "gamma")
        if gamma <= 0:
            raise ValueError(f"Invalid gamma: {ops['gamma']!r}")
        img = _map_color_bands(img, lambda p: round(255 * (p / 255) ** (1 / gamma)))
    if "negate" in ops:
        img = _map_color_bands(img, lambda p: 255 - p)
    if "normalize" in ops:
        img = _normalize(img)
    if "grayscale" in ops:
        img = img.convert("LA" if _has_alpha(img) else "L")
    if "threshold" in ops:
        level = _parse_int(ops["threshold"], "threshold")
        img = img.convert("L").point(lambda p: 255 if p >= level else 0)
    if "tint" in ops:
        img = _tint(img, _parse_color(ops["tint"]))
    return img


# ----------------------------------------------------------------------
# Operation helpers
# ----------------------------------------------------------------------


def _resize(img: Image.Image, ops: Operations, background) -> Image.Image:
    width = _parse_int(ops["width"], "width") if "width" in ops else None
    height = _parse_int(ops["height"], "height") if "height" in ops else None
    if "resize" in ops:
        width, height = _parse_pair(ops["resize"], "resize")
    if width is None and height is None:
        return img

    fit = ops.get("fit", "cover")
    if fit not in _FITS:
        raise ValueError(f"Invalid fit: {fit!r}")
    position = ops.get("position", "center")
    if position not in _POSITIONS:
        raise ValueError(f"Invalid position: {position!r}")
    centering = _POSITIONS[position]
    kernel = _KERNELS.get(ops.get("kernel", ""), _DEFAULT_KERNEL)
    if "kernel" in ops and ops["kernel"] not in _KERNELS:
        raise ValueError(f"Invalid kernel: {ops['kernel']!r}")

    src_w, src_h = img.size
    if width is None:
        width = max(1, round(src_w * height / src_h))
    elif height is None:
        height = max(1, round(src_h * width / src_w))
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid dimensions: {width}x{height}")

    if "enlarge" not in ops and width >= src_w and height >= src_h:
        return img

    if fit == "fill":
        return img.resize((width, height), kernel)
    if fit == "inside":
        return ImageOps.contain(img, (width, height), kernel)
    if fit == "outside":
        scale = max(width / src_w, height / src_h)
        return img.resize((max(1, round(src_w * scale)), max(1, round(src_h * scale))), kernel)
    if fit == "contain":
        return ImageOps.pad(
            img, (width, height), kernel, color=_color_for(img, background), centering=centering
        )
    return ImageOps.fit(img, (width, height), kernel, centering=centering)


def _extract(img: Image.Image, value: str) -> Image.Image:
    left, top, width, height = _parse_ints(value, "extract", 4)
    if left < 0 or top < 0 or width <= 0 or height <= 0:
        raise ValueError(f"Invalid extract: {value!r}")
    if left + width > img.width or top + height > img.height:
        raise ValueError("Extract area is outside the image")
    return img.crop((left, top, left + width, top + height))


def _trim(img: Image.Image, value: str) -> Image.Image:
    threshold = _DEFAULT_TRIM_THRESHOLD if value == "true" else _parse_float(value, "trim")
    rgb = img.convert("RGB")
    corner = Image.new("RGB", rgb.size, rgb.getpixel((0, 0)))
    mask = ImageChops.difference(rgb, corner).convert("L").point(lambda p: 255 if p > threshold else 0)
    bbox = mask.getbbox()
    return img.crop(bbox) if bbox else img


def _extend(img: Image.Image, value: str, background) -> Image.Image:
    parts = _parse_ints(value, "extend")
    if len(parts) == 1:
        top = right = bottom = left = parts[0]
    elif len(parts) == 4:
        top, right, bottom, left = parts
    else:
        raise ValueError(f"Invalid extend: {value!r}")
    if min(top, right, bottom, left) < 0:
        raise ValueError(f"Invalid extend: {value!r}")
    fill = _color_for(img, background if background is not None else (0, 0, 0, 0))
    return ImageOps.expand(img, border=(left, top, right, bottom), fill=fill)


def _normalize(img: Image.Image) -> Image.Image:
    if img.mode in ("RGBA", "LA"):
        *color, alpha = img.split()
        base = Image.merge("RGB" if img.mode == "RGBA" else "L", color)
        base = ImageOps.autocontrast(base)
        return Image.merge(img.mode, (*base.split(), alpha))
    return ImageOps.autocontrast(img)


def _tint(img: Image.Image, color) -> Image.Image:
    alpha = img.getchannel("A") if _has_alpha(img) else None
    gray = img.convert("L")
    tinted = ImageOps.colorize(gray, black=(0, 0, 0), white=color[:3], mid=color[:3])
    if alpha is not None:
        tinted.putalpha(alpha)
    return tinted


def _map_color_bands(img: Image.Image, fn: Callable[[int], int]) -> Image.Image:
    """Apply a per-value function to every band except alpha."""

    lut = [max(0, min(255, fn(i))) for i in range(256)]
    bands = img.split()
    mapped = [band.point(lut) if name != "A" else band for name, band in zip(img.getbands(), bands)]
    return Image.merge(img.mode, mapped)


def _prepare_for_format(img: Image.Image, format_tag: str, ops: Operations) -> Image.Image:
    """Convert the frame to a mode the target encoder accepts."""

    if format_tag in _ALPHA_FORMATS:
        if img.mode not in ("RGB", "RGBA", "L", "LA", "P"):
            return img.convert("RGBA" if _has_alpha(img) else "RGB")
        return img

    if _has_alpha(img):
        background = _parse_color(ops["background"]) if "background" in ops else (255, 255, 255)
        canvas = Image.new("RGB", img.size, background[:3])
        rgba = img.convert("RGBA")
        canvas.paste(rgba, mask=rgba.getchannel("A"))
        return canvas
    if img.mode not in ("RGB", "L"):
        return img.convert("RGB")
    return img


def _color_for(img: Image.Image, rgba: tuple[int, ...] | None):
    """Express an RGBA colour in the mode of *img*."""

    if rgba is None:
        return None
    if img.mode == "RGBA":
        return rgba
    if img.mode == "RGB":
        return rgba[:3]
    luma = round(0.299 * rgba[0] + 0.587 * rgba[1] + 0.114 * rgba[2])
    return (luma, rgba[3]) if img.mode == "LA" else luma


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)


# ----------------------------------------------------------------------
# Value parsing
# ----------------------------------------------------------------------


def _parse_int(value: str, name: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"Invalid {name}: {value!r}") from exc


def _parse_float(value: str, name: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"Invalid {name}: {value!r}") from exc


def _parse_quality(value: str) -> int:
    quality = _parse_int(value, "quality")
    if not 1 <= quality <= 100:
        raise ValueError(f"Invalid quality: {value!r}")
    return quality


def _parse_pair(value: str, name: str) -> tuple[int, int]:
    parts = _PAIR_SPLIT_RE.split(value)
    if len(parts) != 2:
        raise ValueError(f"Invalid {name}: {value!r}")
    return _parse_int(parts[0], name), _parse_int(parts[1], name)


def _parse_ints(value: str, name: str, count: int | None = None) -> list[int]:
    parts = [_parse_int(p, name) for p in _LIST_SPLIT_RE.split(value)]
    if count is not None and len(parts) != count:
        raise ValueError(f"Invalid {name}: {value!r}")
    return parts


def _parse_color(value: str) -> tuple[int, ...]:
    spec = f"#{value}" if _HEX_COLOR_RE.match(value) else value
    return ImageColor.getcolor(spec, "RGBA")
