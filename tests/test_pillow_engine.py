"""PillowEngine and SourceLoader against real images written to tmp_path."""
import asyncio
import io

import httpx
import pytest
from PIL import Image

from conftest import make_image

from image_gateway.services.engine import ImageSourceError, SourceLoader
from image_gateway.services.engine.pillow_engine import PillowEngine


@pytest.fixture
def storage(tmp_path):
    make_image(tmp_path / "wide.png", size=(100, 50))
    return tmp_path


@pytest.fixture
def pillow(storage):
    return PillowEngine(SourceLoader(storage_dir=storage))


def process(engine, locator, ops):
    result = asyncio.run(engine.process(locator, ops))
    return Image.open(io.BytesIO(result.data)), result.format


def test_no_operations_keeps_source_format(pillow):
    img, fmt = process(pillow, "wide.png", {})
    assert fmt == "png"
    assert img.size == (100, 50)


def test_width_keeps_aspect_ratio(pillow):
    img, fmt = process(pillow, "wide.png", {"width": "50", "format": "webp"})
    assert fmt == "webp"
    assert img.format == "WEBP"
    assert img.size == (50, 25)


def test_cover_resize_is_exact(pillow):
    img, _ = process(pillow, "wide.png", {"resize": "40x40", "format": "png"})
    assert img.size == (40, 40)


def test_inside_fit_stays_within_box(pillow):
    img, _ = process(pillow, "wide.png", {"width": "40", "height": "40", "fit": "inside", "format": "png"})
    assert img.size == (40, 20)


def test_contain_pads_to_box(pillow):
    img, _ = process(
        pillow, "wide.png", {"width": "40", "height": "40", "fit": "contain", "background": "fff", "format": "png"}
    )
    assert img.size == (40, 40)
    assert img.convert("RGB").getpixel((20, 0)) == (255, 255, 255)


def test_no_enlargement_without_flag(pillow):
    img, _ = process(pillow, "wide.png", {"width": "400", "format": "png"})
    assert img.size == (100, 50)
    img, _ = process(pillow, "wide.png", {"width": "400", "enlarge": "true", "format": "png"})
    assert img.size == (400, 200)


def test_jpg_alias_and_alpha_flattening(storage, pillow):
    make_image(storage / "alpha.png", size=(10, 10), color=(0, 0, 0, 0), mode="RGBA")
    img, fmt = process(pillow, "alpha.png", {"format": "jpg", "quality": "80"})
    assert fmt == "jpeg"
    assert img.format == "JPEG"
    assert img.mode == "RGB"
    r, g, b = img.getpixel((5, 5))
    assert min(r, g, b) > 240


def test_flop_and_flip(storage, pillow):
    img = Image.new("RGB", (20, 20), (255, 0, 0))
    img.paste((0, 0, 255), (10, 0, 20, 10))
    img.save(storage / "quad.png")

    flopped, _ = process(pillow, "quad.png", {"flop": "true", "format": "png"})
    assert flopped.convert("RGB").getpixel((2, 2)) == (0, 0, 255)

    flipped, _ = process(pillow, "quad.png", {"flip": "true", "format": "png"})
    assert flipped.convert("RGB").getpixel((15, 15)) == (0, 0, 255)


def test_rotate_swaps_dimensions(pillow):
    img, _ = process(pillow, "wide.png", {"rotate": "90", "format": "png"})
    assert img.size == (50, 100)


def test_grayscale_and_negate(pillow):
    gray, _ = process(pillow, "wide.png", {"grayscale": "true", "format": "png"})
    assert gray.mode == "L"

    negated, _ = process(pillow, "wide.png", {"negate": "true", "format": "png"})
    assert negated.convert("RGB").getpixel((0, 0)) == (0, 255, 255)


def test_extract_and_extend(pillow):
    cropped, _ = process(pillow, "wide.png", {"extract": "10_10_20_30", "format": "png"})
    assert cropped.size == (20, 30)

    extended, _ = process(pillow, "wide.png", {"extend": "10", "format": "png"})
    assert extended.size == (120, 70)


def test_trim_removes_uniform_border(storage, pillow):
    img = Image.new("RGB", (40, 40), (255, 255, 255))
    img.paste((0, 0, 0), (10, 10, 30, 30))
    img.save(storage / "framed.png")
    trimmed, _ = process(pillow, "framed.png", {"trim": "10", "format": "png"})
    assert trimmed.size == (20, 20)


def test_blur_placeholder_plan(pillow):
    img, fmt = process(pillow, "wide.png", {"width": "32", "quality": "50", "blur": "3", "format": "webp"})
    assert fmt == "webp"
    assert img.size == (32, 16)


@pytest.mark.parametrize(
    "ops",
    [
        {"width": "abc"},
        {"quality": "0", "format": "webp"},
        {"format": "bmpx"},
        {"width": "10", "fit": "stretch"},
        {"extract": "0_0_500_500"},
        {"background": "not-a-colour"},
    ],
)
def test_invalid_operations_raise_value_error(pillow, ops):
    with pytest.raises(ValueError):
        process(pillow, "wide.png", ops)


def test_local_loader_rejects_escape(storage):
    loader = SourceLoader(storage_dir=storage / "nested")
    with pytest.raises(ImageSourceError):
        asyncio.run(loader.load("../wide.png"))


def test_local_loader_missing_file(storage):
    loader = SourceLoader(storage_dir=storage)
    with pytest.raises(ImageSourceError) as info:
        asyncio.run(loader.load("missing.png"))
    assert info.value.status == 404


def test_remote_loader_fetches_bytes():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "img.example.com"
        return httpx.Response(200, content=b"remote-bytes")

    loader = SourceLoader(storage_dir=".", transport=httpx.MockTransport(handler))
    assert asyncio.run(loader.load("https://img.example.com/a.jpg")) == b"remote-bytes"


def test_remote_loader_upstream_error():
    loader = SourceLoader(
        storage_dir=".", transport=httpx.MockTransport(lambda request: httpx.Response(404))
    )
    with pytest.raises(ImageSourceError) as info:
        asyncio.run(loader.load("https://img.example.com/a.jpg"))
    assert info.value.status == 404


def test_remote_loader_domain_allow_list():
    loader = SourceLoader(
        storage_dir=".",
        remote_domains=["cdn.example.com"],
        transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"x")),
    )
    with pytest.raises(ImageSourceError) as info:
        asyncio.run(loader.load("https://img.example.com/a.jpg"))
    assert info.value.status == 403


def test_remote_loader_size_limit():
    loader = SourceLoader(
        storage_dir=".",
        max_bytes=4,
        transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"too-large")),
    )
    with pytest.raises(ImageSourceError):
        asyncio.run(loader.load("http://img.example.com/a.jpg"))
