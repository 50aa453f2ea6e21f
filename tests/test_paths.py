import pytest

from image_gateway.exceptions import EmptyPathError, MalformedEncodingError
from image_gateway.services.paths import (
    decode_uri_component,
    parse_image_path,
    restore_protocol_slashes,
    split_route_path,
)


@pytest.mark.parametrize(
    "path",
    [
        "images/a.jpg",
        "a:/b/c.png",
        "ftp:/host/x.png",
        "folder/https:/not-at-start.png",
        "https://already.example.com/x.png",
        "",
    ],
)
def test_restore_protocol_slashes_leaves_other_paths_alone(path):
    assert restore_protocol_slashes(path) == path


def test_restore_protocol_slashes_fixes_collapsed_scheme():
    assert restore_protocol_slashes("https:/example.com/x") == "https://example.com/x"
    assert restore_protocol_slashes("http:/example.com/x") == "http://example.com/x"


def test_restore_protocol_slashes_is_idempotent():
    once = restore_protocol_slashes("https:/example.com/x")
    assert restore_protocol_slashes(once) == once


def test_restore_protocol_slashes_only_touches_the_prefix():
    fixed = restore_protocol_slashes("https:/cdn.example.com/redirect/http:/other")
    assert fixed == "https://cdn.example.com/redirect/http:/other"


def test_parse_image_path_strips_noop_marker():
    assert parse_image_path(["_", "a.jpg"]) == "a.jpg"


def test_parse_image_path_joins_and_decodes():
    assert parse_image_path(["images", "photo%20one.jpg"]) == "images/photo one.jpg"
    assert parse_image_path(["caf%C3%A9.png"]) == "café.png"


def test_parse_image_path_restores_remote_url():
    segments = ["https:", "img.example.com", "a.jpg"]
    assert parse_image_path(segments) == "https://img.example.com/a.jpg"


def test_parse_image_path_decodes_encoded_url():
    assert parse_image_path(["https%3A%2F%2Fimg.example.com%2Fa.jpg"]) == "https://img.example.com/a.jpg"


def test_parse_image_path_rejects_empty_segments():
    with pytest.raises(EmptyPathError):
        parse_image_path([])


@pytest.mark.parametrize("value", ["bad%zz.jpg", "trailing%", "half%4", "%E0%A4%A.png"])
def test_decode_uri_component_rejects_bad_escapes(value):
    with pytest.raises(MalformedEncodingError):
        decode_uri_component(value)


def test_decode_uri_component_chains_unicode_errors():
    with pytest.raises(MalformedEncodingError) as info:
        decode_uri_component("%FF.png")
    assert isinstance(info.value.__cause__, UnicodeDecodeError)


def test_split_route_path_drops_empty_segments():
    assert split_route_path("/https://img.example.com/a.jpg") == ["https:", "img.example.com", "a.jpg"]
    assert split_route_path("/https:/img.example.com/a.jpg") == ["https:", "img.example.com", "a.jpg"]
    assert split_route_path("") == []
    assert split_route_path("/") == []
