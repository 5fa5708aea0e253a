import json

import httpx
import pytest

from teelinks.core.errors import UpstreamError
from teelinks.storage.bucket_client import (
    StorageBucketClient,
    build_object_path,
    sanitize_filename,
)

BASE_URL = "https://proj.supabase.co"


def _client(handler):
    return StorageBucketClient(
        base_url=BASE_URL + "/",
        service_key="secret-key",
        bucket="product-images",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("tee.png", "tee.png"),
        ("my tee.png", "my-tee.png"),
        ("a   b\t\nc.jpg", "a-b-c.jpg"),
    ],
)
def test_sanitize_filename(raw, expected):
    assert sanitize_filename(raw) == expected


def test_build_object_path():
    assert build_object_path("my tee.png", now_ms=1700000000000) == "public/1700000000000-my-tee.png"


def test_upload_sends_object_and_headers():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["headers"] = request.headers
        seen["body"] = request.content
        return httpx.Response(200, json={"Key": "product-images/public/1-a.png"})

    stored = _client(handler).upload("public/1-a.png", b"data", "image/png")

    assert stored == "public/1-a.png"
    assert seen["method"] == "POST"
    assert seen["path"] == "/storage/v1/object/product-images/public/1-a.png"
    assert seen["headers"]["authorization"] == "Bearer secret-key"
    assert seen["headers"]["apikey"] == "secret-key"
    assert seen["headers"]["content-type"] == "image/png"
    assert seen["headers"]["x-upsert"] == "false"
    assert seen["body"] == b"data"


def test_upload_error_carries_storage_message():
    def handler(request):
        return httpx.Response(400, json={"error": "Duplicate", "message": "The resource already exists"})

    with pytest.raises(UpstreamError) as excinfo:
        _client(handler).upload("public/1-a.png", b"data", "image/png")

    assert excinfo.value.error == "The resource already exists"


def test_upload_transport_error_is_upstream():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError):
        _client(handler).upload("public/1-a.png", b"data", "image/png", upsert=True)


def test_public_url_roundtrip():
    client = _client(lambda request: httpx.Response(200))
    url = client.get_public_url("public/1-a.png")

    assert url == f"{BASE_URL}/storage/v1/object/public/product-images/public/1-a.png"
    assert client.path_from_public_url(url) == "public/1-a.png"
    assert client.path_from_public_url("https://elsewhere.example/a.png") is None
    assert client.path_from_public_url(None) is None
    assert client.get_public_url("") == ""


def test_remove_posts_prefixes():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=[])

    _client(handler).remove(["public/1-a.png"])

    assert seen == {
        "method": "DELETE",
        "path": "/storage/v1/object/product-images",
        "body": {"prefixes": ["public/1-a.png"]},
    }


def test_remove_failure_raises():
    with pytest.raises(UpstreamError):
        _client(lambda request: httpx.Response(500, text="boom")).remove(["x"])


def test_check_bucket():
    _client(lambda request: httpx.Response(200, json={"id": "product-images"})).check_bucket()

    with pytest.raises(UpstreamError):
        _client(lambda request: httpx.Response(404, json={"message": "Bucket not found"})).check_bucket()


def test_path_from_public_url_decodes_escaped_names():
    client = _client(lambda request: httpx.Response(200))
    path = "public/1-café #1.png"

    url = client.get_public_url(path)

    assert "%23" in url
    assert client.path_from_public_url(url) == path
