import itertools
import json
import os
import tempfile

# Configure the process before any teelinks module reads settings
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SUPABASE_URL"] = "https://test-project.supabase.co"
os.environ["SUPABASE_SERVICE_KEY"] = "test-service-key"
os.environ["ADMIN_SECRET_KEY"] = "test-admin-secret"
os.environ["UPLOADS_DIR"] = tempfile.mkdtemp(prefix="teelinks-uploads-")
os.environ.pop("ALLOW_OPEN_ADMIN", None)

import httpx
import pytest
from fastapi.testclient import TestClient

from teelinks.api.dependencies.services import get_storage
from teelinks.db.base import Base
from teelinks.db.session import engine
from teelinks.storage.bucket_client import StorageBucketClient

BUCKET = "product-images"
SUPABASE_URL = os.environ["SUPABASE_URL"]
ADMIN_SECRET = os.environ["ADMIN_SECRET_KEY"]
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32

_filenames = itertools.count(1)


class FakeBucketServer:
    """In-memory stand-in for the storage REST API, served via httpx.MockTransport."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.upload_headers: list[httpx.Headers] = []
        self.fail_uploads = False
        self.fail_removes = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        object_prefix = f"/storage/v1/object/{BUCKET}"
        path = request.url.path

        if request.method == "POST" and path.startswith(object_prefix + "/"):
            self.upload_headers.append(request.headers)
            if self.fail_uploads:
                return httpx.Response(
                    500,
                    json={"statusCode": "500", "error": "Internal", "message": "storage unavailable"},
                )
            key = path[len(object_prefix) + 1 :]
            if key in self.objects and request.headers.get("x-upsert") != "true":
                return httpx.Response(
                    400,
                    json={"statusCode": "409", "error": "Duplicate", "message": "The resource already exists"},
                )
            self.objects[key] = request.content
            return httpx.Response(200, json={"Key": f"{BUCKET}/{key}"})

        if request.method == "DELETE" and path == object_prefix:
            if self.fail_removes:
                return httpx.Response(500, json={"message": "delete failed"})
            prefixes = json.loads(request.content)["prefixes"]
            removed = [p for p in prefixes if self.objects.pop(p, None) is not None]
            return httpx.Response(200, json=[{"name": p} for p in removed])

        if request.method == "GET" and path == f"/storage/v1/bucket/{BUCKET}":
            return httpx.Response(200, json={"id": BUCKET, "public": True})

        return httpx.Response(404, json={"message": "Object not found"})


@pytest.fixture(autouse=True)
def db_tables():
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def bucket_server():
    return FakeBucketServer()


@pytest.fixture
def storage(bucket_server):
    client = StorageBucketClient(
        base_url=SUPABASE_URL,
        service_key="test-service-key",
        bucket=BUCKET,
        transport=httpx.MockTransport(bucket_server),
    )
    yield client
    client.close()


@pytest.fixture
def client(storage):
    from teelinks.main import app

    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"x-admin-secret-key": ADMIN_SECRET}


def image_file(name=None, content=PNG_BYTES, content_type="image/png"):
    """Build an httpx ``files`` entry with a unique filename per call."""
    name = name or f"tee-{next(_filenames)}.png"
    return {"productImage": (name, content, content_type)}


def create_product(client, headers, image=True, **fields):
    data = {"name": "Tee A", "affiliateLink": "https://x/a"}
    data.update(fields)
    files = image_file() if image is True else image
    return client.post("/api/products", data=data, files=files or None, headers=headers)
