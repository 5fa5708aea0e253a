"""Thin client for the hosted object-storage REST API (Supabase Storage)."""

from __future__ import annotations

import logging
import re
import time
from typing import Any
from urllib.parse import quote, unquote

import httpx

from teelinks.core.errors import UpstreamError

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "public"
_WHITESPACE_RUN = re.compile(r"\s+")


def sanitize_filename(filename: str) -> str:
    """Collapse every run of whitespace into a single hyphen."""
    return _WHITESPACE_RUN.sub("-", filename)


def build_object_path(filename: str, now_ms: int | None = None) -> str:
    """Return ``public/<epoch-millis>-<sanitized filename>`` for a new object."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{PUBLIC_PREFIX}/{now_ms}-{sanitize_filename(filename)}"


def _error_detail(response: httpx.Response) -> str:
    """Pull the storage API's error message out of a failed response."""
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text[:200]}"
    if isinstance(payload, dict):
        return str(payload.get("message") or payload.get("error") or payload)
    return str(payload)


class StorageBucketClient:
    """Path-addressed upload/delete and public URL resolution for one bucket.

    A single instance is created at startup and shared by every request; the
    underlying ``httpx.Client`` pools connections and is thread-safe.
    """

    def __init__(
        self,
        base_url: str,
        service_key: str,
        bucket: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self._client = httpx.Client(
            base_url=f"{self.base_url}/storage/v1",
            headers={
                "Authorization": f"Bearer {service_key}",
                "apikey": service_key,
            },
            timeout=timeout,
            transport=transport,
        )

    def _object_url(self, path: str) -> str:
        return f"/object/{self.bucket}/{quote(path, safe='/')}"

    def upload(
        self,
        path: str,
        content: bytes,
        content_type: str,
        upsert: bool = False,
    ) -> str:
        """Store ``content`` at ``path`` and return the stored path.

        With ``upsert=False`` the storage API rejects an existing path instead
        of overwriting it.
        """
        try:
            response = self._client.post(
                self._object_url(path),
                content=content,
                headers={
                    "Content-Type": content_type,
                    "x-upsert": "true" if upsert else "false",
                    "cache-control": "max-age=3600",
                },
            )
        except httpx.RequestError as e:
            logger.error(f"Storage upload request failed for {path}: {e}", exc_info=True)
            raise UpstreamError("Failed to upload image to storage.", str(e)) from e

        if response.is_error:
            detail = _error_detail(response)
            logger.error(f"Storage upload rejected for {path}: {detail}")
            raise UpstreamError("Failed to upload image to storage.", detail)

        payload: dict[str, Any] = response.json() if response.content else {}
        stored_key = payload.get("Key") or f"{self.bucket}/{path}"
        stored_path = stored_key.split(f"{self.bucket}/", 1)[-1]
        logger.info(f"Uploaded object {self.bucket}/{stored_path} ({len(content)} bytes)")
        return stored_path

    def get_public_url(self, path: str) -> str:
        """Return the public URL for ``path``; empty when it cannot be built."""
        if not path:
            return ""
        return (
            f"{self.base_url}/storage/v1/object/public/"
            f"{self.bucket}/{quote(path, safe='/')}"
        )

    def path_from_public_url(self, url: str | None) -> str | None:
        """Recover the bucket path from a public URL built by this client."""
        if not url:
            return None
        marker = f"/storage/v1/object/public/{self.bucket}/"
        if marker not in url:
            return None
        return unquote(url.split(marker, 1)[1]) or None

    def remove(self, paths: list[str]) -> None:
        """Delete the objects at ``paths``."""
        try:
            response = self._client.request(
                "DELETE",
                f"/object/{self.bucket}",
                json={"prefixes": paths},
            )
        except httpx.RequestError as e:
            raise UpstreamError("Failed to delete image from storage.", str(e)) from e

        if response.is_error:
            raise UpstreamError(
                "Failed to delete image from storage.", _error_detail(response)
            )
        logger.info(f"Removed objects from {self.bucket}: {paths}")

    def check_bucket(self) -> None:
        """Raise ``UpstreamError`` if the bucket metadata cannot be read."""
        try:
            response = self._client.get(f"/bucket/{self.bucket}")
        except httpx.RequestError as e:
            raise UpstreamError("Storage bucket unreachable.", str(e)) from e
        if response.is_error:
            raise UpstreamError("Storage bucket unavailable.", _error_detail(response))

    def close(self) -> None:
        self._client.close()
