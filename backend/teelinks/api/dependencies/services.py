"""Wiring of the shared storage client and request-scoped product service."""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from teelinks.api.dependencies.db import get_session
from teelinks.core.config import Settings
from teelinks.services.product_service import ProductService
from teelinks.storage.bucket_client import StorageBucketClient


def get_app_settings(request: Request) -> Settings:
    """Return the settings the app was created with."""
    return request.app.state.settings


def get_storage(request: Request) -> StorageBucketClient:
    """Return the bucket client built once in ``create_app``."""
    return request.app.state.storage


def get_product_service(
    db: Session = Depends(get_session),
    storage: StorageBucketClient = Depends(get_storage),
) -> ProductService:
    return ProductService(db, storage)
