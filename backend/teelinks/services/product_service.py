"""Catalog operations orchestrating object storage and the relational store."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from teelinks.core.errors import (
    InternalError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from teelinks.db.models.product import Product
from teelinks.storage.bucket_client import StorageBucketClient, build_object_path
from teelinks.storage.staging import delete_upload

logger = logging.getLogger(__name__)

TOP_PICKS_LIMIT = 8
DEFAULT_PAGE_SIZE = 12

UPDATABLE_FIELDS = frozenset(
    {"name", "description", "affiliate_link", "price", "category", "is_top_pick"}
)


@dataclass
class StagedImage:
    """An image upload already written to the local staging directory."""

    path: Path
    filename: str
    content_type: str


@dataclass
class ProductPage:
    products: list[Product]
    total: int
    page: int
    total_pages: int


class ProductService:
    """Create, list, update and delete catalog products.

    ``db`` is a request-scoped session; ``storage`` is the process-wide bucket
    client. Neither is looked up globally.
    """

    def __init__(self, db: Session, storage: StorageBucketClient):
        self.db = db
        self.storage = storage

    def _push_image(self, image: StagedImage, upsert: bool) -> tuple[str, str]:
        """Upload a staged image and return ``(path_in_bucket, public_url)``.

        The staged file is removed whatever the outcome of the upload.
        """
        object_path = build_object_path(image.filename)
        try:
            content = image.path.read_bytes()
            logger.info(
                f"Uploading {image.filename} to bucket {self.storage.bucket} "
                f"at {object_path}"
            )
            stored_path = self.storage.upload(
                object_path, content, image.content_type, upsert=upsert
            )
        except OSError as e:
            logger.error(f"Could not read staged image {image.path}: {e}", exc_info=True)
            raise InternalError("Failed to read uploaded image.", str(e)) from e
        finally:
            delete_upload(image.path)

        public_url = self.storage.get_public_url(stored_path)
        if not public_url:
            self._discard_object(stored_path)
            raise InternalError("Could not get public URL for the uploaded image.")
        logger.info(f"Image URL: {public_url}")
        return stored_path, public_url

    def _discard_object(self, path: str | None) -> None:
        """Best-effort delete of a stored object; failures are only logged."""
        if not path:
            return
        try:
            self.storage.remove([path])
        except UpstreamError as e:
            logger.warning(
                f"Failed to delete image {path} from storage: {e.error or e.message}"
            )

    def _stored_path_of(self, product: Product) -> str | None:
        # Rows written before image_path_in_bucket existed only carry the URL
        return product.image_path_in_bucket or self.storage.path_from_public_url(
            product.image_url
        )

    def create_product(
        self,
        name: str | None,
        affiliate_link: str | None,
        image: StagedImage | None,
        description: str | None = None,
        price: str | None = None,
        category: str | None = None,
        is_top_pick: bool = False,
    ) -> Product:
        if not name or not affiliate_link or image is None:
            raise ValidationError(
                "Name, affiliate link, and product image are required."
            )

        image_path, image_url = self._push_image(image, upsert=False)

        product = Product(
            name=name,
            description=description,
            affiliate_link=affiliate_link,
            price=price,
            image_url=image_url,
            image_path_in_bucket=image_path,
            category=category,
            is_top_pick=is_top_pick,
        )
        try:
            self.db.add(product)
            self.db.commit()
            self.db.refresh(product)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error creating product: {e}", exc_info=True)
            # Compensate so the bucket does not keep an image no row points at
            self._discard_object(image_path)
            raise UpstreamError("Failed to add product.", str(e)) from e

        logger.info(f"Created product {product.id} (top pick: {product.is_top_pick})")
        return product

    def list_products(
        self,
        category: str | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> ProductPage:
        """Return one page of products, newest first, plus the total match count."""
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive integers.")

        filters = []
        if category:
            filters.append(Product.category == category)
        if search:
            pattern = f"%{search}%"
            filters.append(
                or_(Product.name.ilike(pattern), Product.description.ilike(pattern))
            )

        offset = (page - 1) * limit
        query = select(Product)
        count_query = select(func.count(Product.id))
        if filters:
            query = query.where(*filters)
            count_query = count_query.where(*filters)
        query = query.order_by(Product.created_at.desc()).offset(offset).limit(limit)

        try:
            total = self.db.scalar(count_query) or 0
            products = list(self.db.scalars(query).all())
        except SQLAlchemyError as e:
            logger.error(f"Database error listing products: {e}", exc_info=True)
            raise UpstreamError("Failed to fetch products.", str(e)) from e

        logger.info(
            f"Found {len(products)} products for page {page} "
            f"(limit {limit}, offset {offset}); total matching: {total}"
        )
        return ProductPage(
            products=products,
            total=total,
            page=page,
            total_pages=math.ceil(total / limit),
        )

    def list_top_picks(self) -> list[Product]:
        query = (
            select(Product)
            .where(Product.is_top_pick.is_(True))
            .order_by(Product.created_at.desc())
            .limit(TOP_PICKS_LIMIT)
        )
        try:
            products = list(self.db.scalars(query).all())
        except SQLAlchemyError as e:
            logger.error(f"Database error fetching top picks: {e}", exc_info=True)
            raise UpstreamError("Failed to fetch top pick products.", str(e)) from e
        logger.info(f"Found {len(products)} top pick products")
        return products

    def _get_existing(self, product_id: str) -> Product:
        try:
            product = self.db.get(Product, product_id)
        except SQLAlchemyError as e:
            logger.error(f"Database error fetching product {product_id}: {e}", exc_info=True)
            raise UpstreamError("Failed to fetch product.", str(e)) from e
        if product is None:
            logger.warning(f"Product with ID {product_id} not found")
            raise NotFoundError("Product not found.")
        return product

    def update_product(
        self,
        product_id: str,
        changes: dict[str, Any],
        image: StagedImage | None = None,
    ) -> Product:
        """Apply a partial update; only keys present in ``changes`` are written."""
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        if not changes and image is None:
            raise ValidationError("No fields provided to update.")

        product = self._get_existing(product_id)
        previous_path = self._stored_path_of(product)

        new_path = None
        if image is not None:
            new_path, new_url = self._push_image(image, upsert=True)
            changes = {**changes, "image_url": new_url, "image_path_in_bucket": new_path}

        for field, value in changes.items():
            setattr(product, field, value)

        try:
            self.db.commit()
            self.db.refresh(product)
        except StaleDataError as e:
            # Row was deleted by a concurrent request after we fetched it
            self.db.rollback()
            self._discard_object(new_path)
            raise NotFoundError("Product not found.") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error updating product {product_id}: {e}", exc_info=True)
            self._discard_object(new_path)
            raise UpstreamError("Failed to update product.", str(e)) from e

        if new_path and previous_path and previous_path != new_path:
            self._discard_object(previous_path)

        logger.info(f"Updated product {product_id}: {sorted(changes)}")
        return product

    def delete_product(self, product_id: str) -> None:
        product = self._get_existing(product_id)
        image_path = self._stored_path_of(product)

        try:
            self.db.delete(product)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error deleting product {product_id}: {e}", exc_info=True)
            raise UpstreamError("Failed to delete product.", str(e)) from e

        logger.info(f"Product with ID {product_id} deleted from database")
        self._discard_object(image_path)
