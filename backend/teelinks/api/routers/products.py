"""CRUD + filtering endpoints for the product catalog."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request, status
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from teelinks.api.dependencies.auth import require_admin
from teelinks.api.dependencies.services import get_product_service
from teelinks.api.schemas.product import (
    MessageResponse,
    ProductEnvelope,
    ProductListResponse,
    ProductRead,
)
from teelinks.core.errors import CatalogError, InternalError, ValidationError
from teelinks.services.product_service import (
    DEFAULT_PAGE_SIZE,
    ProductService,
    StagedImage,
)
from teelinks.storage.staging import delete_upload, save_upload
from teelinks.utils.form_fields import optional_text, parse_form_bool

logger = logging.getLogger(__name__)

router = APIRouter()

IMAGE_FIELD = "productImage"

# multipart field name -> product column
FORM_FIELDS = {
    "name": "name",
    "description": "description",
    "affiliateLink": "affiliate_link",
    "price": "price",
    "category": "category",
    "isTopPick": "is_top_pick",
}


async def _read_product_form(request: Request) -> tuple[dict[str, str], UploadFile | None]:
    """Split a multipart body into the text fields present and the image part.

    Presence matters for partial updates, so fields are read from the raw form
    rather than through ``Form(None)`` parameters, which fold ``""`` into None.
    """
    form = await request.form()
    fields: dict[str, str] = {}
    for form_key, column in FORM_FIELDS.items():
        value = form.get(form_key)
        if isinstance(value, str):
            fields[column] = value
    upload = form.get(IMAGE_FIELD)
    if not isinstance(upload, UploadFile) or not upload.filename:
        upload = None
    return fields, upload


def _stage_image(upload: UploadFile | None, uploads_dir: str) -> StagedImage | None:
    """Reject non-image parts, then write the image to the staging directory."""
    if upload is None:
        return None
    content_type = upload.content_type or ""
    if not content_type.startswith("image/"):
        raise ValidationError("Not an image! Please upload an image.")
    path = save_upload(upload.file, upload.filename, uploads_dir)
    return StagedImage(path=path, filename=upload.filename, content_type=content_type)


@router.get(
    "/toppicks",
    summary="List products flagged as top picks",
    response_model=list[ProductRead],
)
async def list_top_picks(
    service: ProductService = Depends(get_product_service),
) -> list[ProductRead]:
    """Return at most eight top picks, newest first."""
    try:
        products = await run_in_threadpool(service.list_top_picks)
    except CatalogError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error fetching top picks: {e}", exc_info=True)
        raise InternalError("Failed to fetch top pick products.", str(e)) from e
    return [ProductRead.model_validate(p) for p in products]


@router.get(
    "",
    summary="List products with filters and pagination",
    response_model=ProductListResponse,
)
async def list_products(
    category: str | None = Query(None, description="Filter by category (exact match)"),
    search: str | None = Query(
        None, description="Case-insensitive match against name or description"
    ),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, description="Items per page"),
    service: ProductService = Depends(get_product_service),
) -> ProductListResponse:
    """Return paginated product data for the storefront grid."""
    try:
        result = await run_in_threadpool(
            service.list_products,
            category=category,
            search=search,
            page=page,
            limit=limit,
        )
    except CatalogError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error listing products: {e}", exc_info=True)
        raise InternalError("Failed to fetch products.", str(e)) from e

    return ProductListResponse(
        products=[ProductRead.model_validate(p) for p in result.products],
        total_products=result.total,
        current_page=result.page,
        total_pages=result.total_pages,
    )


@router.post(
    "",
    summary="Create a product with its image",
    status_code=status.HTTP_201_CREATED,
    response_model=ProductEnvelope,
    dependencies=[Depends(require_admin)],
)
async def create_product(
    request: Request,
    service: ProductService = Depends(get_product_service),
) -> ProductEnvelope:
    """Upload the product image, then persist the row pointing at it."""
    fields, upload = await _read_product_form(request)
    staged = None
    try:
        staged = await run_in_threadpool(
            _stage_image, upload, request.app.state.settings.uploads_dir
        )
        product = await run_in_threadpool(
            service.create_product,
            name=fields.get("name"),
            affiliate_link=fields.get("affiliate_link"),
            image=staged,
            description=optional_text(fields.get("description")),
            price=optional_text(fields.get("price")),
            category=optional_text(fields.get("category")),
            is_top_pick=bool(parse_form_bool(fields.get("is_top_pick"))),
        )
    except CatalogError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error adding product: {e}", exc_info=True)
        raise InternalError("Failed to add product.", str(e)) from e
    finally:
        if staged is not None:
            delete_upload(staged.path)

    return ProductEnvelope(
        message="Product added successfully!",
        data=ProductRead.model_validate(product),
    )


@router.put(
    "/{product_id}",
    summary="Update an existing product",
    response_model=ProductEnvelope,
    dependencies=[Depends(require_admin)],
)
async def update_product(
    product_id: str,
    request: Request,
    service: ProductService = Depends(get_product_service),
) -> ProductEnvelope:
    """Partial update: only fields present in the form are written.

    Empty description, price or category clear the column; name and
    affiliateLink are stored exactly as sent.
    """
    fields, upload = await _read_product_form(request)

    changes: dict[str, object] = {}
    for column in ("name", "affiliate_link"):
        if column in fields:
            changes[column] = fields[column]
    for column in ("description", "price", "category"):
        if column in fields:
            changes[column] = optional_text(fields[column])
    if "is_top_pick" in fields:
        changes["is_top_pick"] = parse_form_bool(fields["is_top_pick"])

    logger.info(f"Attempting to update product ID: {product_id} ({sorted(changes)})")
    staged = None
    try:
        staged = await run_in_threadpool(
            _stage_image, upload, request.app.state.settings.uploads_dir
        )
        product = await run_in_threadpool(
            service.update_product, product_id, changes, staged
        )
    except CatalogError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error updating product {product_id}: {e}", exc_info=True)
        raise InternalError("Failed to update product.", str(e)) from e
    finally:
        if staged is not None:
            delete_upload(staged.path)

    return ProductEnvelope(
        message="Product updated successfully!",
        data=ProductRead.model_validate(product),
    )


@router.delete(
    "/{product_id}",
    summary="Delete a product and its stored image",
    response_model=MessageResponse,
    dependencies=[Depends(require_admin)],
)
async def delete_product(
    product_id: str,
    service: ProductService = Depends(get_product_service),
) -> MessageResponse:
    """Hard delete the row; the image is removed from storage best-effort."""
    try:
        await run_in_threadpool(service.delete_product, product_id)
    except CatalogError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error deleting product {product_id}: {e}", exc_info=True)
        raise InternalError("Failed to delete product.", str(e)) from e

    return MessageResponse(message=f"Product with ID {product_id} deleted successfully.")
