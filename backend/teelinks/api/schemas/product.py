"""Pydantic models describing Product payloads."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ProductRead(BaseModel):
    id: str
    name: str
    description: str | None = None
    affiliate_link: str
    price: str | None = None
    image_url: str | None = None
    image_path_in_bucket: str | None = None
    category: str | None = None
    is_top_pick: bool = False
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class ProductEnvelope(BaseModel):
    """Create/update response: a status message plus the persisted row."""

    message: str
    data: ProductRead


class ProductListResponse(BaseModel):
    products: list[ProductRead]
    total_products: int
    current_page: int
    total_pages: int

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageResponse(BaseModel):
    message: str
