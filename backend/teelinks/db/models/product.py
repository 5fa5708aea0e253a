"""SQLAlchemy model for catalog product rows."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, String, Text, func
from sqlalchemy.types import DateTime

from teelinks.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text, nullable=False)
    description = Column(Text)
    affiliate_link = Column(Text, nullable=False)
    price = Column(Text)
    image_url = Column(Text)
    image_path_in_bucket = Column(Text)
    category = Column(String(255), index=True)
    is_top_pick = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        index=True,
    )
