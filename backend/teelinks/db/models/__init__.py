"""Database models package."""
from teelinks.db.models.product import Product

__all__ = ["Product"]
