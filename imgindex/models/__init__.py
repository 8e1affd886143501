"""SQLAlchemy ORM models for the image index."""

from imgindex.models.base import Base
from imgindex.models.image import DateBucket, ImageRecord

__all__ = [
    "Base",
    "DateBucket",
    "ImageRecord",
]
