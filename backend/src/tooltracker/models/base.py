"""Base SQLAlchemy declarative base for all models"""

from typing import Optional

from sqlalchemy.orm import declarative_base


Base = declarative_base()


def normalize_optional(value: Optional[str]) -> Optional[str]:
    """Trim a string, representing blank values as None."""
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None
