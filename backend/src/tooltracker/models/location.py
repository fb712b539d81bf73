"""Location model - Current custody record for one tool.

One row per tool. A Borrowed command overwrites the row; no history is kept.
"""

from sqlalchemy import Column, Text
from sqlalchemy.orm import validates

from .base import Base, normalize_optional


class Location(Base):
    """
    Location model - Who last reported having a tool, and where.

    `last_seen_by` is the asserted sender address of the Borrowed mail.
    The display alias is resolved at read time by joining `aliases`.
    """
    __tablename__ = "tracker"

    tool = Column(Text, primary_key=True)
    last_seen_by = Column(Text, nullable=False)
    comment = Column(Text, nullable=True)

    @validates('tool', 'last_seen_by')
    def validate_required(self, key, value):
        """Trim required text columns and reject blanks."""
        value = (value or "").strip()
        if not value:
            raise ValueError(f"{key} must not be empty")
        return value

    @validates('comment')
    def validate_comment(self, key, value):
        return normalize_optional(value)

    def __repr__(self):
        return (
            f"<Location(tool={self.tool!r}, last_seen_by={self.last_seen_by!r}, "
            f"comment={self.comment!r})>"
        )
