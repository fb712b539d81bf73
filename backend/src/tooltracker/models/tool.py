"""Tool metadata models - Description, image and tags of a tool.

Owned by the HTTP view; the mail pipeline only reads them through the
tracker join.
"""

from sqlalchemy import Column, Text, PrimaryKeyConstraint
from sqlalchemy.orm import validates

from .base import Base, normalize_optional


class Tool(Base):
    """Tool metadata row. `image` holds a base64 payload."""
    __tablename__ = "tool"

    name = Column(Text, primary_key=True)
    description = Column(Text, nullable=True)
    image = Column(Text, nullable=True)

    @validates('description')
    def validate_description(self, key, value):
        return normalize_optional(value)

    def __repr__(self):
        return f"<Tool(name={self.name!r}, description={self.description!r})>"


class ToolTag(Base):
    """Tag membership, many-to-many between tag names and tools."""
    __tablename__ = "tags"

    tag = Column(Text, nullable=False)
    tool = Column(Text, nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint('tag', 'tool', name='pk_tags'),
    )

    def __repr__(self):
        return f"<ToolTag(tag={self.tag!r}, tool={self.tool!r})>"
