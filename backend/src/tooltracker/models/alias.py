"""Alias model - Display name and delegation target for an e-mail identity.

Delegation example: the tracker checks DKIM for work.com, and bob@work.com
sends "Alias bob@family.net". The row for bob@family.net then carries
delegated_email = bob@work.com, so mail from bob@family.net is accepted when
it is DKIM-signed by family.net, and is displayed with Bob's alias.
"""

from sqlalchemy import Column, Text
from sqlalchemy.orm import validates

from .base import Base, normalize_optional


class Alias(Base):
    """Alias row, keyed by e-mail address."""
    __tablename__ = "aliases"

    email = Column(Text, primary_key=True)
    alias = Column(Text, nullable=False)
    delegated_email = Column(Text, nullable=True)

    @validates('email', 'alias')
    def validate_required(self, key, value):
        value = (value or "").strip()
        if not value:
            raise ValueError(f"{key} must not be empty")
        return value

    @validates('delegated_email')
    def validate_delegated_email(self, key, value):
        return normalize_optional(value)

    def __repr__(self):
        return (
            f"<Alias(email={self.email!r}, alias={self.alias!r}, "
            f"delegated_email={self.delegated_email!r})>"
        )
