"""Tracker repository for database operations.

Writes are single-statement upserts (INSERT .. ON CONFLICT DO UPDATE), so
a message processed twice after a retry leaves the same rows behind, and
concurrent sessions never need an explicit lock.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ...database import session_scope
from ...domain.mail.errors import StoreFailure
from ...domain.mail.ports import AliasRecord, TrackerStorePort
from ...domain.tags import TagFilter, split_filter
from ...models import Alias, Location, Tool, ToolTag
from ...models.base import normalize_optional

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


@dataclass
class Item:
    """One row of the tracker view."""
    tool: str
    last_seen_by: str
    comment: Optional[str] = None
    description: Optional[str] = None
    alias: Optional[str] = None
    tags: List[str] = field(default_factory=list)


@dataclass
class ToolInfo:
    """Tool metadata as edited through the view."""
    name: str
    description: Optional[str] = None
    image: Optional[str] = None
    tags: List[str] = field(default_factory=list)


def _required(name: str, value: Optional[str]) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError(f"{name} must not be empty")
    return value


class TrackerRepository(TrackerStorePort):
    """Repository for the tracker, aliases, tool and tags tables.

    Each public method runs in its own session and transaction. Database
    errors are raised as StoreFailure so callers can retry the message.
    """

    def __init__(self, session_factory: sessionmaker):
        """Initialize repository with a session factory.

        Args:
            session_factory: Factory from create_session_factory()
        """
        self.session_factory = session_factory

    def _insert(self, session: Session, model):
        dialect = session.get_bind().dialect.name
        try:
            return _DIALECT_INSERTS[dialect](model)
        except KeyError:
            raise StoreFailure(f"Upserts are not supported on {dialect}")

    # Mail pipeline

    def get_delegate(self, email: str) -> str:
        """Return the identity `email` is delegated to, or `email` itself."""
        try:
            with session_scope(self.session_factory) as session:
                delegate = session.execute(
                    select(Alias.delegated_email).where(Alias.email == email.strip())
                ).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Failed to look up delegate of {email}: {e}")
            raise StoreFailure(f"Delegate lookup failed: {e}")
        return delegate or email

    def get_alias(self, email: str) -> Optional[AliasRecord]:
        try:
            with session_scope(self.session_factory) as session:
                row = session.get(Alias, email.strip())
                if row is None:
                    return None
                return AliasRecord(
                    email=row.email,
                    alias=row.alias,
                    delegated_email=row.delegated_email,
                )
        except SQLAlchemyError as e:
            logger.error(f"Failed to look up alias of {email}: {e}")
            raise StoreFailure(f"Alias lookup failed: {e}")

    def update_location(self, tool: str, last_seen_by: str, comment: Optional[str]) -> None:
        """Record that `last_seen_by` has `tool`, replacing the previous holder.

        Args:
            tool: Tool name
            last_seen_by: Asserted sender of the Borrowed mail
            comment: First line of the body, blank for none

        Raises:
            StoreFailure: If the write fails
        """
        values = {
            "tool": _required("tool", tool),
            "last_seen_by": _required("last_seen_by", last_seen_by),
            "comment": normalize_optional(comment),
        }
        try:
            with session_scope(self.session_factory) as session:
                stmt = self._insert(session, Location).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[Location.tool],
                    set_={
                        "last_seen_by": stmt.excluded.last_seen_by,
                        "comment": stmt.excluded.comment,
                    },
                )
                session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Failed to update location of {tool!r}: {e}")
            raise StoreFailure(f"Location update failed: {e}")

    def update_alias(self, email: str, alias: str, delegated_email: Optional[str] = None) -> None:
        self.update_aliases([AliasRecord(email=email, alias=alias, delegated_email=delegated_email)])

    def update_aliases(self, records: Sequence[AliasRecord]) -> None:
        """Upsert several aliases in one transaction.

        An existing delegation is kept when the record carries none.

        Raises:
            StoreFailure: If the write fails; no record is applied then
        """
        rows = [
            {
                "email": _required("email", record.email),
                "alias": _required("alias", record.alias),
                "delegated_email": normalize_optional(record.delegated_email),
            }
            for record in records
        ]
        if not rows:
            return
        try:
            with session_scope(self.session_factory) as session:
                for row in rows:
                    stmt = self._insert(session, Alias).values(**row)
                    stmt = stmt.on_conflict_do_update(
                        index_elements=[Alias.email],
                        set_={
                            "alias": stmt.excluded.alias,
                            "delegated_email": func.coalesce(
                                stmt.excluded.delegated_email,
                                Alias.delegated_email,
                            ),
                        },
                    )
                    session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Failed to update aliases: {e}")
            raise StoreFailure(f"Alias update failed: {e}")

    # View

    def get_items(self, tag_filter: Optional[TagFilter] = None) -> List[Item]:
        """List tracker rows joined with tool metadata and aliases.

        Args:
            tag_filter: Tools must have any of the ANY/ALL tags, every ALL
                tag and none of the NOT tags. None or empty lists everything.

        Returns:
            List of Item, ordered by tool name
        """
        query = (
            select(
                Location.tool,
                Location.last_seen_by,
                Location.comment,
                Tool.description,
                Alias.alias,
            )
            .outerjoin(Tool, Tool.name == Location.tool)
            .outerjoin(Alias, Alias.email == Location.last_seen_by)
        )

        any_tags, all_tags, not_tags = split_filter(tag_filter or {})
        if any_tags:
            query = query.where(Location.tool.in_(
                select(ToolTag.tool).where(ToolTag.tag.in_(any_tags))
            ))
        if all_tags:
            query = query.where(Location.tool.in_(
                select(ToolTag.tool)
                .where(ToolTag.tag.in_(all_tags))
                .group_by(ToolTag.tool)
                .having(func.count(ToolTag.tag) == len(all_tags))
            ))
        if not_tags:
            query = query.where(Location.tool.not_in(
                select(ToolTag.tool).where(ToolTag.tag.in_(not_tags))
            ))

        query = query.order_by(Location.tool)

        try:
            with session_scope(self.session_factory) as session:
                rows = session.execute(query).all()
                tags = self._tags_for(session, [row.tool for row in rows])
        except SQLAlchemyError as e:
            logger.error(f"Failed to list items: {e}")
            raise StoreFailure(f"Item listing failed: {e}")

        return [
            Item(
                tool=row.tool,
                last_seen_by=row.last_seen_by,
                comment=row.comment,
                description=row.description,
                alias=row.alias,
                tags=tags.get(row.tool, []),
            )
            for row in rows
        ]

    def get_tool(self, name: str) -> Optional[ToolInfo]:
        """Return metadata for `name`, or None if the tool has none."""
        name = name.strip()
        try:
            with session_scope(self.session_factory) as session:
                tool = session.get(Tool, name)
                if tool is None:
                    return None
                tags = self._tags_for(session, [name])
                return ToolInfo(
                    name=tool.name,
                    description=tool.description,
                    image=tool.image,
                    tags=tags.get(name, []),
                )
        except SQLAlchemyError as e:
            logger.error(f"Failed to load tool {name!r}: {e}")
            raise StoreFailure(f"Tool lookup failed: {e}")

    def update_tool(self, tool: ToolInfo) -> None:
        """Upsert tool metadata and replace its tags.

        Raises:
            StoreFailure: If the write fails; nothing is applied then
        """
        name = _required("name", tool.name)
        tags = sorted({tag.strip() for tag in tool.tags if tag.strip()})
        try:
            with session_scope(self.session_factory) as session:
                stmt = self._insert(session, Tool).values(
                    name=name,
                    description=normalize_optional(tool.description),
                    image=tool.image or None,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[Tool.name],
                    set_={
                        "description": stmt.excluded.description,
                        "image": stmt.excluded.image,
                    },
                )
                session.execute(stmt)
                session.execute(delete(ToolTag).where(ToolTag.tool == name))
                session.add_all([ToolTag(tag=tag, tool=name) for tag in tags])
        except SQLAlchemyError as e:
            logger.error(f"Failed to update tool {name!r}: {e}")
            raise StoreFailure(f"Tool update failed: {e}")

    @staticmethod
    def _tags_for(session: Session, tools: List[str]) -> Dict[str, List[str]]:
        if not tools:
            return {}
        rows = session.execute(
            select(ToolTag.tool, ToolTag.tag)
            .where(ToolTag.tool.in_(tools))
            .order_by(ToolTag.tool, ToolTag.tag)
        ).all()
        grouped: Dict[str, List[str]] = defaultdict(list)
        for tool, tag in rows:
            grouped[tool].append(tag)
        return dict(grouped)
