"""Presentation rules for the tracker view."""

import re
from typing import Iterable, List, Optional
from urllib.parse import quote_plus

from ..domain.tags import TagFilter, add_tag, del_tag
from ..infrastructure.repositories import Item
from .schemas import ActiveTag, TagToggle

# Local parts at least this long are shortened for outside addresses
SHORTEN_AT = 6


def hide_email(email: str, known_senders: Optional[re.Pattern] = None) -> str:
    """Render an address without exposing it in full.

    Addresses matching `known_senders` show their local part only. Other
    addresses show a short local part as is, and a long one cut to its
    first six characters followed by "...@domain".

    Example:
        >>> hide_email("someone@family.net")
        'someon...@family.net'
    """
    user, sep, domain = email.partition("@")
    if not sep:
        return email
    if known_senders is not None and known_senders.search(email):
        return user
    if len(user) < SHORTEN_AT:
        return user
    return f"{user[:SHORTEN_AT]}...@{domain}"


def display_name(item: Item, known_senders: Optional[re.Pattern] = None) -> str:
    """The alias of whoever last had the tool, else their hidden address."""
    if item.alias:
        return item.alias
    return hide_email(item.last_seen_by, known_senders)


def borrow_link(mailbox: str, domain: str, tool: str) -> str:
    """mailto: link whose subject is the Borrowed command for `tool`."""
    return (
        f"mailto:{quote_plus(mailbox)}@{quote_plus(domain)}"
        f"?subject={quote_plus('Borrowed ' + tool)}"
    )


def tag_toggles(tag_filter: TagFilter, tags: Iterable[str]) -> List[TagToggle]:
    """Filters that add each of `tags` to `tag_filter`, one per tag type."""
    return [
        TagToggle(
            tag=tag,
            any=add_tag(tag_filter, tag),
            all=add_tag(tag_filter, f"+{tag}"),
            exclude=add_tag(tag_filter, f"-{tag}"),
        )
        for tag in tags
    ]


def active_tags(tag_filter: TagFilter) -> List[ActiveTag]:
    """The tags of `tag_filter`, each with the filter that drops it."""
    active = []
    for tag, tag_type in tag_filter.items():
        token = f"{tag_type.value}{tag}"
        active.append(ActiveTag(token=token, remove=del_tag(tag_filter, token)))
    return active
