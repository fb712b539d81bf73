"""Tag filter grammar for the tracker view.

A filter is a space separated list of tags, each optionally prefixed:

    tag    show tools having any of the unprefixed/`+` tags
    +tag   show only tools having all of the `+` tags
    -tag   hide tools having this tag

Query strings may repeat the parameter (tags=foo+bar&tags=baz), so values
are joined before being split again.
"""

import re
from enum import Enum
from typing import Dict, Iterable, Tuple


# Leftmost match, so a leading sign is included in the token
TAG_RE = re.compile(r"[+-]?[a-zA-Z][a-zA-Z0-9_]*")

HIDDEN = "hidden"


class TagType(str, Enum):
    """How a tag participates in the filter."""
    NOT = "-"
    ALL = "+"
    ANY = ""


# Higher wins when the same tag appears with different prefixes
_PRECEDENCE = {
    TagType.ANY: 0,
    TagType.ALL: 1,
    TagType.NOT: 2,
}

TagFilter = Dict[str, TagType]

DEFAULT_FILTER: TagFilter = {HIDDEN: TagType.NOT}


def parse_tag(token: str) -> Tuple[str, TagType]:
    """Split a token into its body and type.

    Example:
        >>> parse_tag("-hidden")
        ('hidden', <TagType.NOT: '-'>)
    """
    if token.startswith("-"):
        return token[1:], TagType.NOT
    if token.startswith("+"):
        return token[1:], TagType.ALL
    return token, TagType.ANY


def normalize_tags(values: Iterable[str]) -> TagFilter:
    """Parse and de-duplicate filter values.

    `-tag` overrides `+tag` and `tag`; `+tag` overrides `tag`.
    """
    tokens = TAG_RE.findall(" ".join(values))
    normalized: TagFilter = {}
    for token in tokens:
        body, tag_type = parse_tag(token)
        current = normalized.get(body)
        if current is None or _PRECEDENCE[tag_type] > _PRECEDENCE[current]:
            normalized[body] = tag_type
    return normalized


def format_tags(tags: TagFilter) -> str:
    """Render a filter back to its query string form."""
    return " ".join(f"{tag_type.value}{tag}" for tag, tag_type in tags.items())


def add_tag(tags: TagFilter, token: str) -> str:
    """Return the query string for `tags` with `token` added or retyped."""
    body, tag_type = parse_tag(token)
    updated = dict(tags)
    updated[body] = tag_type
    return format_tags(updated)


def del_tag(tags: TagFilter, token: str) -> str:
    """Return the query string for `tags` without `token`.

    Only removes the tag when its stored type matches the token's prefix,
    so removing `+drill` leaves `-drill` alone.
    """
    body, tag_type = parse_tag(token)
    updated = dict(tags)
    if updated.get(body) == tag_type:
        del updated[body]
    return format_tags(updated)


def split_filter(tags: TagFilter) -> Tuple[list, list, list]:
    """Split a filter into (any, all, not) tag lists.

    `+tag` entries also count towards `any`, so a filter of only `+` tags
    still requires at least one match.
    """
    any_tags, all_tags, not_tags = [], [], []
    for tag, tag_type in tags.items():
        if tag_type == TagType.NOT:
            not_tags.append(tag)
            continue
        if tag_type == TagType.ALL:
            all_tags.append(tag)
        any_tags.append(tag)
    return any_tags, all_tags, not_tags
