"""Tag filter grammar used by the tracker view."""

from .filter import (
    DEFAULT_FILTER,
    HIDDEN,
    TAG_RE,
    TagFilter,
    TagType,
    add_tag,
    del_tag,
    format_tags,
    normalize_tags,
    parse_tag,
    split_filter,
)

__all__ = [
    "DEFAULT_FILTER",
    "HIDDEN",
    "TAG_RE",
    "TagFilter",
    "TagType",
    "add_tag",
    "del_tag",
    "format_tags",
    "normalize_tags",
    "parse_tag",
    "split_filter",
]
