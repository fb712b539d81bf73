"""Pydantic schemas for the tracker view"""

import base64
import binascii
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..domain.tags import TAG_RE

MAX_IMAGE_BYTES = 100 * 1024


class TagToggle(BaseModel):
    """Filter strings that narrow the current listing by one tag"""
    tag: str
    any: str = Field(..., description="Filter with the tag as an alternative")
    all: str = Field(..., description="Filter requiring the tag")
    exclude: str = Field(..., description="Filter hiding the tag")


class ActiveTag(BaseModel):
    """One tag of the current filter and the filter without it"""
    token: str
    remove: str


class ItemResponse(BaseModel):
    """One tracked tool and who has it"""
    tool: str
    tags: List[str] = []
    tag_filters: List[TagToggle] = []
    description: Optional[str] = None
    last_seen_by: str
    comment: Optional[str] = None


class ItemListResponse(BaseModel):
    """Tracker listing plus the filter it was computed with"""
    items: List[ItemResponse]
    filter: str
    active_tags: List[ActiveTag] = []


class ToolResponse(BaseModel):
    """Tool metadata with the mailto: link that records a borrow"""
    name: str
    tags: List[str] = []
    description: Optional[str] = None
    image: Optional[str] = Field(None, description="Base64 encoded image")
    link: str


class ToolUpdate(BaseModel):
    """Schema for editing a tool.

    Omitted fields keep their stored value; `tags` replaces the tag set.
    """
    description: Optional[str] = Field(None, max_length=2000)
    tags: Optional[List[str]] = None
    image: Optional[str] = Field(None, description="Base64 encoded image, at most 100 KiB decoded")

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        """Keep only well-formed tag names, without prefixes"""
        if v is None:
            return v
        found = []
        for token in TAG_RE.findall(" ".join(v)):
            tag = token.lstrip("+-")
            if tag not in found:
                found.append(tag)
        return found

    @field_validator('image')
    @classmethod
    def validate_image(cls, v: Optional[str]) -> Optional[str]:
        """Validate base64 and the decoded size limit"""
        if v is None:
            return v
        try:
            decoded = base64.b64decode(v, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("Image must be base64 encoded")
        if len(decoded) > MAX_IMAGE_BYTES:
            raise ValueError(f"Image must not exceed {MAX_IMAGE_BYTES} bytes")
        return base64.b64encode(decoded).decode("ascii")
