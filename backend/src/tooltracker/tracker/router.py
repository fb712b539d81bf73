"""Tracker view API endpoints"""

import logging
import re
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..config import Settings
from ..domain.tags import DEFAULT_FILTER, format_tags, normalize_tags
from ..infrastructure.repositories import ToolInfo, TrackerRepository
from .dependencies import get_app_settings, get_repository
from .schemas import ItemListResponse, ItemResponse, ToolResponse, ToolUpdate
from .service import active_tags, borrow_link, display_name, tag_toggles

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tracker"])


def _known_senders(settings: Settings) -> re.Pattern:
    return re.compile(settings.FROM_REGEX)


def _tool_response(tool: ToolInfo, settings: Settings) -> ToolResponse:
    return ToolResponse(
        name=tool.name,
        tags=tool.tags,
        description=tool.description,
        image=tool.image,
        link=borrow_link(settings.MAILBOX, settings.DOMAIN, tool.name),
    )


@router.get("/items", response_model=ItemListResponse)
async def list_items(
    tags: Optional[List[str]] = Query(None, description="Tag filter, e.g. 'drill -hidden +metric'"),
    repository: TrackerRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
):
    """
    List tracked tools and who last had them.

    Without a `tags` parameter, tools tagged `hidden` are left out.

    Returns:
        Items with per-tag filter toggles, plus the normalized filter
        string and the filter without each of its tags
    """
    tag_filter = DEFAULT_FILTER if tags is None else normalize_tags(tags)
    items = repository.get_items(tag_filter)
    known = _known_senders(settings)

    return ItemListResponse(
        items=[
            ItemResponse(
                tool=item.tool,
                tags=item.tags,
                tag_filters=tag_toggles(tag_filter, item.tags),
                description=item.description,
                last_seen_by=display_name(item, known),
                comment=item.comment,
            )
            for item in items
        ],
        filter=format_tags(tag_filter),
        active_tags=active_tags(tag_filter),
    )


@router.get("/tools/{name}", response_model=ToolResponse)
async def get_tool(
    name: str,
    repository: TrackerRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
):
    """
    Get tool metadata and its borrow link.

    Tools without stored metadata are returned with empty fields, so the
    link can be printed before anything is described.
    """
    name = name.strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Tool name missing")
    tool = repository.get_tool(name) or ToolInfo(name=name)
    return _tool_response(tool, settings)


@router.put("/tools/{name}", response_model=ToolResponse)
async def update_tool(
    name: str,
    update: ToolUpdate,
    repository: TrackerRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
):
    """
    Edit tool metadata.

    Args:
        name: Tool name
        update: Fields to change

    Returns:
        The stored tool
    """
    name = name.strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Tool name missing")

    tool = repository.get_tool(name) or ToolInfo(name=name)
    if update.description is not None and update.description.strip():
        tool.description = update.description.strip()
    if update.tags is not None:
        tool.tags = update.tags
    if update.image is not None:
        tool.image = update.image

    repository.update_tool(tool)
    logger.info(f"Updated tool {name!r}", extra={"tool": name})
    return _tool_response(repository.get_tool(name) or tool, settings)
