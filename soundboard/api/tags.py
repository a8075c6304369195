"""
Tag Management API

Tag order, visibility, creation, renaming and deletion.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

from fastapi import APIRouter, Depends
from typing import Optional
import logging

from ..auth.session import get_admin_user, get_current_user
from ..models import CamelModel, User
from ..services.context import SoundboardContext, get_context

logger = logging.getLogger(__name__)

router = APIRouter()


class TagsUpdate(CamelModel):
    order: Optional[list] = None
    hidden: Optional[list] = None


class TagCreate(CamelModel):
    name: Optional[str] = None


class TagRename(CamelModel):
    old_name: Optional[str] = None
    new_name: Optional[str] = None


class TagHide(CamelModel):
    name: Optional[str] = None
    hidden: bool = True


@router.get("/tags")
async def get_tags(
    user: User = Depends(get_current_user),
    ctx: SoundboardContext = Depends(get_context)
):
    """Get ordered tags and the hidden set."""
    return ctx.library.get_tags()


@router.patch("/tags")
async def update_tags(
    body: TagsUpdate,
    user: User = Depends(get_admin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    tags = ctx.library.update_tags(order=body.order, hidden=body.hidden)
    logger.info(f"Tag order/visibility updated by {user.username}")
    return tags


@router.post("/tags")
async def create_tag(
    body: TagCreate,
    user: User = Depends(get_admin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    tags = ctx.library.create_tag(body.name)
    logger.info(f"Tag {body.name!r} created by {user.username}")
    return tags


@router.post("/tags/rename")
async def rename_tag(
    body: TagRename,
    user: User = Depends(get_admin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    tags = ctx.library.rename_tag(body.old_name, body.new_name)
    logger.info(f"Tag {body.old_name!r} renamed to {body.new_name!r} by {user.username}")
    return tags


@router.post("/tags/hide")
async def hide_tag(
    body: TagHide,
    user: User = Depends(get_admin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    tags = ctx.library.set_tag_hidden(body.name, body.hidden)
    logger.info(f"Tag {body.name!r} hidden={body.hidden} by {user.username}")
    return tags


@router.delete("/tags/{name}")
async def delete_tag(
    name: str,
    user: User = Depends(get_admin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    tags = ctx.library.delete_tag(name)
    logger.info(f"Tag {name!r} deleted by {user.username}")
    return tags
