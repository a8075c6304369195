"""
Moderation API

Pending-upload review and guest oversight (history, IP blocks).
Superadmin only.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from typing import Optional
import logging

from ..auth.session import get_superadmin_user
from ..models import CamelModel, GuestHistoryEntry, PendingUpload, Sound, User
from ..services.context import SoundboardContext, get_context
from ..services.library import media_type_for

logger = logging.getLogger(__name__)

router = APIRouter()


class BlockRequest(CamelModel):
    ip: Optional[str] = None


# ============ Pending uploads ============

@router.get("/pending", response_model=list[PendingUpload])
async def list_pending(
    user: User = Depends(get_superadmin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    return ctx.moderation.list_pending()


@router.post("/pending/{filename}/approve", response_model=Sound)
async def approve_pending(
    filename: str,
    user: User = Depends(get_superadmin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    return await ctx.moderation.approve(filename, user)


@router.post("/pending/{filename}/reject")
async def reject_pending(
    filename: str,
    user: User = Depends(get_superadmin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    ctx.moderation.reject(filename, user)
    return {"message": "Upload rejected", "filename": filename}


@router.get("/pending/{filename}/audio")
async def stream_pending(
    filename: str,
    user: User = Depends(get_superadmin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    """Stream a pending upload for review."""
    path = ctx.moderation.pending_path(filename)
    return FileResponse(path=path, media_type=media_type_for(filename))


# ============ Guests ============

@router.get("/guests/history", response_model=list[GuestHistoryEntry])
async def guest_history(
    user: User = Depends(get_superadmin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    """Guest plays, newest first."""
    return list(reversed(ctx.guests.history()))


@router.get("/guests/blocked")
async def blocked_ips(
    user: User = Depends(get_superadmin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    return {"blockedIPs": ctx.guests.load().blocked_ips}


@router.post("/guests/block")
async def block_ip(
    body: BlockRequest,
    user: User = Depends(get_superadmin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    blocked = ctx.guests.block(body.ip)
    logger.info(f"Guest IP {body.ip} blocked by {user.username}")
    return {"blockedIPs": blocked}


@router.delete("/guests/block/{ip}")
async def unblock_ip(
    ip: str,
    user: User = Depends(get_superadmin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    blocked = ctx.guests.unblock(ip)
    logger.info(f"Guest IP {ip} unblocked by {user.username}")
    return {"blockedIPs": blocked}
