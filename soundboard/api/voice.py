"""
Voice Channel API

List voice channels, join one, leave the current one.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

from fastapi import APIRouter, Depends
import logging

from ..auth.session import get_admin_user
from ..models import CamelModel, User, VoiceChannelInfo
from ..services.context import SoundboardContext, get_context

logger = logging.getLogger(__name__)

router = APIRouter()


class JoinRequest(CamelModel):
    channel_id: str = ""


@router.get("/channels", response_model=list[VoiceChannelInfo])
async def list_channels(
    user: User = Depends(get_admin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    """List voice channels across the bot's guilds."""
    return ctx.voice.list_channels()


@router.post("/join")
async def join_channel(
    body: JoinRequest,
    user: User = Depends(get_admin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    name = await ctx.voice.join(body.channel_id)
    logger.info(f"Voice channel {name} joined by {user.username}")
    return {"message": f"Joined {name}", "connected": True}


@router.post("/leave")
async def leave_channel(
    user: User = Depends(get_admin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    if await ctx.voice.leave():
        logger.info(f"Voice channel left by {user.username}")
        return {"message": "Left channel", "left": True}
    return {"message": "Not in a channel", "left": False}
