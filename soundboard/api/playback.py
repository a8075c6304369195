"""
Playback Control API

Play, pause, resume, stop, volume and the polled playback state.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

from fastapi import APIRouter, Depends
from typing import Any, Optional
import logging

from ..auth.session import get_admin_user, get_current_user
from ..models import CamelModel, PlaybackView, User
from ..services.context import SoundboardContext, get_context

logger = logging.getLogger(__name__)

router = APIRouter()


class PlayRequest(CamelModel):
    filename: Optional[Any] = None
    start_time: Optional[Any] = None


class VolumeRequest(CamelModel):
    volume: Optional[Any] = None


@router.post("/play")
async def play_sound(
    body: PlayRequest,
    user: User = Depends(get_current_user),
    ctx: SoundboardContext = Depends(get_context)
):
    state = await ctx.playback.start(user, body.filename, body.start_time)
    return {"message": f"Playing {state.display_name}", "filename": state.filename}


@router.get("/playback-state", response_model=PlaybackView)
async def get_playback_state(
    user: User = Depends(get_current_user),
    ctx: SoundboardContext = Depends(get_context)
):
    return ctx.playback.view()


@router.post("/stop")
async def stop_playback(
    user: User = Depends(get_admin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    ctx.playback.stop(user)
    return {"message": "Playback stopped"}


@router.post("/pause", response_model=PlaybackView)
async def pause_playback(
    user: User = Depends(get_admin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    ctx.playback.pause(user)
    return ctx.playback.view()


@router.post("/resume", response_model=PlaybackView)
async def resume_playback(
    user: User = Depends(get_admin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    ctx.playback.resume(user)
    return ctx.playback.view()


@router.get("/volume")
async def get_volume(
    user: User = Depends(get_current_user),
    ctx: SoundboardContext = Depends(get_context)
):
    return {"volume": ctx.playback.volume}


@router.post("/volume")
async def set_volume(
    body: VolumeRequest,
    user: User = Depends(get_admin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    volume = ctx.playback.set_volume(body.volume)
    logger.info(f"Volume set to {volume} by {user.username}")
    return {"volume": volume}
