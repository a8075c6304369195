"""
Settings API

Playback lock, guest access and upload limits. Fields returned and
accepted depend on the caller's role.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

from fastapi import APIRouter, Depends
from typing import Optional
import logging

from ..auth.session import get_admin_user, get_current_user
from ..errors import ForbiddenError
from ..models import CamelModel, User
from ..services.context import SoundboardContext, get_context
from ..services.policy import can_toggle_lock

logger = logging.getLogger(__name__)

router = APIRouter()

SUPERADMIN_FIELDS = ("guest_enabled", "user_upload_enabled", "max_upload_duration", "max_upload_bytes")


class PartialSettings(CamelModel):
    """Partial settings update (all fields optional)."""
    playback_locked: Optional[bool] = None
    guest_enabled: Optional[bool] = None
    user_upload_enabled: Optional[bool] = None
    max_upload_duration: Optional[float] = None
    max_upload_bytes: Optional[int] = None


def _settings_for(user: User, ctx: SoundboardContext) -> dict:
    locked, locked_by = ctx.library.get_lock()
    data = ctx.guests.load()
    settings = {
        "playbackLocked": locked,
        "playbackLockedBy": locked_by,
        "userUploadEnabled": data.user_upload_enabled,
        "maxUploadDuration": data.max_upload_duration,
        "maxUploadBytes": data.max_upload_bytes,
    }
    if user.is_superadmin:
        settings["guestEnabled"] = data.enabled
    return settings


@router.get("/settings")
async def get_settings(
    user: User = Depends(get_current_user),
    ctx: SoundboardContext = Depends(get_context)
):
    return _settings_for(user, ctx)


@router.patch("/settings")
async def update_settings(
    body: PartialSettings,
    user: User = Depends(get_admin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    """Update settings (partial updates supported)."""
    updates = body.model_dump(exclude_none=True)

    if any(field in updates for field in SUPERADMIN_FIELDS) and not user.is_superadmin:
        raise ForbiddenError("Superadmin access required")

    if body.playback_locked is not None:
        locked, locked_by = ctx.library.get_lock()
        if not can_toggle_lock(user, locked, locked_by):
            raise ForbiddenError("Playback was locked by a superadmin")

    if any(field in updates for field in SUPERADMIN_FIELDS):
        ctx.guests.update_settings(
            enabled=body.guest_enabled,
            user_upload_enabled=body.user_upload_enabled,
            max_upload_duration=body.max_upload_duration,
            max_upload_bytes=body.max_upload_bytes,
        )

    if body.playback_locked is not None:
        ctx.library.set_lock(body.playback_locked, user.role)

    logger.info(f"Settings updated by {user.username}: {updates}")
    return _settings_for(user, ctx)
