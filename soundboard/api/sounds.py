"""
Sound Library API

Browse, stream, order, annotate and upload sounds.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import FileResponse
from typing import Optional
import logging
import uuid

from ..auth.session import get_admin_user, get_current_user
from ..errors import ValidationError
from ..models import CamelModel, Sound, User
from ..services.context import SoundboardContext, get_context
from ..services.library import media_type_for

logger = logging.getLogger(__name__)

router = APIRouter()

UPLOAD_CHUNK_SIZE = 64 * 1024


class OrderUpdate(CamelModel):
    order: Optional[list] = None


class MetadataUpdate(CamelModel):
    filename: Optional[str] = None
    display_name: Optional[str] = None
    tags: Optional[list] = None


@router.get("/sounds", response_model=list[Sound])
async def list_sounds(
    user: User = Depends(get_current_user),
    ctx: SoundboardContext = Depends(get_context)
):
    """List sounds in display order."""
    return ctx.library.list_sounds()


@router.patch("/sounds/order")
async def set_sound_order(
    body: OrderUpdate,
    user: User = Depends(get_admin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    if body.order is None:
        raise ValidationError("order must be an array of strings")
    order = ctx.library.set_order(body.order)
    logger.info(f"Sound order updated by {user.username}")
    return {"order": order}


@router.get("/sounds/audio/{filename}")
async def stream_sound(
    filename: str,
    user: User = Depends(get_current_user),
    ctx: SoundboardContext = Depends(get_context)
):
    """Stream a sound file for in-browser preview."""
    path = ctx.library.require(filename)
    return FileResponse(path=path, media_type=media_type_for(filename))


@router.patch("/sounds/metadata", response_model=Sound)
async def update_sound_metadata(
    body: MetadataUpdate,
    user: User = Depends(get_admin_user),
    ctx: SoundboardContext = Depends(get_context)
):
    """Update a sound's display name and/or tags."""
    sound = ctx.library.update_metadata(body.filename, body.display_name, body.tags)
    logger.info(f"Metadata for {sound.filename} updated by {user.username}")
    return sound


@router.post("/upload")
async def upload_sound(
    sound_file: UploadFile = File(..., alias="soundFile"),
    user: User = Depends(get_current_user),
    ctx: SoundboardContext = Depends(get_context)
):
    """
    Upload a sound.

    Admins add it to the library directly; users and guests (when uploads
    are enabled) put it in the moderation queue.
    """
    temp_path = ctx.config.PENDING_DIR / f".upload-{uuid.uuid4().hex}.part"
    try:
        with open(temp_path, "wb") as f:
            while True:
                chunk = await sound_file.read(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                f.write(chunk)
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise
    finally:
        await sound_file.close()

    return await ctx.moderation.accept_upload(user, temp_path, sound_file.filename or "")
