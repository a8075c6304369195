"""
Upload Moderation Service

Direct uploads for admins, and the quarantine queue that holds user and
guest uploads until a superadmin approves or rejects them.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

import logging
import shutil
from pathlib import Path
from typing import Awaitable, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from ..errors import ConflictError, ForbiddenError, NotFoundError, SoundboardError, ValidationError
from ..models import PendingUpload, Sound, User
from .config_store import ConfigStore
from .guests import GuestManager, now_ms
from .library import SoundLibrary, sanitize_filename, validate_filename

logger = logging.getLogger(__name__)


def _discard(path: Path):
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.error(f"Failed to remove {path}: {e}")


class ModerationQueue:
    """Upload intake and the pending-upload document."""

    def __init__(
        self,
        store: ConfigStore,
        library: SoundLibrary,
        guests: GuestManager,
        pending_dir: Path,
        probe: Callable[[Path], Awaitable[Optional[float]]],
        clock: Callable[[], float] = now_ms,
    ):
        self.store = store
        self.library = library
        self.guests = guests
        self.pending_dir = Path(pending_dir)
        self.probe = probe
        self.clock = clock

    # ============ Pending document ============

    def list_pending(self) -> list[PendingUpload]:
        saved = self.store.load("pending", [])
        pending = []
        for item in saved:
            try:
                pending.append(PendingUpload.model_validate(item))
            except PydanticValidationError as e:
                logger.error(f"Skipping malformed pending upload record: {e}")
        return pending

    def _save_pending(self, pending: list[PendingUpload]):
        data = [p.model_dump(mode="json", by_alias=True) for p in pending]
        if not self.store.save("pending", data):
            logger.warning("Failed to persist pending uploads")

    def _find(self, filename: str) -> PendingUpload:
        validate_filename(filename)
        for record in self.list_pending():
            if record.filename == filename:
                return record
        raise NotFoundError("Pending upload not found")

    def _remove_record(self, filename: str):
        # Re-read so records written during an await are kept
        pending = self.list_pending()
        remaining = [p for p in pending if p.filename != filename]
        if len(remaining) != len(pending):
            self._save_pending(remaining)

    def _name_taken(self, filename: str) -> bool:
        return self.library.exists(filename) or any(
            p.filename == filename for p in self.list_pending()
        )

    def pending_path(self, filename: str) -> Path:
        record = self._find(filename)
        path = self.pending_dir / record.filename
        if not path.is_file():
            raise NotFoundError("File not found")
        return path

    # ============ Intake ============

    async def accept_upload(self, user: User, temp_path: Path, original_name: str) -> dict:
        """
        Route a freshly written upload to the sound set or the pending queue.

        temp_path is consumed: it is moved into place or deleted.
        """
        try:
            filename = sanitize_filename(original_name)
        except ValidationError:
            _discard(temp_path)
            raise

        if user.is_admin:
            return await self._store_direct(user, temp_path, filename)
        return await self._store_pending(user, temp_path, filename, original_name)

    async def _store_direct(self, user: User, temp_path: Path, filename: str) -> dict:
        if self.library.exists(filename):
            _discard(temp_path)
            raise ConflictError(f"A sound named {filename} already exists")

        target = self.library.sounds_dir / filename
        shutil.move(str(temp_path), str(target))

        duration = await self.probe(target)
        if duration is not None:
            self.library.set_duration(filename, duration)

        logger.info(f"Sound uploaded: {filename} by {user.username}")
        return {"status": "uploaded", "filename": filename, "duration": duration}

    async def _store_pending(
        self, user: User, temp_path: Path, filename: str, original_name: str
    ) -> dict:
        settings = self.guests.load()
        if not settings.user_upload_enabled:
            _discard(temp_path)
            raise ForbiddenError("Uploads are disabled")

        size = temp_path.stat().st_size
        if size > settings.max_upload_bytes:
            _discard(temp_path)
            raise ValidationError(
                f"File too large (max {settings.max_upload_bytes} bytes)"
            )

        if self._name_taken(filename):
            _discard(temp_path)
            raise ConflictError(f"A sound named {filename} already exists")

        duration = await self.probe(temp_path)
        if duration is None:
            _discard(temp_path)
            raise ValidationError("Could not read audio duration")
        if duration > settings.max_upload_duration:
            _discard(temp_path)
            raise ValidationError(
                f"Sound too long ({duration:.1f}s, max {settings.max_upload_duration:g}s)"
            )

        # Another upload or approval may have claimed the name during the probe
        if self._name_taken(filename):
            _discard(temp_path)
            raise ConflictError(f"A sound named {filename} already exists")

        shutil.move(str(temp_path), str(self.pending_dir / filename))

        record = PendingUpload(
            filename=filename,
            uploaded_by=user.username,
            uploaded_by_role=user.role,
            uploaded_by_ip=user.ip if user.is_guest else None,
            uploaded_at=self.clock(),
            duration=duration,
            size=size,
            original_name=original_name,
        )
        self._save_pending(self.list_pending() + [record])

        logger.info(f"Upload queued for approval: {filename} by {user.username}")
        return {"status": "pending", "filename": filename, "duration": duration}

    # ============ Moderation ============

    async def approve(self, filename: str, user: User) -> Sound:
        record = self._find(filename)
        source = self.pending_dir / record.filename

        if not source.is_file():
            self._remove_record(record.filename)
            raise NotFoundError("Pending file is missing")

        if self.library.exists(record.filename):
            _discard(source)
            self._remove_record(record.filename)
            logger.warning(f"Approval of {filename} discarded: name already taken")
            raise ConflictError(f"A sound named {filename} already exists")

        target = self.library.sounds_dir / record.filename
        try:
            shutil.move(str(source), str(target))
        except OSError as e:
            logger.error(f"Failed to move {filename} into sounds: {e}")
            raise SoundboardError("Failed to approve upload")

        duration = await self.probe(target)
        if duration is None:
            duration = record.duration
        if duration is not None:
            self.library.set_duration(record.filename, duration)

        self._remove_record(record.filename)
        logger.info(f"Upload approved: {filename} by {user.username}")
        return self.library.get_sound(record.filename)

    def reject(self, filename: str, user: User):
        record = self._find(filename)
        _discard(self.pending_dir / record.filename)
        self._remove_record(record.filename)
        logger.info(f"Upload rejected: {filename} by {user.username}")
