"""
Guest Access Service

Guest toggle, IP block list, per-IP play cooldown and the bounded play
history, plus the user-upload settings stored alongside them.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

import logging
import math
import time
from typing import Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from ..errors import RateLimitError, ValidationError
from ..models import GuestData, GuestHistoryEntry
from .config_store import ConfigStore

logger = logging.getLogger(__name__)


def now_ms() -> float:
    return time.time() * 1000


class GuestManager:
    """Guest data document plus the in-memory cooldown map."""

    def __init__(
        self,
        store: ConfigStore,
        cooldown: float = 10.0,
        history_limit: int = 500,
        clock: Callable[[], float] = now_ms,
    ):
        self.store = store
        self.cooldown = cooldown
        self.history_limit = history_limit
        self.clock = clock
        # ip -> epoch ms of the last accepted play; never evicted
        self._last_play: dict[str, float] = {}

    def load(self) -> GuestData:
        saved = self.store.load("guests", {})
        try:
            return GuestData.model_validate(saved)
        except PydanticValidationError as e:
            logger.error(f"Failed to parse saved guest data: {e}")
            return GuestData()

    def save(self, data: GuestData):
        if not self.store.save("guests", data.model_dump(mode="json", by_alias=True)):
            logger.warning("Failed to persist guest data")

    # ============ Access ============

    def is_enabled(self) -> bool:
        return self.load().enabled

    def admits(self, ip: Optional[str]) -> bool:
        """Whether a guest from ip may hold a session right now."""
        data = self.load()
        return data.enabled and ip not in data.blocked_ips

    def block(self, ip: str) -> list[str]:
        ip = (ip or "").strip() if isinstance(ip, str) else ""
        if not ip:
            raise ValidationError("IP address required")
        data = self.load()
        if ip not in data.blocked_ips:
            data.blocked_ips.append(ip)
            self.save(data)
        return data.blocked_ips

    def unblock(self, ip: str) -> list[str]:
        data = self.load()
        if ip in data.blocked_ips:
            data.blocked_ips.remove(ip)
            self.save(data)
        return data.blocked_ips

    def update_settings(
        self,
        enabled: Optional[bool] = None,
        user_upload_enabled: Optional[bool] = None,
        max_upload_duration: Optional[float] = None,
        max_upload_bytes: Optional[int] = None,
    ) -> GuestData:
        if max_upload_duration is not None and max_upload_duration <= 0:
            raise ValidationError("maxUploadDuration must be positive")
        if max_upload_bytes is not None and max_upload_bytes <= 0:
            raise ValidationError("maxUploadBytes must be positive")

        data = self.load()
        if enabled is not None:
            data.enabled = enabled
        if user_upload_enabled is not None:
            data.user_upload_enabled = user_upload_enabled
        if max_upload_duration is not None:
            data.max_upload_duration = max_upload_duration
        if max_upload_bytes is not None:
            data.max_upload_bytes = max_upload_bytes
        self.save(data)
        return data

    # ============ Rate limiting ============

    def check_cooldown(self, ip: str):
        """Raise RateLimitError if ip played less than the cooldown ago."""
        last = self._last_play.get(ip)
        if last is None:
            return
        remaining = self.cooldown - (self.clock() - last) / 1000
        if remaining > 0:
            logger.info(f"Guest {ip} rate limited ({remaining:.1f}s remaining)")
            raise RateLimitError(
                f"Please wait {math.ceil(remaining)}s before playing another sound",
                cooldown_remaining=round(remaining, 3),
            )

    def record_play(self, ip: str, filename: str, display_name: str):
        """Record an accepted guest play: cooldown timestamp and history entry."""
        timestamp = self.clock()
        self._last_play[ip] = timestamp

        data = self.load()
        data.history.append(GuestHistoryEntry(
            ip=ip,
            timestamp=timestamp,
            filename=filename,
            display_name=display_name
        ))
        if len(data.history) > self.history_limit:
            data.history = data.history[-self.history_limit:]
        self.save(data)

    def history(self) -> list[GuestHistoryEntry]:
        return self.load().history
