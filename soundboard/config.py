"""
Soundboard Configuration

Environment-driven settings for the web soundboard.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

import os
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

VALID_ROLES = ("superadmin", "admin", "user")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def parse_users(raw: str) -> dict[str, dict]:
    """
    Parse the static credential table.

    Format: ``name:password:role`` entries separated by commas. Usernames are
    lowercased and trimmed; entries with an unknown role are skipped.
    """
    users = {}
    for entry in (raw or "").split(","):
        entry = entry.strip()
        if not entry:
            continue
        parts = entry.split(":")
        if len(parts) != 3:
            logger.warning(f"Ignoring malformed user entry: {parts[0]!r}")
            continue
        name, password, role = parts
        name = name.strip().lower()
        role = role.strip().lower()
        if not name or role not in VALID_ROLES:
            logger.warning(f"Ignoring user entry {name!r} with role {role!r}")
            continue
        users[name] = {"password": password, "role": role}
    return users


class SoundboardConfig:
    DISCORD_TOKEN: str = os.getenv("DISCORD_TOKEN", "")
    USERS: dict = parse_users(os.getenv("SOUNDBOARD_USERS", ""))

    SESSION_SECRET: str = os.getenv("SOUNDBOARD_SESSION_SECRET", "change-me")
    SESSION_TTL: int = int(os.getenv("SOUNDBOARD_SESSION_TTL", str(7 * 24 * 3600)))
    COOKIE_NAME: str = "soundboard_session"
    COOKIE_SECURE: bool = _env_bool("SOUNDBOARD_COOKIE_SECURE")
    TRUST_PROXY: bool = _env_bool("SOUNDBOARD_TRUST_PROXY")

    DATA_DIR: Path = Path(os.getenv("SOUNDBOARD_DATA_DIR", "data"))
    SOUNDS_DIR: Path = Path(os.getenv("SOUNDBOARD_SOUNDS_DIR", "sounds"))
    PENDING_DIR: Path = Path(os.getenv("SOUNDBOARD_PENDING_DIR", "pending"))
    PUBLIC_DIR: Path = Path(os.getenv("SOUNDBOARD_PUBLIC_DIR", "public"))

    GUEST_COOLDOWN: float = float(os.getenv("SOUNDBOARD_GUEST_COOLDOWN", "10"))
    HISTORY_LIMIT: int = 500

    FFMPEG_BIN: str = os.getenv("FFMPEG_BIN", "ffmpeg")
    FFPROBE_BIN: str = os.getenv("FFPROBE_BIN", "ffprobe")
    PROBE_TIMEOUT: float = float(os.getenv("SOUNDBOARD_PROBE_TIMEOUT", "10"))

    CORS_ORIGINS: list[str] = [
        o.strip() for o in os.getenv("SOUNDBOARD_CORS_ORIGINS", "").split(",") if o.strip()
    ]
    PORT: int = int(os.getenv("PORT", "3000"))

    def ensure_dirs(self):
        """Create the data, sounds and pending directories."""
        for path in (self.DATA_DIR, self.SOUNDS_DIR, self.PENDING_DIR):
            path.mkdir(parents=True, exist_ok=True)


config = SoundboardConfig()
