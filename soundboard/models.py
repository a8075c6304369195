"""
Soundboard - Data Models

Users, sounds, moderation records and playback state.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional
from enum import Enum


class CamelModel(BaseModel):
    """Base model exchanged as camelCase JSON."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserRole(str, Enum):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    USER = "user"
    GUEST = "guest"


PRIVILEGED_ROLES = (UserRole.ADMIN, UserRole.SUPERADMIN)


class PlaybackStatus(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    BUFFERING = "buffering"


class User(BaseModel):
    """Session identity."""
    username: str
    role: UserRole
    ip: Optional[str] = None  # Guests only

    @property
    def is_admin(self) -> bool:
        return self.role in PRIVILEGED_ROLES

    @property
    def is_superadmin(self) -> bool:
        return self.role == UserRole.SUPERADMIN

    @property
    def is_guest(self) -> bool:
        return self.role == UserRole.GUEST


class StartedBy(BaseModel):
    username: str
    role: UserRole


class PlaybackState(CamelModel):
    """Locally tracked playback intent."""
    status: PlaybackStatus = PlaybackStatus.IDLE
    filename: Optional[str] = None
    display_name: Optional[str] = None
    started_by: Optional[StartedBy] = None
    start_time_offset: float = 0.0  # seconds into the track at last (re)start
    start_time: Optional[float] = None  # wall-clock ms at last (re)start
    duration: Optional[float] = None
    paused_at: Optional[float] = None  # frozen position while paused or auto-paused


class PlaybackView(CamelModel):
    """Projection returned to polling clients."""
    status: PlaybackStatus
    filename: Optional[str] = None
    display_name: Optional[str] = None
    started_by: Optional[StartedBy] = None
    current_time: float = 0.0
    duration: Optional[float] = None
    volume: float
    locked: bool = False
    locked_by: Optional[UserRole] = None
    connected: bool = False


class Sound(CamelModel):
    filename: str
    display_name: str
    duration: Optional[float] = None
    tags: list[str] = []


class PendingUpload(CamelModel):
    filename: str
    uploaded_by: str
    uploaded_by_role: UserRole
    uploaded_by_ip: Optional[str] = Field(default=None, alias="uploadedByIP")
    uploaded_at: float  # epoch ms
    duration: Optional[float] = None
    size: int
    original_name: str


class GuestHistoryEntry(CamelModel):
    ip: str
    timestamp: float  # epoch ms
    filename: str
    display_name: str


class GuestData(CamelModel):
    enabled: bool = False
    blocked_ips: list[str] = Field(default=[], alias="blockedIPs")
    history: list[GuestHistoryEntry] = []
    user_upload_enabled: bool = False
    max_upload_duration: float = 30.0  # seconds
    max_upload_bytes: int = 5 * 1024 * 1024


class ServerState(CamelModel):
    volume: float = 0.5
    last_channel_id: Optional[str] = None


class VoiceChannelInfo(BaseModel):
    id: str
    name: str
