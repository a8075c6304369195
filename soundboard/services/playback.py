"""
Playback Authority Service

Decides who may start, pause, resume and stop audio, keeps the tracked
playback state, and projects it against the player's live status for
polling clients.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

import logging
import math
from pathlib import Path
from typing import Callable, Optional

from ..errors import ForbiddenError, SoundboardError, ValidationError
from ..models import (
    PlaybackState, PlaybackStatus, PlaybackView, ServerState, StartedBy, User
)
from .config_store import ConfigStore
from .guests import GuestManager, now_ms
from .library import SoundLibrary
from .player import AudioPlayer, AudioResource, PlayerStatus, create_resource
from .policy import can_control, can_preempt, is_blocked_by_lock

logger = logging.getLogger(__name__)

STATUS_MAP = {
    PlayerStatus.IDLE: PlaybackStatus.IDLE,
    PlayerStatus.BUFFERING: PlaybackStatus.BUFFERING,
    PlayerStatus.PLAYING: PlaybackStatus.PLAYING,
    PlayerStatus.PAUSED: PlaybackStatus.PAUSED,
    PlayerStatus.AUTOPAUSED: PlaybackStatus.PAUSED,
}

ResourceFactory = Callable[[Path, float, float], AudioResource]


def clamp(value: float, low: float, high: Optional[float]) -> float:
    value = max(low, value)
    if high is not None:
        value = min(high, value)
    return value


class PlaybackAuthority:
    """
    Owner of the playback state.

    All writes to the state go through this class; the player's Idle
    transition reaches it through the status subscription made here.
    """

    def __init__(
        self,
        player: AudioPlayer,
        library: SoundLibrary,
        guests: GuestManager,
        store: ConfigStore,
        is_connected: Callable[[], bool],
        resource_factory: ResourceFactory = create_resource,
        clock: Callable[[], float] = now_ms,
    ):
        self.player = player
        self.library = library
        self.guests = guests
        self.store = store
        self.is_connected = is_connected
        self.resource_factory = resource_factory
        self.clock = clock
        self.state = PlaybackState()
        self.volume = clamp(self._load_server_state().volume, 0.0, 1.0)

        player.on_status(self._on_player_status)
        player.on_error(self._on_player_error)

    # ============ Server state ============

    def _load_server_state(self) -> ServerState:
        saved = self.store.load("server", {})
        try:
            return ServerState.model_validate(saved)
        except ValueError as e:
            logger.error(f"Failed to parse saved server state: {e}")
            return ServerState()

    def _save_server_state(self, state: ServerState):
        if not self.store.save("server", state.model_dump(mode="json", by_alias=True)):
            logger.warning("Failed to persist server state")

    def set_volume(self, volume) -> float:
        """Set the global volume, applying it to the active track."""
        try:
            volume = float(volume)
        except (TypeError, ValueError):
            raise ValidationError("Volume must be a number")
        if math.isnan(volume):
            raise ValidationError("Volume must be a number")

        self.volume = clamp(volume, 0.0, 1.0)
        self.player.set_volume(self.volume)

        state = self._load_server_state()
        state.volume = self.volume
        self._save_server_state(state)
        return self.volume

    # ============ Player events ============

    def _on_player_status(self, old: PlayerStatus, new: PlayerStatus):
        if new == PlayerStatus.IDLE and self.state.status != PlaybackStatus.IDLE:
            logger.info(f"Playback finished: {self.state.filename}")
            self.state = PlaybackState()

    def _on_player_error(self, error: Exception, filename: Optional[str]):
        logger.error(f"Audio player error: {error} (resource: {filename or 'unknown'})")

    def reset(self):
        self.state = PlaybackState()

    # ============ Commands ============

    def _elapsed(self) -> float:
        if self.state.start_time is None:
            return 0.0
        return (self.clock() - self.state.start_time) / 1000

    def _active(self) -> bool:
        return self.player.status != PlayerStatus.IDLE

    def _position(self) -> float:
        """Seconds into the track: frozen while paused, live otherwise."""
        if self.state.paused_at is not None:
            return self.state.paused_at
        return clamp(self.state.start_time_offset + self._elapsed(), 0.0, self.state.duration)

    def _sync_autopause(self):
        """
        Follow the player in and out of AutoPaused.

        The player reports AutoPaused while its voice connection is down. The
        position is frozen in paused_at the first time that is seen, and the
        clock restarts from there once the player is playing again.
        """
        if self.state.status != PlaybackStatus.PLAYING:
            return
        status = self.player.status
        if status == PlayerStatus.AUTOPAUSED and self.state.paused_at is None:
            self.state = self.state.model_copy(update={"paused_at": self._position()})
            logger.info(f"Playback of {self.state.filename} auto-paused at {self.state.paused_at:.2f}s")
        elif status == PlayerStatus.PLAYING and self.state.paused_at is not None:
            self.state = self.state.model_copy(update={
                "start_time_offset": self.state.paused_at,
                "start_time": self.clock(),
                "paused_at": None,
            })
            logger.info(f"Playback of {self.state.filename} continued after reconnect")

    async def start(self, user: User, filename, start_time=None) -> PlaybackState:
        """
        Start a sound for user.

        Every check runs before the player is touched; the state is only
        replaced once the player has accepted the new track.
        """
        path = self.library.require(filename)
        offset = self._parse_offset(start_time)

        if not self.is_connected():
            raise ValidationError("Join a voice channel first")

        duration = await self.library.ensure_duration(filename)
        if duration is not None and offset >= duration:
            raise ValidationError("Start time is beyond the end of the sound")

        locked, locked_by = self.library.get_lock()
        if is_blocked_by_lock(user.role, locked, locked_by):
            raise ForbiddenError("Playback is locked")

        if not can_preempt(user, self.state.started_by, self._active()):
            raise ForbiddenError("An admin's sound is currently playing")

        if user.is_guest:
            self.guests.check_cooldown(user.ip)

        sound = self.library.get_sound(filename)

        resource = None
        try:
            resource = self.resource_factory(path, offset, self.volume)
            self.player.play(resource)
        except Exception as e:
            logger.error(f"Failed to play {filename}: {e}")
            if resource is not None:
                resource.source.cleanup()
            raise SoundboardError("Failed to play audio")

        self.state = PlaybackState(
            status=PlaybackStatus.PLAYING,
            filename=filename,
            display_name=sound.display_name,
            started_by=StartedBy(username=user.username, role=user.role),
            start_time_offset=offset,
            start_time=self.clock(),
            duration=duration,
        )

        if user.is_guest:
            self.guests.record_play(user.ip, filename, sound.display_name)

        logger.info(f"Playing {filename} from {offset:.2f}s for {user.username} ({user.role.value})")
        return self.state

    def _parse_offset(self, start_time) -> float:
        if start_time is None:
            return 0.0
        if isinstance(start_time, bool):
            raise ValidationError("startTime must be a number")
        try:
            offset = float(start_time)
        except (TypeError, ValueError):
            raise ValidationError("startTime must be a number")
        if math.isnan(offset) or offset < 0:
            raise ValidationError("startTime must be a non-negative number")
        return offset

    def _require_control(self, user: User):
        if not can_control(user, self.state.started_by):
            raise ForbiddenError("This sound was started by an admin and can only be controlled by a superadmin")

    def pause(self, user: User) -> PlaybackState:
        self._require_control(user)
        if self.state.status != PlaybackStatus.PLAYING:
            raise ValidationError("Nothing is playing")

        self._sync_autopause()
        paused_at = self._position()
        self.state = self.state.model_copy(update={
            "status": PlaybackStatus.PAUSED,
            "paused_at": paused_at,
        })
        self.player.pause()

        logger.info(f"Paused {self.state.filename} at {paused_at:.2f}s by {user.username}")
        return self.state

    def resume(self, user: User) -> PlaybackState:
        self._require_control(user)
        if self.state.status != PlaybackStatus.PAUSED:
            raise ValidationError("Nothing is paused")

        self.state = self.state.model_copy(update={
            "status": PlaybackStatus.PLAYING,
            "start_time_offset": self.state.paused_at or 0.0,
            "start_time": self.clock(),
            "paused_at": None,
        })
        self.player.resume()

        logger.info(f"Resumed {self.state.filename} by {user.username}")
        return self.state

    def stop(self, user: User) -> PlaybackState:
        self._require_control(user)
        filename = self.state.filename
        self.state = PlaybackState()
        self.player.stop()

        logger.info(f"Stopped {filename or 'playback'} by {user.username}")
        return self.state

    # ============ Projection ============

    def view(self) -> PlaybackView:
        """Current playback as seen by clients, with a live current time."""
        locked, locked_by = self.library.get_lock()
        status = STATUS_MAP[self.player.status]
        common = {
            "volume": self.volume,
            "locked": locked,
            "locked_by": locked_by,
            "connected": self.is_connected(),
        }

        if status == PlaybackStatus.IDLE or self.state.status == PlaybackStatus.IDLE:
            return PlaybackView(status=PlaybackStatus.IDLE, **common)

        self._sync_autopause()
        state = self.state
        if state.status == PlaybackStatus.PAUSED:
            status = PlaybackStatus.PAUSED
        current_time = self._position()

        return PlaybackView(
            status=status,
            filename=state.filename,
            display_name=state.display_name,
            started_by=state.started_by,
            current_time=round(current_time, 3),
            duration=state.duration,
            **common
        )
