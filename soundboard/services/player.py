"""
Audio Player Service

Shared audio player feeding the active voice connection. Wraps the py-cord
voice client and reports status transitions and errors to subscribers on
the event loop.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import discord

logger = logging.getLogger(__name__)


class PlayerStatus(str, Enum):
    IDLE = "idle"
    BUFFERING = "buffering"
    PLAYING = "playing"
    PAUSED = "paused"
    AUTOPAUSED = "autopaused"


@dataclass
class AudioResource:
    """A transcoded, volume-adjustable stream for one sound."""
    source: discord.PCMVolumeTransformer
    filename: str


def create_resource(
    path: Path,
    start_offset: float = 0.0,
    volume: float = 1.0,
    ffmpeg_bin: str = "ffmpeg",
) -> AudioResource:
    """Spawn ffmpeg for path, seeking to start_offset seconds when non-zero."""
    before_options = "-nostdin"
    if start_offset > 0:
        before_options += f" -ss {start_offset:.3f}"

    pcm = discord.FFmpegPCMAudio(
        str(path),
        executable=ffmpeg_bin,
        before_options=before_options,
        options="-vn",
    )
    return AudioResource(
        source=discord.PCMVolumeTransformer(pcm, volume=volume),
        filename=path.name,
    )


StatusListener = Callable[[PlayerStatus, PlayerStatus], None]
ErrorListener = Callable[[Exception, Optional[str]], None]


class AudioPlayer:
    """
    Single audio player shared across voice connections.

    py-cord calls the ``after`` hook from its audio thread; completions are
    handed back to the event loop before any listener runs. Each play gets a
    generation number so the completion of a replaced track is ignored.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._voice_client: Optional[discord.VoiceClient] = None
        self._resource: Optional[AudioResource] = None
        self._generation = 0
        self._status = PlayerStatus.IDLE
        self._status_listeners: list[StatusListener] = []
        self._error_listeners: list[ErrorListener] = []

    # ============ Subscriptions ============

    def on_status(self, listener: StatusListener):
        self._status_listeners.append(listener)

    def on_error(self, listener: ErrorListener):
        self._error_listeners.append(listener)

    def _set_status(self, status: PlayerStatus):
        old = self._status
        if old == status:
            return
        self._status = status
        logger.debug(f"Player status {old.value} -> {status.value}")
        for listener in self._status_listeners:
            listener(old, status)

    def _emit_error(self, error: Exception, filename: Optional[str]):
        for listener in self._error_listeners:
            listener(error, filename)

    # ============ Connection ============

    def subscribe(self, voice_client: discord.VoiceClient):
        """Attach the player to a voice connection."""
        self._voice_client = voice_client
        self._loop = self._loop or asyncio.get_running_loop()

    def unsubscribe(self):
        self.stop()
        self._voice_client = None

    @property
    def status(self) -> PlayerStatus:
        if (
            self._status == PlayerStatus.PLAYING
            and self._voice_client is not None
            and not self._voice_client.is_connected()
        ):
            return PlayerStatus.AUTOPAUSED
        return self._status

    @property
    def resource(self) -> Optional[AudioResource]:
        return self._resource

    # ============ Control ============

    def play(self, resource: AudioResource):
        """Start resource, replacing whatever is playing."""
        if self._voice_client is None:
            raise RuntimeError("Player is not subscribed to a voice connection")

        self._generation += 1
        generation = self._generation

        if self._voice_client.is_playing() or self._voice_client.is_paused():
            self._voice_client.stop()

        self._resource = resource
        self._set_status(PlayerStatus.BUFFERING)
        try:
            self._voice_client.play(
                resource.source,
                after=lambda error: self._after(generation, error)
            )
        except Exception:
            self._resource = None
            self._set_status(PlayerStatus.IDLE)
            raise
        self._set_status(PlayerStatus.PLAYING)

    def pause(self) -> bool:
        if self._voice_client is None or self._status != PlayerStatus.PLAYING:
            return False
        self._voice_client.pause()
        self._set_status(PlayerStatus.PAUSED)
        return True

    def resume(self) -> bool:
        if self._voice_client is None or self._status != PlayerStatus.PAUSED:
            return False
        self._voice_client.resume()
        self._set_status(PlayerStatus.PLAYING)
        return True

    def stop(self):
        """Stop playback; the track's completion moves the player to idle."""
        if self._voice_client is not None and (
            self._voice_client.is_playing() or self._voice_client.is_paused()
        ):
            self._voice_client.stop()
        else:
            self._finish(self._generation, None)

    def set_volume(self, volume: float):
        if self._resource is not None:
            self._resource.source.volume = volume

    # ============ Completion ============

    def _after(self, generation: int, error: Optional[Exception]):
        # Runs on the py-cord audio thread
        if self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._finish, generation, error)

    def _finish(self, generation: int, error: Optional[Exception]):
        if generation != self._generation:
            logger.debug(f"Ignoring completion of replaced track (generation {generation})")
            return
        filename = self._resource.filename if self._resource else None
        self._resource = None
        if error is not None:
            self._emit_error(error, filename)
        self._set_status(PlayerStatus.IDLE)
