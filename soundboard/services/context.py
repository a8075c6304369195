"""
Service Context

Builds and owns every stateful service of a running soundboard so that
handlers receive them explicitly instead of through module globals.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

import logging
from dataclasses import dataclass
from functools import partial
from typing import Optional

from fastapi import HTTPException, Request

from ..config import SoundboardConfig
from .config_store import ConfigStore
from .guests import GuestManager
from .library import SoundLibrary
from .moderation import ModerationQueue
from .playback import PlaybackAuthority
from .player import AudioPlayer, create_resource
from .probe import DurationProbe
from .voice import VoiceManager

logger = logging.getLogger(__name__)


@dataclass
class SoundboardContext:
    config: SoundboardConfig
    store: ConfigStore
    library: SoundLibrary
    guests: GuestManager
    moderation: ModerationQueue
    player: AudioPlayer
    voice: VoiceManager
    playback: PlaybackAuthority

    @classmethod
    def create(
        cls,
        config: SoundboardConfig,
        player: Optional[AudioPlayer] = None,
        voice: Optional[VoiceManager] = None,
        probe=None,
        resource_factory=None,
    ) -> "SoundboardContext":
        """Wire the services together; collaborators can be swapped for tests."""
        config.ensure_dirs()

        store = ConfigStore(config.DATA_DIR)
        probe = probe or DurationProbe(config.FFPROBE_BIN, config.PROBE_TIMEOUT)
        player = player or AudioPlayer()
        voice = voice or VoiceManager(player, store, config.DISCORD_TOKEN)
        resource_factory = resource_factory or partial(
            create_resource, ffmpeg_bin=config.FFMPEG_BIN
        )

        library = SoundLibrary(store, config.SOUNDS_DIR, probe)
        guests = GuestManager(store, config.GUEST_COOLDOWN, config.HISTORY_LIMIT)
        moderation = ModerationQueue(store, library, guests, config.PENDING_DIR, probe)
        playback = PlaybackAuthority(
            player,
            library,
            guests,
            store,
            is_connected=lambda: voice.is_connected,
            resource_factory=resource_factory,
        )

        logger.info("Soundboard services initialized")
        return cls(
            config=config,
            store=store,
            library=library,
            guests=guests,
            moderation=moderation,
            player=player,
            voice=voice,
            playback=playback,
        )


def get_context(request: Request) -> SoundboardContext:
    """Dependency returning the application's service context."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return context
