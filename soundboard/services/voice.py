"""
Voice Connection Service

Discord gateway client and the single active voice connection.

Copyright: (c) 2026 B. Wynne
License: GPLv2 or later
"""

import asyncio
import logging
from typing import Optional

import discord

from ..errors import NotFoundError, TransportError
from ..models import ServerState, VoiceChannelInfo
from .config_store import ConfigStore
from .player import AudioPlayer

logger = logging.getLogger(__name__)


class SoundboardClient(discord.Client):
    """Gateway client forwarding the events the voice manager needs."""

    def __init__(self, manager: "VoiceManager"):
        intents = discord.Intents.none()
        intents.guilds = True
        intents.voice_states = True
        super().__init__(intents=intents)
        self.manager = manager

    async def on_ready(self):
        logger.info(f"Bot logged in as {self.user}")
        await self.manager.rejoin_last_channel()

    async def on_voice_state_update(self, member, before, after):
        if self.user is None or member.id != self.user.id:
            return
        if before.channel is not None and after.channel is None:
            await self.manager.handle_disconnect()


class VoiceManager:
    """
    Owns the single voice connection and attaches the shared player to it.

    Joining always tears down the previous connection first.
    """

    def __init__(self, player: AudioPlayer, store: ConfigStore, token: str = ""):
        self.player = player
        self.store = store
        self.token = token
        self.client: Optional[discord.Client] = None
        self.voice_client: Optional[discord.VoiceClient] = None
        self.active_guild_id: Optional[int] = None
        self._client_task: Optional[asyncio.Task] = None
        self._leaving = False

    # ============ Lifecycle ============

    async def start(self):
        """Log the gateway client in, in the background."""
        if not self.token:
            logger.warning("DISCORD_TOKEN not set; voice features disabled")
            return
        self.client = SoundboardClient(self)
        self._client_task = asyncio.create_task(self._run_client())

    async def _run_client(self):
        try:
            await self.client.start(self.token)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Discord client stopped: {e}")

    async def shutdown(self):
        await self.leave(forget=False)
        if self.client is not None and not self.client.is_closed():
            await self.client.close()
        if self._client_task is not None:
            self._client_task.cancel()
        logger.info("VoiceManager shutdown complete")

    # ============ Server state ============

    def _update_server_state(self, **changes):
        saved = self.store.load("server", {})
        try:
            state = ServerState.model_validate(saved)
        except ValueError as e:
            logger.error(f"Failed to parse saved server state: {e}")
            state = ServerState()
        state = state.model_copy(update=changes)
        if not self.store.save("server", state.model_dump(mode="json", by_alias=True)):
            logger.warning("Failed to persist server state")

    def _last_channel_id(self) -> Optional[str]:
        return self.store.load("server", {}).get("lastChannelId")

    # ============ Channels ============

    @property
    def is_connected(self) -> bool:
        return self.voice_client is not None and self.voice_client.is_connected()

    def list_channels(self) -> list[VoiceChannelInfo]:
        if self.client is None:
            return []
        channels = []
        for guild in self.client.guilds:
            for channel in guild.voice_channels:
                channels.append(VoiceChannelInfo(
                    id=str(channel.id),
                    name=f"{guild.name} - {channel.name}"
                ))
        return channels

    def _get_channel(self, channel_id) -> discord.VoiceChannel:
        try:
            cid = int(channel_id)
        except (TypeError, ValueError):
            raise NotFoundError("Channel not found")
        channel = self.client.get_channel(cid) if self.client is not None else None
        if not isinstance(channel, discord.VoiceChannel):
            raise NotFoundError("Channel not found")
        return channel

    async def join(self, channel_id) -> str:
        """Join a voice channel, leaving the current one first."""
        channel = self._get_channel(channel_id)

        await self.leave(forget=False)

        try:
            voice_client = await channel.connect()
        except Exception as e:
            logger.error(f"Voice connection error: {e}")
            await self.leave(forget=False)
            raise TransportError(f"Failed to join {channel.name}")

        self.voice_client = voice_client
        self.active_guild_id = channel.guild.id
        self.player.subscribe(voice_client)
        self._update_server_state(last_channel_id=str(channel.id))

        logger.info(f"Joined voice channel {channel.guild.name} - {channel.name}")
        return channel.name

    async def leave(self, forget: bool = True) -> bool:
        """
        Stop playback and drop the voice connection.

        Returns False if there was no connection. forget clears the channel
        remembered for auto-rejoin.
        """
        if forget:
            self._update_server_state(last_channel_id=None)

        if self.active_guild_id is None and self.voice_client is None:
            return False

        self._leaving = True
        try:
            self.player.unsubscribe()
            voice_client = self.voice_client
            self.voice_client = None
            self.active_guild_id = None
            if voice_client is not None:
                try:
                    await voice_client.disconnect(force=True)
                except Exception as e:
                    logger.warning(f"Error while disconnecting: {e}")
        finally:
            self._leaving = False

        logger.info("Left voice channel")
        return True

    async def handle_disconnect(self):
        """The bot was removed from its channel by Discord or a moderator."""
        if self._leaving or self.voice_client is None:
            return
        logger.warning("Voice connection lost, resetting")
        await self.leave(forget=False)

    async def rejoin_last_channel(self):
        channel_id = self._last_channel_id()
        if not channel_id or self.is_connected:
            return
        try:
            name = await self.join(channel_id)
            logger.info(f"Auto-rejoined {name}")
        except (NotFoundError, TransportError) as e:
            logger.warning(f"Could not rejoin last channel {channel_id}: {e}")
