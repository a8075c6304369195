import discord
import pytest

from soundboard.errors import NotFoundError, TransportError
from soundboard.services.config_store import ConfigStore
from soundboard.services.player import AudioPlayer
from soundboard.services.voice import VoiceManager

from fakes import FakeVoiceClient


class DummyGuild:
    def __init__(self, gid, name):
        self.id = gid
        self.name = name
        self.voice_channels = []


class DummyVoiceChannel:
    def __init__(self, cid, name, guild, fail=False):
        self.id = cid
        self.name = name
        self.guild = guild
        self.fail = fail
        guild.voice_channels.append(self)

    async def connect(self):
        if self.fail:
            raise discord.ClientException("Voice connection timed out")
        return DisconnectableVoiceClient()


class DisconnectableVoiceClient(FakeVoiceClient):
    async def disconnect(self, force=False):
        self.connected = False


class DummyClient:
    def __init__(self, channels):
        self.channels = {c.id: c for c in channels}
        self.guilds = list({id(c.guild): c.guild for c in channels}.values())

    def get_channel(self, cid):
        return self.channels.get(cid)


@pytest.fixture
def store(tmp_path):
    return ConfigStore(tmp_path)


@pytest.fixture
def manager(monkeypatch, store):
    monkeypatch.setattr(discord, "VoiceChannel", DummyVoiceChannel)
    guild = DummyGuild(1, "Test Guild")
    general = DummyVoiceChannel(100, "General", guild)
    DummyVoiceChannel(200, "Broken", guild, fail=True)
    mgr = VoiceManager(AudioPlayer(), store)
    mgr.client = DummyClient(guild.voice_channels)
    return mgr


def test_list_channels(manager):
    channels = manager.list_channels()
    assert [(c.id, c.name) for c in channels] == [
        ("100", "Test Guild - General"),
        ("200", "Test Guild - Broken"),
    ]


def test_list_channels_without_client(store):
    assert VoiceManager(AudioPlayer(), store).list_channels() == []


@pytest.mark.asyncio
async def test_join_persists_last_channel(manager, store):
    name = await manager.join("100")

    assert name == "General"
    assert manager.is_connected
    assert store.load("server", {})["lastChannelId"] == "100"


@pytest.mark.asyncio
@pytest.mark.parametrize("channel_id", ["999", "abc", None])
async def test_join_unknown_channel(manager, channel_id):
    with pytest.raises(NotFoundError):
        await manager.join(channel_id)


@pytest.mark.asyncio
async def test_join_failure_leaves_disconnected(manager, store):
    with pytest.raises(TransportError):
        await manager.join("200")

    assert not manager.is_connected
    assert store.load("server", {}).get("lastChannelId") is None


@pytest.mark.asyncio
async def test_join_replaces_previous_connection(manager):
    await manager.join("100")
    first = manager.voice_client

    await manager.join("100")

    assert first.connected is False
    assert manager.voice_client is not first


@pytest.mark.asyncio
async def test_leave(manager, store):
    assert await manager.leave() is False

    await manager.join("100")
    vc = manager.voice_client
    assert await manager.leave() is True

    assert not vc.connected
    assert not manager.is_connected
    assert store.load("server", {})["lastChannelId"] is None


@pytest.mark.asyncio
async def test_unexpected_disconnect_keeps_last_channel(manager, store):
    await manager.join("100")

    await manager.handle_disconnect()

    assert not manager.is_connected
    assert store.load("server", {})["lastChannelId"] == "100"


@pytest.mark.asyncio
async def test_rejoin_last_channel(manager, store):
    store.save("server", {"volume": 0.5, "lastChannelId": "100"})

    await manager.rejoin_last_channel()

    assert manager.is_connected


@pytest.mark.asyncio
async def test_rejoin_vanished_channel_is_logged(manager, store, caplog):
    store.save("server", {"volume": 0.5, "lastChannelId": "555"})

    await manager.rejoin_last_channel()

    assert not manager.is_connected
    assert "Could not rejoin" in caplog.text


@pytest.mark.asyncio
async def test_start_without_token_disables_voice(store, caplog):
    mgr = VoiceManager(AudioPlayer(), store, token="")

    await mgr.start()

    assert mgr.client is None
    assert "DISCORD_TOKEN not set" in caplog.text
