import sys
import pathlib

import pytest
from fastapi.testclient import TestClient

# Ensure project root is on sys.path so tests can import the package
ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from soundboard.config import SoundboardConfig  # noqa: E402
from soundboard.main import create_app  # noqa: E402
from soundboard.services.context import SoundboardContext  # noqa: E402
from soundboard.services.player import AudioPlayer  # noqa: E402

from fakes import USERS, FakeClock, FakeProbe, FakeVoiceManager, fake_resource_factory  # noqa: E402


@pytest.fixture
def config(tmp_path):
    cfg = SoundboardConfig()
    cfg.USERS = dict(USERS)
    cfg.SESSION_SECRET = "test-secret"
    cfg.DATA_DIR = tmp_path / "data"
    cfg.SOUNDS_DIR = tmp_path / "sounds"
    cfg.PENDING_DIR = tmp_path / "pending"
    cfg.PUBLIC_DIR = tmp_path / "public"
    cfg.CORS_ORIGINS = []
    cfg.COOKIE_SECURE = False
    cfg.TRUST_PROXY = True
    cfg.GUEST_COOLDOWN = 10.0
    return cfg


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def probe():
    return FakeProbe()


@pytest.fixture
def context(config, clock, probe):
    player = AudioPlayer()
    ctx = SoundboardContext.create(
        config,
        player=player,
        voice=FakeVoiceManager(player),
        probe=probe,
        resource_factory=fake_resource_factory,
    )
    ctx.guests.clock = clock
    ctx.moderation.clock = clock
    ctx.playback.clock = clock
    return ctx


@pytest.fixture
def client(context):
    app = create_app(context=context)
    with TestClient(app) as test_client:
        yield test_client
