import pytest

from soundboard.errors import ForbiddenError, NotFoundError, RateLimitError, ValidationError
from soundboard.models import PlaybackStatus, UserRole
from soundboard.services.player import PlayerStatus

from fakes import make_user, settle, write_sound


ROOT = make_user("superadmin", "root")
ALICE = make_user("admin", "alice")
BOB = make_user("admin", "bob")
CAROL = make_user("user", "carol")
GUEST = make_user("guest", ip="10.0.0.9")


@pytest.fixture
def playback(context, config, probe):
    write_sound(config.SOUNDS_DIR, "airhorn.mp3")
    write_sound(config.SOUNDS_DIR, "long.mp3")
    probe.durations["airhorn.mp3"] = 4.0
    probe.durations["long.mp3"] = 60.0
    return context.playback


async def connect(context):
    await context.voice.join("100")
    return context.voice.voice_client


@pytest.mark.asyncio
async def test_start_requires_voice_connection(playback):
    with pytest.raises(ValidationError):
        await playback.start(ALICE, "airhorn.mp3")
    assert playback.state.status == PlaybackStatus.IDLE


@pytest.mark.asyncio
async def test_start_validates_file(context, playback):
    await connect(context)

    with pytest.raises(ValidationError):
        await playback.start(ALICE, "")
    with pytest.raises(ValidationError):
        await playback.start(ALICE, "../secret.mp3")
    with pytest.raises(NotFoundError):
        await playback.start(ALICE, "missing.mp3")


@pytest.mark.asyncio
async def test_start_sets_state_and_plays_from_offset(context, playback, clock):
    vc = await connect(context)

    state = await playback.start(ALICE, "long.mp3", start_time=12.5)

    assert state.status == PlaybackStatus.PLAYING
    assert state.filename == "long.mp3"
    assert state.start_time_offset == 12.5
    assert state.start_time == clock.now
    assert state.duration == 60.0
    assert state.started_by.username == "alice"
    assert vc.source.offset == 12.5
    assert vc.source.volume == playback.volume
    assert context.player.status == PlayerStatus.PLAYING


@pytest.mark.asyncio
@pytest.mark.parametrize("offset", [-1, "abc", 60.0, 61, True])
async def test_start_rejects_bad_offsets(context, playback, offset):
    vc = await connect(context)

    with pytest.raises(ValidationError):
        await playback.start(ALICE, "long.mp3", start_time=offset)

    assert vc.played == []
    assert playback.state.status == PlaybackStatus.IDLE


@pytest.mark.asyncio
async def test_current_time_is_live_monotonic_and_clamped(context, playback, clock):
    await connect(context)
    await playback.start(ALICE, "airhorn.mp3", start_time=1.0)

    times = []
    for _ in range(5):
        clock.advance(0.9)
        times.append(playback.view().current_time)

    assert times == sorted(times)
    assert times[0] == pytest.approx(1.9)
    assert max(times) <= 4.0

    clock.advance(30)
    assert playback.view().current_time == 4.0


@pytest.mark.asyncio
async def test_pause_then_resume_keeps_position(context, playback, clock):
    vc = await connect(context)
    await playback.start(ALICE, "long.mp3", start_time=5.0)
    clock.advance(3.25)

    state = playback.pause(ALICE)
    assert state.paused_at == pytest.approx(8.25)
    assert vc.paused
    view = playback.view()
    assert view.status == PlaybackStatus.PAUSED
    assert view.current_time == pytest.approx(8.25)

    clock.advance(20)
    assert playback.view().current_time == pytest.approx(8.25)

    playback.resume(ALICE)
    assert not vc.paused
    view = playback.view()
    assert view.status == PlaybackStatus.PLAYING
    assert view.current_time == pytest.approx(8.25, abs=0.01)
    assert playback.state.paused_at is None


@pytest.mark.asyncio
async def test_pause_and_resume_require_matching_status(context, playback):
    await connect(context)

    with pytest.raises(ValidationError):
        playback.pause(ALICE)

    await playback.start(ALICE, "long.mp3")
    with pytest.raises(ValidationError):
        playback.resume(ALICE)


@pytest.mark.asyncio
async def test_other_admin_cannot_control_admin_track(context, playback):
    await connect(context)
    await playback.start(ALICE, "long.mp3")

    for action in (playback.pause, playback.stop):
        with pytest.raises(ForbiddenError):
            action(BOB)
    assert playback.state.status == PlaybackStatus.PLAYING

    playback.pause(ROOT)
    with pytest.raises(ForbiddenError):
        playback.resume(BOB)
    playback.resume(ROOT)
    playback.stop(ROOT)
    assert playback.state.status == PlaybackStatus.IDLE


@pytest.mark.asyncio
async def test_admin_can_stop_user_track(context, playback):
    await connect(context)
    await playback.start(CAROL, "long.mp3")

    playback.stop(BOB)

    assert playback.state.status == PlaybackStatus.IDLE


@pytest.mark.asyncio
async def test_stop_is_idempotent_with_player_idle(context, playback):
    vc = await connect(context)
    await playback.start(ALICE, "long.mp3")

    playback.stop(ALICE)
    await settle()

    assert vc.source is None
    assert context.player.status == PlayerStatus.IDLE
    assert playback.state.status == PlaybackStatus.IDLE
    playback.stop(ALICE)
    assert playback.view().status == PlaybackStatus.IDLE


@pytest.mark.asyncio
async def test_player_finishing_resets_state(context, playback):
    vc = await connect(context)
    await playback.start(CAROL, "airhorn.mp3")

    vc.finish()
    await settle()

    assert playback.state.status == PlaybackStatus.IDLE
    assert playback.view().status == PlaybackStatus.IDLE


@pytest.mark.asyncio
async def test_player_error_resets_state(context, playback, caplog):
    vc = await connect(context)
    await playback.start(CAROL, "airhorn.mp3")

    vc.finish(RuntimeError("ffmpeg exited"))
    await settle()

    assert playback.state.status == PlaybackStatus.IDLE
    assert "ffmpeg exited" in caplog.text


@pytest.mark.asyncio
async def test_replaced_track_completion_does_not_reset_new_track(context, playback):
    await connect(context)
    await playback.start(ALICE, "airhorn.mp3")
    await playback.start(ALICE, "long.mp3")
    await settle()

    assert playback.state.filename == "long.mp3"
    assert playback.view().status == PlaybackStatus.PLAYING


@pytest.mark.asyncio
async def test_user_cannot_preempt_admin_track(context, playback):
    await connect(context)
    await playback.start(ALICE, "long.mp3")

    for user in (CAROL, GUEST):
        with pytest.raises(ForbiddenError):
            await playback.start(user, "airhorn.mp3")

    assert playback.state.filename == "long.mp3"
    await playback.start(BOB, "airhorn.mp3")
    assert playback.state.started_by.username == "bob"


@pytest.mark.asyncio
async def test_user_can_start_after_admin_track_finishes(context, playback):
    vc = await connect(context)
    await playback.start(ALICE, "long.mp3")
    vc.finish()
    await settle()

    await playback.start(CAROL, "airhorn.mp3")

    assert playback.state.started_by.username == "carol"


@pytest.mark.asyncio
@pytest.mark.parametrize("locked_by,user,allowed", [
    (UserRole.SUPERADMIN, ROOT, True),
    (UserRole.SUPERADMIN, ALICE, False),
    (UserRole.SUPERADMIN, CAROL, False),
    (UserRole.SUPERADMIN, GUEST, False),
    (UserRole.ADMIN, ALICE, True),
    (UserRole.ADMIN, CAROL, False),
    (UserRole.ADMIN, GUEST, False),
])
async def test_lock_gates_start(context, playback, locked_by, user, allowed):
    await connect(context)
    context.guests.update_settings(enabled=True)
    context.library.set_lock(True, locked_by)

    if allowed:
        await playback.start(user, "airhorn.mp3")
        assert playback.state.status == PlaybackStatus.PLAYING
    else:
        with pytest.raises(ForbiddenError):
            await playback.start(user, "airhorn.mp3")
        assert playback.state.status == PlaybackStatus.IDLE


@pytest.mark.asyncio
async def test_guest_cooldown_counts_from_accepted_play(context, playback, clock):
    await connect(context)

    await playback.start(GUEST, "airhorn.mp3")
    clock.advance(4)
    with pytest.raises(RateLimitError) as exc_info:
        await playback.start(GUEST, "airhorn.mp3")
    assert exc_info.value.cooldown_remaining == pytest.approx(6.0)

    clock.advance(6)
    await playback.start(GUEST, "airhorn.mp3")

    history = context.guests.history()
    assert [h.ip for h in history] == ["10.0.0.9", "10.0.0.9"]
    assert history[0].display_name == "airhorn.mp3"


@pytest.mark.asyncio
async def test_rejected_guest_play_does_not_touch_cooldown(context, playback, clock):
    await connect(context)
    context.library.set_lock(True, UserRole.ADMIN)

    with pytest.raises(ForbiddenError):
        await playback.start(GUEST, "airhorn.mp3")

    context.library.set_lock(False, UserRole.ADMIN)
    await playback.start(GUEST, "airhorn.mp3")
    assert len(context.guests.history()) == 1


@pytest.mark.asyncio
async def test_player_failure_leaves_state_untouched(context, playback):
    vc = await connect(context)

    def broken_play(source, after=None):
        raise RuntimeError("Not connected to voice.")

    vc.play = broken_play

    with pytest.raises(Exception) as exc_info:
        await playback.start(ALICE, "airhorn.mp3")

    assert exc_info.value.status_code == 500
    assert playback.state.status == PlaybackStatus.IDLE
    assert context.player.status == PlayerStatus.IDLE


@pytest.mark.asyncio
async def test_volume_is_clamped_applied_live_and_persisted(context, playback, config):
    vc = await connect(context)
    await playback.start(ALICE, "long.mp3")

    assert playback.set_volume("0.8") == 0.8
    assert vc.source.volume == 0.8
    assert playback.set_volume(7) == 1.0
    assert playback.set_volume(-1) == 0.0

    with pytest.raises(ValidationError):
        playback.set_volume("loud")

    assert context.store.load("server", {})["volume"] == 0.0


@pytest.mark.asyncio
async def test_disconnect_moves_player_to_idle(context, playback):
    await connect(context)
    await playback.start(ALICE, "long.mp3")

    await context.voice.leave()
    await settle()

    assert playback.state.status == PlaybackStatus.IDLE
    assert playback.view().connected is False


@pytest.mark.asyncio
async def test_autopaused_reports_paused_with_frozen_time(context, playback, clock):
    vc = await connect(context)
    await playback.start(ALICE, "long.mp3")
    clock.advance(1)

    vc.connected = False

    assert context.player.status == PlayerStatus.AUTOPAUSED
    view = playback.view()
    assert view.status == PlaybackStatus.PAUSED
    assert view.current_time == pytest.approx(1.0)

    clock.advance(5)
    view = playback.view()
    assert view.status == PlaybackStatus.PAUSED
    assert view.current_time == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_reconnect_continues_from_autopause_position(context, playback, clock):
    vc = await connect(context)
    await playback.start(ALICE, "long.mp3", start_time=2.0)
    clock.advance(1)
    vc.connected = False
    playback.view()

    clock.advance(30)
    vc.connected = True

    view = playback.view()
    assert view.status == PlaybackStatus.PLAYING
    assert view.current_time == pytest.approx(3.0)
    clock.advance(2)
    assert playback.view().current_time == pytest.approx(5.0)


@pytest.mark.asyncio
async def test_pause_during_autopause_keeps_frozen_position(context, playback, clock):
    vc = await connect(context)
    await playback.start(ALICE, "long.mp3")
    clock.advance(4)
    vc.connected = False
    playback.view()
    clock.advance(10)

    state = playback.pause(ALICE)

    assert state.paused_at == pytest.approx(4.0)
