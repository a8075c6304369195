import pytest

from soundboard.errors import RateLimitError, ValidationError


def test_cooldown_remaining_strictly_decreases_until_boundary(context, clock):
    guests = context.guests
    guests.record_play("10.0.0.5", "airhorn.mp3", "Airhorn")

    remaining = []
    for _ in range(4):
        clock.advance(2.3)
        with pytest.raises(RateLimitError) as exc_info:
            guests.check_cooldown("10.0.0.5")
        remaining.append(exc_info.value.cooldown_remaining)

    assert remaining == sorted(remaining, reverse=True)
    assert len(set(remaining)) == len(remaining)
    assert all(r > 0 for r in remaining)

    clock.advance(10 - 2.3 * 4)
    guests.check_cooldown("10.0.0.5")


def test_cooldown_is_per_ip(context):
    context.guests.record_play("10.0.0.5", "airhorn.mp3", "Airhorn")

    context.guests.check_cooldown("10.0.0.6")


def test_rate_limit_error_carries_hint(context, clock):
    context.guests.record_play("10.0.0.5", "airhorn.mp3", "Airhorn")
    clock.advance(3)

    with pytest.raises(RateLimitError) as exc_info:
        context.guests.check_cooldown("10.0.0.5")

    assert exc_info.value.status_code == 429
    assert exc_info.value.to_dict()["cooldownRemaining"] == pytest.approx(7.0)


def test_history_is_bounded_and_evicts_oldest(context, clock):
    guests = context.guests
    for i in range(501):
        clock.advance(1)
        guests.record_play("10.0.0.5", f"sound{i}.mp3", f"Sound {i}")

    history = guests.history()
    assert len(history) == 500
    assert history[0].filename == "sound1.mp3"
    assert history[-1].filename == "sound500.mp3"


def test_block_and_unblock(context):
    guests = context.guests
    guests.update_settings(enabled=True)

    assert guests.admits("10.0.0.5")
    assert guests.block(" 10.0.0.5 ") == ["10.0.0.5"]
    assert not guests.admits("10.0.0.5")
    assert guests.unblock("10.0.0.5") == []
    assert guests.admits("10.0.0.5")


def test_block_requires_ip(context):
    with pytest.raises(ValidationError):
        context.guests.block("  ")


def test_guest_access_defaults_to_disabled(context):
    assert not context.guests.is_enabled()
    assert not context.guests.admits("10.0.0.5")


def test_update_settings_validates_before_writing(context):
    with pytest.raises(ValidationError):
        context.guests.update_settings(enabled=True, max_upload_bytes=0)

    assert not context.guests.is_enabled()


def test_corrupt_guest_document_self_heals(context, config):
    (config.DATA_DIR / "guest-data.json").write_text('{"enabled": "maybe?"}', encoding="utf-8")

    data = context.guests.load()

    assert data.enabled is False
    assert data.history == []


def test_document_uses_stored_field_names(context):
    context.guests.block("10.0.0.3")
    context.guests.update_settings(user_upload_enabled=True)

    saved = context.store.load("guests", {})
    assert saved["blockedIPs"] == ["10.0.0.3"]
    assert saved["userUploadEnabled"] is True
    assert saved["maxUploadBytes"] == 5 * 1024 * 1024
