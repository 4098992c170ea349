"""Tests for the geolocation coordinator and platforms."""
import asyncio
import pytest
from geolocation import (
    DENIED,
    GRANTED,
    PROMPT,
    UNKNOWN,
    UNSUPPORTED,
    GeoDenied,
    GeolocationCoordinator,
    GeoTimeout,
    GeoUnavailable,
    GeoUnknown,
    GeoUnsupported,
    PositionError,
    StaticGeolocationPlatform,
    UnsupportedGeolocationPlatform,
)
from fakes import ScriptedPlatform


def test_initial_status():
    assert GeolocationCoordinator(ScriptedPlatform()).status == PROMPT
    assert GeolocationCoordinator(UnsupportedGeolocationPlatform()).status == UNSUPPORTED


def test_start_publishes_and_follows_changes():
    platform = ScriptedPlatform(permission=PROMPT)
    coordinator = GeolocationCoordinator(platform)
    seen = []
    coordinator.add_listener(seen.append)

    assert asyncio.run(coordinator.start()) == PROMPT
    platform.change_permission(GRANTED)
    platform.change_permission(DENIED)

    assert seen == [PROMPT, GRANTED, DENIED]
    assert coordinator.status == DENIED


def test_start_subscribes_once():
    platform = ScriptedPlatform()
    coordinator = GeolocationCoordinator(platform)

    async def scenario():
        await coordinator.start()
        await coordinator.start()

    asyncio.run(scenario())
    assert len(platform.listeners) == 1


def test_failed_status_query_is_unknown():
    platform = ScriptedPlatform()
    platform.query_error = RuntimeError("permissions API missing")
    coordinator = GeolocationCoordinator(platform)

    assert asyncio.run(coordinator.refresh_status()) == UNKNOWN
    assert coordinator.status == UNKNOWN


def test_unexpected_status_is_unknown():
    coordinator = GeolocationCoordinator(ScriptedPlatform(permission="sometimes"))
    assert asyncio.run(coordinator.refresh_status()) == UNKNOWN


def test_unsupported_platform():
    coordinator = GeolocationCoordinator(UnsupportedGeolocationPlatform())

    assert coordinator.supported is False
    assert asyncio.run(coordinator.refresh_status()) == UNSUPPORTED
    with pytest.raises(GeoUnsupported):
        asyncio.run(coordinator.resolve_current_position())


def test_resolve_position():
    coordinator = GeolocationCoordinator(ScriptedPlatform(position=(40.7, -74.0)))
    assert asyncio.run(coordinator.resolve_current_position(1000)) == (40.7, -74.0)


@pytest.mark.parametrize("code,error_cls", [
    (PositionError.PERMISSION_DENIED, GeoDenied),
    (PositionError.POSITION_UNAVAILABLE, GeoUnavailable),
    (PositionError.TIMEOUT, GeoTimeout),
    (99, GeoUnknown),
])
def test_position_errors_are_classified(code, error_cls):
    platform = ScriptedPlatform(error_code=code)
    coordinator = GeolocationCoordinator(platform)

    with pytest.raises(error_cls):
        asyncio.run(coordinator.resolve_current_position(1000))
    assert platform.position_requests == 1


def test_error_messages_are_distinct():
    messages = {cls().message for cls in (GeoDenied, GeoUnavailable, GeoTimeout, GeoUnsupported, GeoUnknown)}
    assert len(messages) == 5


def test_slow_fix_times_out():
    coordinator = GeolocationCoordinator(ScriptedPlatform(delay=1.0))

    with pytest.raises(GeoTimeout):
        asyncio.run(coordinator.resolve_current_position(timeout_ms=20))


def test_unexpected_platform_failure_is_unknown():
    class BrokenPlatform(ScriptedPlatform):
        async def get_current_position(self):
            raise OSError("sensor offline")

    with pytest.raises(GeoUnknown):
        asyncio.run(GeolocationCoordinator(BrokenPlatform()).resolve_current_position())


def test_static_platform():
    platform = StaticGeolocationPlatform((48.85, 2.35))
    seen = []
    platform.on_permission_change(seen.append)

    assert asyncio.run(platform.get_current_position()) == (48.85, 2.35)

    platform.set_permission(DENIED)
    assert seen == [DENIED]
    with pytest.raises(PositionError) as exc_info:
        asyncio.run(platform.get_current_position())
    assert exc_info.value.code == PositionError.PERMISSION_DENIED


def test_static_platform_without_position():
    coordinator = GeolocationCoordinator(StaticGeolocationPlatform(None))
    with pytest.raises(GeoUnavailable):
        asyncio.run(coordinator.resolve_current_position())
