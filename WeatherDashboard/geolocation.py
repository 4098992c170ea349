"""Geolocation platform abstraction and permission/position coordinator."""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple

UNKNOWN = "unknown"
PROMPT = "prompt"
GRANTED = "granted"
DENIED = "denied"
UNSUPPORTED = "unsupported"

PERMISSION_STATES = (UNKNOWN, PROMPT, GRANTED, DENIED, UNSUPPORTED)

DEFAULT_TIMEOUT_MS = 10000

PermissionListener = Callable[[str], None]


class GeolocationError(Exception):
    """Base class for geolocation failures; ``message`` is user-facing."""

    default_message = "Unable to retrieve your location. Please search for a city manually."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class GeoDenied(GeolocationError):
    default_message = "Location access was denied."


class GeoUnavailable(GeolocationError):
    default_message = "Location information is unavailable. Please search for a city manually."


class GeoTimeout(GeolocationError):
    default_message = "Location request timed out. Please search for a city manually."


class GeoUnsupported(GeolocationError):
    default_message = "Geolocation is not supported on this device. Please search for a city manually."


class GeoUnknown(GeolocationError):
    pass


class PositionError(Exception):
    """Raised by platforms when a position fix fails; mirrors the browser error codes."""

    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3

    def __init__(self, code: int, message: str = ""):
        self.code = code
        super().__init__(message or f"position error {code}")


class GeolocationPlatform(ABC):
    """What the device offers: a permission query/subscription and one-shot fixes."""

    @property
    def supported(self) -> bool:
        return True

    @abstractmethod
    async def query_permission(self) -> str:
        """Return one of ``prompt``, ``granted`` or ``denied``."""

    @abstractmethod
    def on_permission_change(self, listener: PermissionListener) -> None:
        """Register a callback invoked with the new state on every change."""

    @abstractmethod
    async def get_current_position(self) -> Tuple[float, float]:
        """
        Resolve the device position.

        Raises:
            PositionError: If no fix can be produced
        """


class UnsupportedGeolocationPlatform(GeolocationPlatform):
    """A device without any location capability."""

    @property
    def supported(self) -> bool:
        return False

    async def query_permission(self) -> str:
        return UNSUPPORTED

    def on_permission_change(self, listener: PermissionListener) -> None:
        pass

    async def get_current_position(self) -> Tuple[float, float]:
        raise PositionError(PositionError.POSITION_UNAVAILABLE, "no geolocation capability")


class StaticGeolocationPlatform(GeolocationPlatform):
    """
    Platform reporting a fixed, configured position.

    The permission state can be changed at runtime with ``set_permission``,
    which notifies subscribers the way a browser permission change would.
    """

    def __init__(self, coordinates: Optional[Tuple[float, float]], permission: str = GRANTED):
        self.coordinates = coordinates
        self.permission = permission
        self._listeners: List[PermissionListener] = []

    async def query_permission(self) -> str:
        return self.permission

    def on_permission_change(self, listener: PermissionListener) -> None:
        self._listeners.append(listener)

    def set_permission(self, permission: str) -> None:
        self.permission = permission
        for listener in list(self._listeners):
            listener(permission)

    async def get_current_position(self) -> Tuple[float, float]:
        if self.permission == DENIED:
            raise PositionError(PositionError.PERMISSION_DENIED, "permission denied")
        if self.coordinates is None:
            raise PositionError(PositionError.POSITION_UNAVAILABLE, "no configured position")
        return self.coordinates


_POSITION_ERRORS = {
    PositionError.PERMISSION_DENIED: GeoDenied,
    PositionError.POSITION_UNAVAILABLE: GeoUnavailable,
    PositionError.TIMEOUT: GeoTimeout,
}


class GeolocationCoordinator:
    """
    Tracks the location permission state and resolves device positions.

    Failures are translated into the ``GeolocationError`` family. Nothing is
    retried here; retry policy belongs to the caller.
    """

    def __init__(self, platform: GeolocationPlatform):
        self.platform = platform
        self._status = PROMPT if platform.supported else UNSUPPORTED
        self._listeners: List[PermissionListener] = []
        self._subscribed = False

    @property
    def supported(self) -> bool:
        return self.platform.supported

    @property
    def status(self) -> str:
        return self._status

    def add_listener(self, listener: PermissionListener) -> None:
        self._listeners.append(listener)

    def _publish(self, status: str) -> None:
        self._status = status
        for listener in list(self._listeners):
            listener(status)

    async def start(self) -> str:
        """Query the initial status and follow platform permission changes."""
        status = await self.refresh_status()
        if self.supported and not self._subscribed:
            self.platform.on_permission_change(self._on_platform_change)
            self._subscribed = True
        return status

    def _on_platform_change(self, status: str) -> None:
        logging.debug(f"Location permission changed to: {status}")
        self._publish(status)

    async def refresh_status(self) -> str:
        """Re-query the permission state and publish it."""
        if not self.supported:
            self._publish(UNSUPPORTED)
            return UNSUPPORTED
        try:
            status = await self.platform.query_permission()
        except Exception as e:
            logging.warning(f"Could not check location permission status: {e}")
            status = UNKNOWN
        if status not in PERMISSION_STATES:
            logging.warning(f"Unexpected location permission state '{status}'")
            status = UNKNOWN
        logging.debug(f"Location permission status: {status}")
        self._publish(status)
        return status

    async def resolve_current_position(self, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> Tuple[float, float]:
        """
        Request a one-shot position fix, bounded by ``timeout_ms``.

        Raises:
            GeoUnsupported: If the device has no location capability
            GeoDenied: If the platform reports permission denial
            GeoUnavailable: If the position cannot be determined
            GeoTimeout: If no fix arrives in time
            GeoUnknown: For any other failure
        """
        if not self.supported:
            raise GeoUnsupported()
        try:
            lat, lon = await asyncio.wait_for(
                self.platform.get_current_position(), timeout=timeout_ms / 1000.0
            )
        except asyncio.TimeoutError as e:
            logging.warning(f"Location request timed out after {timeout_ms}ms")
            raise GeoTimeout() from e
        except PositionError as e:
            logging.warning(f"Location request failed: {e}")
            raise _POSITION_ERRORS.get(e.code, GeoUnknown)() from e
        except Exception as e:
            logging.error(f"Unexpected location failure: {e}", exc_info=True)
            raise GeoUnknown() from e
        logging.info(f"Got location: {lat}, {lon}")
        return lat, lon
