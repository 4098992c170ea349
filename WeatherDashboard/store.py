"""Weather store - the single owner and writer of application state."""
import logging
import threading
from typing import Any, Callable, List, Optional
from weather_provider import WeatherProviderError
from weather_data import AirQuality, CitySuggestion
from weather_service import WeatherGateway
from geolocation import (
    DEFAULT_TIMEOUT_MS,
    DENIED,
    GRANTED,
    UNSUPPORTED,
    GeoDenied,
    GeolocationCoordinator,
    GeolocationError,
    GeoUnsupported,
)
from storage import FAVORITES_KEY, HISTORY_KEY, THEME_KEY, UNIT_KEY, KeyValueStore
from forecast import clamp_page
from app_state import (
    AddToFavorites,
    AddToHistory,
    ApplicationState,
    ChangeTheme,
    ChangeUnit,
    ClearError,
    ClearFavorites,
    ClearHistory,
    FavoriteEntry,
    FetchError,
    FetchStart,
    FetchSuccess,
    Locate,
    RemoveFromFavorites,
    RemoveFromHistory,
    Search,
    SelectSuggestion,
    SetLocationPermission,
    SetPage,
    SetUnit,
    is_favorite,
    load_initial_state,
    reduce,
)

Listener = Callable[[ApplicationState], None]

# Intents that are plain state transitions with no I/O.
_PURE_INTENTS = (
    AddToHistory,
    RemoveFromHistory,
    ClearHistory,
    AddToFavorites,
    RemoveFromFavorites,
    ClearFavorites,
    ChangeTheme,
    ClearError,
)


class WeatherStore:
    """
    Holds the ApplicationState and applies intents to it.

    Transitions are serialized under a lock, so intents may be dispatched
    from several tasks or threads at once. Every weather fetch is tagged with
    a generation number; unless ``discard_stale`` is off, a response that
    arrives after a newer fetch was started is dropped instead of
    overwriting fresher data.
    """

    def __init__(
        self,
        gateway: WeatherGateway,
        geolocation: GeolocationCoordinator,
        storage: KeyValueStore,
        initial_state: Optional[ApplicationState] = None,
        geo_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        default_city: Optional[str] = None,
        discard_stale: bool = True,
    ):
        """
        Initialize the store.

        Args:
            gateway: Weather gateway used for all fetches
            geolocation: Coordinator for location permission and position
            storage: Durable store for history, favorites and preferences
            initial_state: Starting state (loaded from ``storage`` when None)
            geo_timeout_ms: Bound on a device position fix
            default_city: City searched after location access is denied
            discard_stale: Drop responses superseded by a newer fetch
        """
        self.gateway = gateway
        self.geolocation = geolocation
        self.storage = storage
        self.geo_timeout_ms = geo_timeout_ms
        self.default_city = default_city
        self.discard_stale = discard_stale

        self._state = initial_state if initial_state is not None else load_initial_state(storage)
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._generation = 0
        self._closed = False

        geolocation.add_listener(self._on_permission_change)

    def get_state(self) -> ApplicationState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for new states; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start(self) -> ApplicationState:
        """Publish the initial location permission and follow its changes."""
        await self.geolocation.start()
        return self._state

    def close(self) -> None:
        """Stop applying results; fetches still in flight are discarded when they land."""
        self._closed = True
        self._listeners.clear()

    async def dispatch(self, intent: Any) -> ApplicationState:
        """
        Apply an intent and return the resulting state.

        Fetching intents complete once their response (or failure) has been
        applied; pure intents complete immediately.

        Raises:
            TypeError: If ``intent`` is not a known intent
        """
        logging.info(f"Dispatching {intent!r}")
        if isinstance(intent, Search):
            await self._search(intent.city)
        elif isinstance(intent, Locate):
            await self._locate()
        elif isinstance(intent, SelectSuggestion):
            await self._fetch_coordinates(intent.lat, intent.lon, self._begin_fetch())
        elif isinstance(intent, ChangeUnit):
            await self._change_unit(intent.unit)
        elif isinstance(intent, SetPage):
            self._set_page(intent.page)
        elif isinstance(intent, _PURE_INTENTS):
            self._commit(intent)
        else:
            raise TypeError(f"Unknown intent: {intent!r}")
        return self._state

    def _commit(self, action: Any) -> ApplicationState:
        with self._lock:
            previous = self._state
            state = reduce(previous, action)
            if state is previous:
                return state
            self._state = state
            self._persist(previous, state)
            for listener in list(self._listeners):
                listener(state)
            return state

    def _persist(self, previous: ApplicationState, state: ApplicationState) -> None:
        if state.search_history != previous.search_history:
            self._write(HISTORY_KEY, list(state.search_history))
        if state.favorites != previous.favorites:
            self._write(FAVORITES_KEY, [fav.to_dict() for fav in state.favorites])
        if state.theme != previous.theme:
            self._write(THEME_KEY, state.theme)
        if state.unit != previous.unit:
            self._write(UNIT_KEY, state.unit)

    def _write(self, key: str, value: Any) -> None:
        # Persistence is best-effort; the in-memory state stays authoritative.
        try:
            self.storage.set(key, value)
        except OSError as e:
            logging.error(f"Failed to persist '{key}': {e}")

    def _begin_fetch(self) -> int:
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._commit(FetchStart())
        return generation

    def _is_current(self, generation: int) -> bool:
        if self._closed:
            logging.debug(f"Store closed, discarding result of fetch #{generation}")
            return False
        if self.discard_stale and generation != self._generation:
            logging.debug(f"Discarding stale result of fetch #{generation} (latest #{self._generation})")
            return False
        return True

    def _on_permission_change(self, status: str) -> None:
        if not self._closed:
            self._commit(SetLocationPermission(status))

    async def _search(self, city: str) -> None:
        city = (city or "").strip()
        if not city:
            return

        unit = self._state.unit
        generation = self._begin_fetch()
        try:
            current, forecast = await self.gateway.fetch_by_city_name(city, unit)
        except WeatherProviderError as e:
            logging.error(f"Search for '{city}' failed: {e.message}")
            if self._is_current(generation):
                self._commit(FetchError(e.message))
            return

        if self._is_current(generation):
            self._commit(FetchSuccess(current, tuple(forecast)))
            self._commit(AddToHistory(city))

    async def _fetch_coordinates(self, lat: float, lon: float, generation: int) -> None:
        try:
            current, forecast = await self.gateway.fetch_by_coordinates(lat, lon, self._state.unit)
        except WeatherProviderError as e:
            logging.error(f"Weather lookup for ({lat}, {lon}) failed: {e.message}")
            if self._is_current(generation):
                self._commit(FetchError(e.message))
            return

        if self._is_current(generation):
            self._commit(FetchSuccess(current, tuple(forecast)))
            if current.city:
                self._commit(AddToHistory(current.city))

    async def _locate(self) -> None:
        if not self.geolocation.supported:
            self._commit(FetchError(GeoUnsupported().message))
            self._commit(SetLocationPermission(UNSUPPORTED))
            return

        generation = self._begin_fetch()
        status = await self.geolocation.refresh_status()
        if status == DENIED:
            await self._location_blocked(generation)
            return

        try:
            lat, lon = await self.geolocation.resolve_current_position(self.geo_timeout_ms)
        except GeoDenied:
            self._commit(SetLocationPermission(DENIED))
            await self._location_blocked(generation)
            return
        except GeolocationError as e:
            if self._is_current(generation):
                self._commit(FetchError(e.message))
            return

        self._commit(SetLocationPermission(GRANTED))
        if self._is_current(generation):
            await self._fetch_coordinates(lat, lon, generation)

    async def _location_blocked(self, generation: int) -> None:
        # Blocked is a neutral state, not an error: clear results without a message.
        logging.info("Location access denied")
        if not self._is_current(generation):
            return
        self._commit(FetchSuccess(None, ()))
        if self.default_city:
            logging.info(f"Falling back to default city '{self.default_city}'")
            await self._search(self.default_city)

    async def _change_unit(self, unit: str) -> None:
        self._commit(SetUnit(unit))
        current = self._state.current_weather
        if current is not None and current.city:
            await self._search(current.city)

    def _set_page(self, page: int) -> None:
        state = self._state
        clamped = clamp_page(page, len(state.forecast), state.items_per_page)
        if clamped != page:
            logging.debug(f"Clamped page {page} to {clamped}")
        self._commit(SetPage(clamped))

    def is_favorite(self, city: str) -> bool:
        return is_favorite(self._state, city)

    async def add_current_to_favorites(self) -> ApplicationState:
        """Save the loaded city as a favorite; no-op when nothing is loaded."""
        current = self._state.current_weather
        if current is None:
            return self._state
        return await self.dispatch(AddToFavorites(FavoriteEntry.from_snapshot(current)))

    async def check_geolocation_status(self) -> str:
        return await self.geolocation.refresh_status()

    async def suggest_cities(self, text: str) -> List[CitySuggestion]:
        return await self.gateway.suggest_cities(text)

    async def air_quality(self) -> Optional[AirQuality]:
        """Air pollution reading for the loaded location; None when unavailable."""
        current = self._state.current_weather
        if current is None:
            return None
        return await self.gateway.fetch_air_quality(current.lat, current.lon)
