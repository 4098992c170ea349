"""Application state, intents and the pure state transition function."""
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Tuple
from weather_data import ForecastDay, WeatherSnapshot
from forecast import PAGE_SIZE, page_count, page_slice
from geolocation import PROMPT
from storage import FAVORITES_KEY, HISTORY_KEY, THEME_KEY, UNIT_KEY, KeyValueStore

UNITS = ("metric", "imperial")
THEMES = ("light", "dark")
HISTORY_LIMIT = 10


@dataclass(frozen=True)
class FavoriteEntry:
    """A saved city; ``city`` is the unique key."""
    city: str
    country: str = ""
    temp: Optional[int] = None
    unit: str = "metric"
    icon: str = "01d"
    timestamp: int = 0  # when it was added, milliseconds since the epoch

    @classmethod
    def from_snapshot(cls, snapshot: WeatherSnapshot, added_at: Optional[int] = None) -> "FavoriteEntry":
        return cls(
            city=snapshot.city,
            country=snapshot.country or "",
            temp=snapshot.temperature,
            unit=snapshot.unit,
            icon=snapshot.icon or "01d",
            timestamp=added_at if added_at is not None else int(time.time() * 1000),
        )

    def to_dict(self) -> dict:
        return {
            "city": self.city,
            "country": self.country,
            "temp": self.temp,
            "unit": self.unit,
            "icon": self.icon,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FavoriteEntry":
        return cls(
            city=data["city"],
            country=data.get("country") or "",
            temp=data.get("temp"),
            unit=data.get("unit") or "metric",
            icon=data.get("icon") or "01d",
            timestamp=data.get("timestamp") or 0,
        )


@dataclass(frozen=True)
class Preferences:
    unit: str = "metric"
    theme: str = "light"


@dataclass(frozen=True)
class ApplicationState:
    current_weather: Optional[WeatherSnapshot] = None
    forecast: Tuple[ForecastDay, ...] = ()
    loading: bool = False
    error: Optional[str] = None
    search_history: Tuple[str, ...] = ()
    favorites: Tuple[FavoriteEntry, ...] = ()
    preferences: Preferences = field(default_factory=Preferences)
    current_page: int = 0
    items_per_page: int = PAGE_SIZE
    location_permission: str = PROMPT

    @property
    def unit(self) -> str:
        return self.preferences.unit

    @property
    def theme(self) -> str:
        return self.preferences.theme


# Intents the presentation layer dispatches.

@dataclass(frozen=True)
class Search:
    city: str


@dataclass(frozen=True)
class Locate:
    pass


@dataclass(frozen=True)
class SelectSuggestion:
    lat: float
    lon: float


@dataclass(frozen=True)
class ChangeUnit:
    unit: str

    def __post_init__(self):
        if self.unit not in UNITS:
            raise ValueError(f"unit must be one of {UNITS}, got {self.unit!r}")


@dataclass(frozen=True)
class ChangeTheme:
    theme: str

    def __post_init__(self):
        if self.theme not in THEMES:
            raise ValueError(f"theme must be one of {THEMES}, got {self.theme!r}")


@dataclass(frozen=True)
class SetPage:
    page: int


@dataclass(frozen=True)
class AddToHistory:
    city: str


@dataclass(frozen=True)
class RemoveFromHistory:
    city: str


@dataclass(frozen=True)
class ClearHistory:
    pass


@dataclass(frozen=True)
class AddToFavorites:
    entry: FavoriteEntry


@dataclass(frozen=True)
class RemoveFromFavorites:
    city: str


@dataclass(frozen=True)
class ClearFavorites:
    pass


@dataclass(frozen=True)
class ClearError:
    pass


# Transitions only the store commits.

@dataclass(frozen=True)
class FetchStart:
    pass


@dataclass(frozen=True)
class FetchSuccess:
    current: Optional[WeatherSnapshot]
    forecast: Tuple[ForecastDay, ...] = ()


@dataclass(frozen=True)
class FetchError:
    message: Optional[str]


@dataclass(frozen=True)
class SetUnit:
    unit: str


@dataclass(frozen=True)
class SetLocationPermission:
    status: str


def reduce(state: ApplicationState, action: Any) -> ApplicationState:
    """
    Compute the state that follows ``action``.

    Returns ``state`` itself when the action changes nothing, so callers can
    detect no-ops by identity.
    """
    if isinstance(action, FetchStart):
        return replace(state, loading=True, error=None)

    if isinstance(action, FetchSuccess):
        return replace(
            state,
            loading=False,
            current_weather=action.current,
            forecast=tuple(action.forecast),
            current_page=0,
            error=None,
        )

    if isinstance(action, FetchError):
        return replace(state, loading=False, error=action.message)

    if isinstance(action, AddToHistory):
        history = (action.city,) + tuple(c for c in state.search_history if c != action.city)
        return replace(state, search_history=history[:HISTORY_LIMIT])

    if isinstance(action, RemoveFromHistory):
        if action.city not in state.search_history:
            return state
        return replace(state, search_history=tuple(c for c in state.search_history if c != action.city))

    if isinstance(action, ClearHistory):
        return replace(state, search_history=())

    if isinstance(action, AddToFavorites):
        if any(fav.city == action.entry.city for fav in state.favorites):
            return state
        return replace(state, favorites=state.favorites + (action.entry,))

    if isinstance(action, RemoveFromFavorites):
        if not any(fav.city == action.city for fav in state.favorites):
            return state
        return replace(state, favorites=tuple(f for f in state.favorites if f.city != action.city))

    if isinstance(action, ClearFavorites):
        return replace(state, favorites=())

    if isinstance(action, SetUnit):
        return replace(state, preferences=replace(state.preferences, unit=action.unit))

    if isinstance(action, ChangeTheme):
        return replace(state, preferences=replace(state.preferences, theme=action.theme))

    if isinstance(action, SetPage):
        if action.page == state.current_page:
            return state
        return replace(state, current_page=action.page)

    if isinstance(action, ClearError):
        if state.error is None:
            return state
        return replace(state, error=None)

    if isinstance(action, SetLocationPermission):
        if action.status == state.location_permission:
            return state
        return replace(state, location_permission=action.status)

    logging.warning(f"Ignoring unknown action {action!r}")
    return state


def page_total(state: ApplicationState) -> int:
    return page_count(len(state.forecast), state.items_per_page)


def visible_forecast(state: ApplicationState) -> list:
    """Forecast days on the current page."""
    return page_slice(state.forecast, state.current_page, state.items_per_page)


def is_favorite(state: ApplicationState, city: str) -> bool:
    return any(fav.city == city for fav in state.favorites)


def load_initial_state(storage: KeyValueStore) -> ApplicationState:
    """
    Build the startup state from persisted values.

    Missing or malformed values fall back to empty collections and default
    preferences.
    """
    history = storage.get(HISTORY_KEY) or []
    if not isinstance(history, list):
        logging.warning("Discarding malformed search history")
        history = []
    unique = []
    for city in history:
        if isinstance(city, str) and city not in unique:
            unique.append(city)

    favorites = []
    raw_favorites = storage.get(FAVORITES_KEY) or []
    if not isinstance(raw_favorites, list):
        logging.warning("Discarding malformed favorites")
        raw_favorites = []
    for item in raw_favorites:
        try:
            entry = FavoriteEntry.from_dict(item)
        except (KeyError, TypeError, AttributeError):
            logging.warning(f"Skipping malformed favorite: {item!r}")
            continue
        if not any(fav.city == entry.city for fav in favorites):
            favorites.append(entry)

    theme = storage.get(THEME_KEY)
    unit = storage.get(UNIT_KEY)
    preferences = Preferences(
        unit=unit if unit in UNITS else "metric",
        theme=theme if theme in THEMES else "light",
    )
    return ApplicationState(
        search_history=tuple(unique[:HISTORY_LIMIT]),
        favorites=tuple(favorites),
        preferences=preferences,
    )
