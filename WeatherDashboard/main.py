"""Terminal weather dashboard."""
import argparse
import asyncio
import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from dotenv import load_dotenv

from openweather_provider import OpenWeatherProvider
from weather_service import WeatherGateway
from weather_data import CitySuggestion
from geolocation import (
    DEFAULT_TIMEOUT_MS,
    GeolocationCoordinator,
    GeolocationPlatform,
    StaticGeolocationPlatform,
    UnsupportedGeolocationPlatform,
)
from storage import JsonFileStore
from store import WeatherStore
from autocomplete import SuggestionDebouncer
from layout import format_air_quality, render_state
from app_state import (
    THEMES,
    UNITS,
    ApplicationState,
    ChangeTheme,
    ChangeUnit,
    ClearError,
    ClearFavorites,
    ClearHistory,
    AddToFavorites,
    FavoriteEntry,
    Locate,
    RemoveFromFavorites,
    RemoveFromHistory,
    Search,
    SelectSuggestion,
    SetPage,
)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_LOG_FILE = os.path.join(BASE_DIR, "weather-dashboard.log")
DEFAULT_STORAGE = "~/.weather-dashboard.json"

HELP_TEXT = """Commands:
  search <city>        look up a city
  locate               use this device's location
  suggest <text>       list matching cities
  pick <n>             load suggestion number n
  unit metric|imperial switch units (reloads the current city)
  theme light|dark     switch theme
  next | prev | page <n>
  fav add | fav rm <city> | fav clear
  history rm <city> | history clear
  air                  air quality for the loaded city
  dismiss              clear the error message
  quit"""


@dataclass
class Config:
    api_key: str
    lang: str
    coordinates: Optional[Tuple[float, float]]
    default_city: Optional[str]
    storage_path: str


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser("Terminal weather dashboard")
    parser.add_argument("--city", help="City to show on startup")
    parser.add_argument("--locate", action="store_true", help="Show the weather at this device's location")
    parser.add_argument("--units", choices=UNITS, help="Unit system (remembered between runs)")
    parser.add_argument("--theme", choices=THEMES, help="Theme (remembered between runs)")
    parser.add_argument("--storage", help="Path of the JSON file holding history, favorites and preferences")
    parser.add_argument("--timeout", type=int, default=10, help="HTTP timeout in seconds")
    parser.add_argument("--geo-timeout", type=int, default=DEFAULT_TIMEOUT_MS, help="Location timeout in ms")
    parser.add_argument("--log-file", default=DEFAULT_LOG_FILE)
    parser.add_argument("--once", action="store_true", help="Show the startup city and exit")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def setup_logging(log_file: str, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file)
        ]
    )


def load_config(storage_override: Optional[str] = None) -> Config:
    load_dotenv()
    api_key = os.getenv("WEATHER_API_KEY")
    lat = os.getenv("WEATHER_LAT")
    lon = os.getenv("WEATHER_LON")

    if not api_key:
        raise SystemExit("Missing WEATHER_API_KEY in environment")

    coordinates = None
    if lat and lon:
        try:
            coordinates = (float(lat), float(lon))
        except ValueError as exc:
            raise SystemExit(f"Invalid coordinates: {exc}") from exc

    config = Config(
        api_key=api_key,
        lang=os.getenv("WEATHER_LANG", "en"),
        coordinates=coordinates,
        default_city=os.getenv("WEATHER_DEFAULT_CITY") or None,
        storage_path=storage_override or os.getenv("WEATHER_STORAGE", DEFAULT_STORAGE),
    )
    logging.info(
        "Configuration loaded: lang=%s location=%s storage=%s",
        config.lang,
        "configured" if coordinates else "unavailable",
        config.storage_path,
    )
    return config


def build_store(config: Config, args: argparse.Namespace) -> WeatherStore:
    provider = OpenWeatherProvider(api_key=config.api_key, lang=config.lang, timeout=args.timeout)
    platform: GeolocationPlatform
    if config.coordinates is not None:
        platform = StaticGeolocationPlatform(config.coordinates)
    else:
        platform = UnsupportedGeolocationPlatform()
    store = WeatherStore(
        gateway=WeatherGateway(provider),
        geolocation=GeolocationCoordinator(platform),
        storage=JsonFileStore(config.storage_path),
        geo_timeout_ms=args.geo_timeout,
        default_city=config.default_city,
    )
    logging.info("Weather store ready (geolocation %s)", "on" if platform.supported else "off")
    return store


def parse_command(line: str, state: ApplicationState, suggestions: List[CitySuggestion]) -> Any:
    """
    Translate one line of input into a store intent.

    Raises:
        ValueError: If the line is not a valid command in the current state
    """
    parts = line.strip().split(None, 1)
    if not parts:
        raise ValueError("Empty command")
    command = parts[0].lower()
    arg = parts[1].strip() if len(parts) > 1 else ""

    if command in ("search", "s"):
        return Search(arg)
    if command == "locate":
        return Locate()
    if command == "pick":
        try:
            choice = suggestions[int(arg) - 1]
        except (ValueError, IndexError):
            raise ValueError(f"No suggestion numbered {arg!r}") from None
        return SelectSuggestion(choice.lat, choice.lon)
    if command == "unit":
        return ChangeUnit(arg)
    if command == "theme":
        return ChangeTheme(arg)
    if command == "next":
        return SetPage(state.current_page + 1)
    if command == "prev":
        return SetPage(state.current_page - 1)
    if command == "page":
        try:
            return SetPage(int(arg) - 1)
        except ValueError:
            raise ValueError(f"Invalid page {arg!r}") from None
    if command == "dismiss":
        return ClearError()
    if command == "fav":
        action, _, city = arg.partition(" ")
        if action == "add":
            if state.current_weather is None:
                raise ValueError("No city loaded")
            return AddToFavorites(FavoriteEntry.from_snapshot(state.current_weather))
        if action == "rm" and city.strip():
            return RemoveFromFavorites(city.strip())
        if action == "clear":
            return ClearFavorites()
    if command == "history":
        action, _, city = arg.partition(" ")
        if action == "rm" and city.strip():
            return RemoveFromHistory(city.strip())
        if action == "clear":
            return ClearHistory()
    raise ValueError(f"Unknown command: {line.strip()!r}")


def print_suggestions(suggestions: List[CitySuggestion]) -> None:
    if not suggestions:
        print("No suggestions")
        return
    for index, suggestion in enumerate(suggestions, start=1):
        print(f"  {index}. {suggestion.display_name}")


async def command_loop(store: WeatherStore) -> None:
    loop = asyncio.get_running_loop()
    suggestions: List[CitySuggestion] = []

    def on_suggestions(found: List[CitySuggestion]) -> None:
        suggestions[:] = found
        print_suggestions(found)

    debouncer = SuggestionDebouncer(store.suggest_cities, on_suggestions)
    try:
        while True:
            line = await loop.run_in_executor(None, input, "> ")
            command = line.strip()
            if not command:
                continue
            if command in ("quit", "exit"):
                break
            if command == "help":
                print(HELP_TEXT)
                continue
            if command == "air":
                print(format_air_quality(await store.air_quality()))
                continue
            if command.startswith("suggest"):
                debouncer.feed(command[len("suggest"):])
                continue
            try:
                intent = parse_command(command, store.get_state(), suggestions)
            except ValueError as err:
                print(err)
                continue
            state = await store.dispatch(intent)
            print(render_state(state, sys.platform))
    finally:
        debouncer.close()


async def run(args: argparse.Namespace, config: Config) -> None:
    store = build_store(config, args)
    try:
        await store.start()
        if args.units and args.units != store.get_state().unit:
            await store.dispatch(ChangeUnit(args.units))
        if args.theme:
            await store.dispatch(ChangeTheme(args.theme))

        if args.city:
            await store.dispatch(Search(args.city))
        elif args.locate:
            await store.dispatch(Locate())
        print(render_state(store.get_state(), sys.platform))

        if not args.once:
            await command_loop(store)
    finally:
        store.close()


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    setup_logging(args.log_file, args.verbose)
    config = load_config(args.storage)

    try:
        asyncio.run(run(args, config))
    except (KeyboardInterrupt, EOFError):
        logging.info("Stopping dashboard")


if __name__ == "__main__":
    main()
