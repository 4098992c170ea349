"""Weather gateway - turns city/coordinate queries into normalized records."""
import asyncio
import functools
import logging
from concurrent.futures import Executor
from datetime import tzinfo
from typing import List, Optional, Tuple
from weather_provider import CityNotFound, UnknownError, ValidationError, WeatherProviderBase, WeatherProviderError
from weather_data import AirQuality, CitySuggestion, ForecastDay, WeatherSnapshot
from openweather_provider import parse_air_quality, parse_city, parse_current, parse_forecast_samples
from forecast import aggregate_forecast

MIN_QUERY_LENGTH = 2

WeatherResult = Tuple[WeatherSnapshot, List[ForecastDay]]


class WeatherGateway:
    """
    Asynchronous facade over a blocking weather provider.

    Provider calls run in an executor so several requests can be in flight
    at once; current weather and forecast are always requested together and
    both must succeed.
    """

    def __init__(
        self,
        provider: WeatherProviderBase,
        tz: Optional[tzinfo] = None,
        executor: Optional[Executor] = None,
    ):
        """
        Initialize the gateway.

        Args:
            provider: Weather provider to use
            tz: Timezone for forecast day bucketing (process local time when None)
            executor: Executor for blocking provider calls (loop default when None)
        """
        self.provider = provider
        self.tz = tz
        self.executor = executor

    async def _call(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, functools.partial(func, *args))

    async def fetch_by_city_name(self, name: str, unit: str = "metric") -> WeatherResult:
        """
        Fetch current weather and daily forecast for a free-text city name.

        When the provider does not recognise the name, the name is geocoded
        and the lookup retried by coordinates with the best match.

        Raises:
            ValidationError: If the name is empty
            CityNotFound: If neither the name nor its geocoded match resolves
            WeatherProviderError: For any other provider failure
        """
        city = (name or "").strip()
        if not city:
            raise ValidationError()

        logging.info(f"Fetching weather for city '{city}' ({unit})")
        try:
            current, forecast = await asyncio.gather(
                self._call(self.provider.current_by_city, city, unit),
                self._call(self.provider.forecast_by_city, city, unit),
            )
        except CityNotFound:
            logging.warning(f"City '{city}' not found by name, trying geocoding")
            matches = await self.suggest_cities(city)
            if not matches:
                logging.error(f"Geocoding found no match for '{city}'")
                raise
            best = matches[0]
            logging.info(f"Geocoded '{city}' to {best.display_name} ({best.lat}, {best.lon})")
            return await self.fetch_by_coordinates(best.lat, best.lon, unit)

        return self._build_result(current, forecast, unit)

    async def fetch_by_coordinates(self, lat: float, lon: float, unit: str = "metric") -> WeatherResult:
        """
        Fetch current weather and daily forecast for a coordinate pair.

        The place name comes from reverse geocoding when that succeeds and
        from the current-weather response otherwise.

        Raises:
            WeatherProviderError: If either weather request fails
        """
        logging.info(f"Fetching weather for coordinates ({lat}, {lon}) ({unit})")
        current, forecast, place = await asyncio.gather(
            self._call(self.provider.current_by_coords, lat, lon, unit),
            self._call(self.provider.forecast_by_coords, lat, lon, unit),
            self._resolve_place(lat, lon),
        )
        return self._build_result(current, forecast, unit, place)

    def _build_result(self, current: dict, forecast: dict, unit: str,
                      place: Optional[CitySuggestion] = None) -> WeatherResult:
        try:
            snapshot = parse_current(current, unit, place)
            days = aggregate_forecast(parse_forecast_samples(forecast), self.tz)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logging.error(f"Malformed weather response: {e!r}")
            raise UnknownError() from e
        return snapshot, days

    async def _resolve_place(self, lat: float, lon: float) -> Optional[CitySuggestion]:
        try:
            entries = await self._call(self.provider.reverse_geocode, lat, lon, 1)
            if entries:
                return parse_city(entries[0])
        except (WeatherProviderError, KeyError, TypeError, ValueError) as e:
            logging.warning(f"Reverse geocoding failed for ({lat}, {lon}): {e}")
        return None

    async def suggest_cities(self, query: str, limit: int = 5) -> List[CitySuggestion]:
        """
        Forward-geocode partial input into candidate cities.

        Never raises: short queries and upstream failures yield an empty list.
        """
        text = (query or "").strip()
        if len(text) < MIN_QUERY_LENGTH:
            return []
        try:
            entries = await self._call(self.provider.geocode, text, limit)
            return [parse_city(entry) for entry in entries or []][:limit]
        except (WeatherProviderError, KeyError, TypeError, ValueError) as e:
            logging.warning(f"City search failed for '{text}': {e}")
            return []

    async def fetch_air_quality(self, lat: float, lon: float) -> Optional[AirQuality]:
        """Best-effort air pollution reading; None when unavailable."""
        try:
            data = await self._call(self.provider.air_pollution, lat, lon)
            return parse_air_quality(data)
        except (WeatherProviderError, KeyError, TypeError, ValueError) as e:
            logging.warning(f"Air pollution data not available for ({lat}, {lon}): {e}")
            return None
