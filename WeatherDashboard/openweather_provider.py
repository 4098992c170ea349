"""OpenWeather API provider implementation."""
import logging
import requests
from typing import List, Optional
from weather_provider import (
    NetworkError,
    UnknownError,
    WeatherProviderBase,
    error_for_status,
)
from weather_data import AirQuality, CitySuggestion, ForecastSample, WeatherSnapshot
from forecast import round_half_up


class OpenWeatherProvider(WeatherProviderBase):
    """
    Weather provider using the free OpenWeather APIs.

    Current weather: https://openweathermap.org/current
    5 day / 3 hour forecast: https://openweathermap.org/forecast5
    Geocoding: https://openweathermap.org/api/geocoding-api
    """

    BASE_URL = "https://api.openweathermap.org/data/2.5"
    GEO_URL = "https://api.openweathermap.org/geo/1.0"

    def __init__(
        self,
        api_key: str,
        lang: str = "en",
        timeout: int = 10,
        base_url: Optional[str] = None,
    ):
        """
        Initialize OpenWeather provider.

        Args:
            api_key: OpenWeather API key
            lang: Language code for descriptions (e.g., "en", "de")
            timeout: HTTP request timeout in seconds
            base_url: Override for the data API root (keeps the geocoding root)
        """
        self.api_key = api_key
        self.lang = lang
        self.timeout = timeout
        self.base_url = (base_url or self.BASE_URL).rstrip("/")

    def current_by_city(self, city: str, units: str) -> dict:
        return self._get(f"{self.base_url}/weather", {"q": city, "units": units})

    def current_by_coords(self, lat: float, lon: float, units: str) -> dict:
        return self._get(f"{self.base_url}/weather", {"lat": lat, "lon": lon, "units": units})

    def forecast_by_city(self, city: str, units: str) -> dict:
        return self._get(f"{self.base_url}/forecast", {"q": city, "units": units})

    def forecast_by_coords(self, lat: float, lon: float, units: str) -> dict:
        return self._get(f"{self.base_url}/forecast", {"lat": lat, "lon": lon, "units": units})

    def geocode(self, query: str, limit: int) -> List[dict]:
        return self._get(f"{self.GEO_URL}/direct", {"q": query, "limit": limit})

    def reverse_geocode(self, lat: float, lon: float, limit: int = 1) -> List[dict]:
        return self._get(f"{self.GEO_URL}/reverse", {"lat": lat, "lon": lon, "limit": limit})

    def air_pollution(self, lat: float, lon: float) -> dict:
        return self._get(f"{self.base_url}/air_pollution", {"lat": lat, "lon": lon})

    def _get(self, url: str, params: dict):
        """
        Issue a GET request and decode the JSON body.

        Raises:
            WeatherProviderError: Classified by HTTP status, or NetworkError
                when no response arrived at all
        """
        query = dict(params)
        query["appid"] = self.api_key
        query["lang"] = self.lang

        try:
            logging.info(f"Making OpenWeather API request: {url}")
            logging.debug(f"Request parameters: {params}")
            response = requests.get(url, params=query, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logging.error(f"Network error during API request: {e}")
            raise NetworkError() from e

        logging.info(f"API response status: {response.status_code}")
        if not response.ok:
            logging.error(f"API request failed with status {response.status_code}")
            self._handle_error_response(response)

        try:
            data = response.json()
        except ValueError as e:
            logging.error(f"Failed to decode API response: {e}")
            raise UnknownError("Failed to parse response from weather service.") from e
        logging.debug(f"API response (truncated): {str(data)[:500]}...")
        return data

    def _handle_error_response(self, response: requests.Response) -> None:
        """Parse and raise error from OpenWeather error response."""
        message = None
        try:
            error_data = response.json()
            logging.error(f"OpenWeather API error response: {error_data}")
            if isinstance(error_data, dict):
                message = error_data.get("message")
        except ValueError:
            # Not JSON, use HTTP status
            logging.error(f"Non-JSON error response: HTTP {response.status_code}, body: {response.text[:500]}")

        raise error_for_status(response.status_code, message)


def parse_current(data: dict, units: str, place: Optional[CitySuggestion] = None) -> WeatherSnapshot:
    """
    Map a current-weather response to a WeatherSnapshot.

    Args:
        data: Decoded current-weather JSON
        units: Unit system the request was made in
        place: Reverse-geocoded place; its name wins over the response's own

    Raises:
        UnknownError: If required blocks are missing or malformed
    """
    weather_array = data.get("weather") or []
    if not weather_array:
        logging.error("Response missing 'weather' array")
        raise UnknownError("Response missing 'weather' array")
    weather = weather_array[0]

    main_data = data.get("main") or {}
    if not main_data:
        raise UnknownError("Response missing 'main' block")

    sys_data = data.get("sys") or {}
    wind_data = data.get("wind") or {}
    coord = data.get("coord") or {}

    try:
        return WeatherSnapshot(
            city=place.name if place else data.get("name", ""),
            country=place.country if place else sys_data.get("country", ""),
            region=place.region if place else None,
            lat=coord.get("lat", place.lat if place else 0.0),
            lon=coord.get("lon", place.lon if place else 0.0),
            temperature=round_half_up(main_data["temp"]),
            feels_like=round_half_up(main_data.get("feels_like", main_data["temp"])),
            temp_min=round_half_up(main_data.get("temp_min", main_data["temp"])),
            temp_max=round_half_up(main_data.get("temp_max", main_data["temp"])),
            humidity=main_data.get("humidity", 0),
            pressure=main_data.get("pressure", 0),
            wind_speed=wind_data.get("speed", 0.0),
            wind_deg=wind_data.get("deg"),
            wind_gust=wind_data.get("gust"),
            description=weather.get("description", ""),
            icon=weather.get("icon", ""),
            sunrise=sys_data.get("sunrise", 0),
            sunset=sys_data.get("sunset", 0),
            clouds=(data.get("clouds") or {}).get("all", 0),
            visibility=data.get("visibility"),
            timestamp=data.get("dt", 0),
            unit=units,
            alerts=tuple(data.get("alerts") or ()),
        )
    except (KeyError, TypeError, ValueError) as e:
        logging.error(f"Failed to parse API response: {e}", exc_info=True)
        raise UnknownError(f"Failed to parse response: {e}") from e


def parse_forecast_samples(data: dict) -> List[ForecastSample]:
    """Map a forecast response's ``list`` entries to ForecastSamples."""
    samples = []
    try:
        for item in data.get("list", []):
            main_data = item["main"]
            weather = (item.get("weather") or [{}])[0]
            samples.append(ForecastSample(
                timestamp=item["dt"],
                temp=main_data["temp"],
                feels_like=main_data.get("feels_like", main_data["temp"]),
                humidity=main_data.get("humidity", 0),
                pressure=main_data.get("pressure", 0),
                wind_speed=(item.get("wind") or {}).get("speed", 0.0),
                clouds=(item.get("clouds") or {}).get("all", 0),
                icon=weather.get("icon", ""),
                description=weather.get("description", ""),
            ))
    except (KeyError, TypeError, IndexError) as e:
        logging.error(f"Failed to parse forecast response: {e}", exc_info=True)
        raise UnknownError(f"Failed to parse response: {e}") from e
    return samples


def parse_city(entry: dict) -> CitySuggestion:
    """Map a geocoding entry to a CitySuggestion."""
    return CitySuggestion(
        name=entry["name"],
        country=entry.get("country", ""),
        region=entry.get("state") or None,
        lat=entry["lat"],
        lon=entry["lon"],
        local_names=entry.get("local_names") or {},
    )


def parse_air_quality(data: dict) -> Optional[AirQuality]:
    """Map an air pollution response; None when it carries no reading."""
    readings = (data or {}).get("list") or []
    if not readings:
        return None
    reading = readings[0]
    return AirQuality(
        aqi=reading["main"]["aqi"],
        components=dict(reading.get("components") or {}),
        timestamp=reading.get("dt", 0),
    )
