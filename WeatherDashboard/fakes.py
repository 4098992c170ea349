"""Test doubles and sample payloads shared by the test modules."""
import asyncio
from dataclasses import replace
from datetime import date
from typing import Dict, List, Optional, Tuple
from weather_provider import WeatherProviderBase
from weather_data import AirQuality, ForecastDay, WeatherSnapshot
from geolocation import GRANTED, GeolocationPlatform, PositionError

# 2023-11-15 00:00:00 UTC
DAY_START = 1700006400


def make_current_payload(name: str = "Paris", country: str = "FR", temp: float = 18.6,
                         lat: float = 48.85, lon: float = 2.35) -> dict:
    return {
        "coord": {"lon": lon, "lat": lat},
        "weather": [{"id": 803, "main": "Clouds", "description": "broken clouds", "icon": "04d"}],
        "main": {
            "temp": temp,
            "feels_like": temp - 0.7,
            "temp_min": temp - 2.2,
            "temp_max": temp + 1.5,
            "pressure": 1014,
            "humidity": 72,
        },
        "visibility": 10000,
        "wind": {"speed": 4.1, "deg": 250, "gust": 7.2},
        "clouds": {"all": 75},
        "dt": DAY_START + 43200,
        "sys": {"country": country, "sunrise": DAY_START + 27000, "sunset": DAY_START + 59400},
        "timezone": 3600,
        "name": name,
    }


def make_forecast_payload(days: int = 6, start: int = DAY_START) -> dict:
    """Eight 3-hourly samples per UTC day, starting at midnight."""
    entries = []
    for index in range(days * 8):
        hour = index % 8
        entries.append({
            "dt": start + index * 10800,
            "main": {
                "temp": 10.0 + hour,
                "feels_like": 9.0 + hour,
                "pressure": 1010 + hour,
                "humidity": 60 + hour,
            },
            "weather": [{"description": f"sky {hour}", "icon": f"0{hour}d"}],
            "wind": {"speed": 3.0},
            "clouds": {"all": 40},
        })
    return {"cnt": len(entries), "list": entries, "city": {"name": "Paris", "timezone": 3600}}


def make_snapshot(city: str = "Paris", unit: str = "metric", temperature: int = 19) -> WeatherSnapshot:
    return WeatherSnapshot(
        city=city,
        country="FR",
        lat=48.85,
        lon=2.35,
        temperature=temperature,
        feels_like=temperature - 1,
        temp_min=temperature - 2,
        temp_max=temperature + 2,
        humidity=72,
        pressure=1014,
        wind_speed=4.1,
        wind_deg=250,
        description="broken clouds",
        icon="04d",
        sunrise=DAY_START + 27000,
        sunset=DAY_START + 59400,
        clouds=75,
        visibility=10000,
        timestamp=DAY_START + 43200,
        unit=unit,
    )


def make_forecast_days(count: int = 6) -> Tuple[ForecastDay, ...]:
    return tuple(
        ForecastDay(
            date=date(2023, 11, 15 + offset),
            temp_min=10,
            temp_max=17,
            avg_temp=14,
            feels_like=13,
            icon="04d",
            description="broken clouds",
            avg_humidity=64,
            avg_wind_speed=3,
            avg_pressure=1014,
            avg_clouds=40,
        )
        for offset in range(count)
    )


class FakeProvider(WeatherProviderBase):
    """
    In-memory provider: by-name lookups answer with the queried name, by-coordinate
    lookups with ``coords_name``. ``errors`` maps a method name to the exception
    it raises.
    """

    def __init__(self, coords_name: str = "Testville", geocode_results: Optional[List[dict]] = None,
                 reverse_results: Optional[List[dict]] = None, pollution: Optional[dict] = None):
        self.coords_name = coords_name
        self.geocode_results = geocode_results or []
        self.reverse_results = reverse_results or []
        self.pollution = pollution or {"list": []}
        self.errors: Dict[str, Exception] = {}
        self.calls: List[tuple] = []

    def _record(self, name: str, *args) -> None:
        self.calls.append((name,) + args)
        if name in self.errors:
            raise self.errors[name]

    def calls_to(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]

    def current_by_city(self, city, units):
        self._record("current_by_city", city, units)
        return make_current_payload(name=city)

    def current_by_coords(self, lat, lon, units):
        self._record("current_by_coords", lat, lon, units)
        return make_current_payload(name=self.coords_name, lat=lat, lon=lon)

    def forecast_by_city(self, city, units):
        self._record("forecast_by_city", city, units)
        return make_forecast_payload()

    def forecast_by_coords(self, lat, lon, units):
        self._record("forecast_by_coords", lat, lon, units)
        return make_forecast_payload()

    def geocode(self, query, limit):
        self._record("geocode", query, limit)
        return self.geocode_results

    def reverse_geocode(self, lat, lon, limit=1):
        self._record("reverse_geocode", lat, lon, limit)
        return self.reverse_results

    def air_pollution(self, lat, lon):
        self._record("air_pollution", lat, lon)
        return self.pollution


class ScriptedGateway:
    """
    Gateway double whose responses can be held back with ``hold(key)`` and
    released with ``release(key)``; keys are city names or (lat, lon) pairs.
    """

    def __init__(self, coords_city: str = "Testville", forecast_days: int = 6):
        self.coords_city = coords_city
        self.forecast_days = forecast_days
        self.errors: Dict[object, Exception] = {}
        self.calls: List[tuple] = []
        self._gates: Dict[object, asyncio.Event] = {}

    def hold(self, key) -> None:
        self._gates[key] = asyncio.Event()

    def release(self, key) -> None:
        self._gates[key].set()

    async def _wait(self, key) -> None:
        gate = self._gates.get(key)
        if gate is not None:
            await gate.wait()
        if key in self.errors:
            raise self.errors[key]

    async def fetch_by_city_name(self, name, unit="metric"):
        self.calls.append(("city", name, unit))
        await self._wait(name)
        return make_snapshot(city=name, unit=unit), list(make_forecast_days(self.forecast_days))

    async def fetch_by_coordinates(self, lat, lon, unit="metric"):
        self.calls.append(("coords", lat, lon, unit))
        await self._wait((lat, lon))
        snapshot = replace(make_snapshot(city=self.coords_city, unit=unit), lat=lat, lon=lon)
        return snapshot, list(make_forecast_days(self.forecast_days))

    async def suggest_cities(self, query, limit=5):
        self.calls.append(("suggest", query))
        return []

    async def fetch_air_quality(self, lat, lon):
        self.calls.append(("air", lat, lon))
        return AirQuality(aqi=2, components={"pm2_5": 8.1}, timestamp=DAY_START)


class ScriptedPlatform(GeolocationPlatform):
    """Geolocation platform with a settable permission, position and failure."""

    def __init__(self, permission: str = GRANTED, position: Tuple[float, float] = (51.5, -0.12),
                 error_code: Optional[int] = None, delay: float = 0.0):
        self.permission = permission
        self.position = position
        self.error_code = error_code
        self.delay = delay
        self.query_error: Optional[Exception] = None
        self.listeners = []
        self.position_requests = 0

    async def query_permission(self):
        if self.query_error is not None:
            raise self.query_error
        return self.permission

    def on_permission_change(self, listener):
        self.listeners.append(listener)

    def change_permission(self, permission):
        self.permission = permission
        for listener in self.listeners:
            listener(permission)

    async def get_current_position(self):
        self.position_requests += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error_code is not None:
            raise PositionError(self.error_code)
        return self.position
