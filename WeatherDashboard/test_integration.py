"""Integration tests - can optionally hit real API (disabled by default)."""
import asyncio
import os
import pytest
from openweather_provider import OpenWeatherProvider
from weather_service import WeatherGateway


@pytest.mark.skipif(
    not os.environ.get("OPENWEATHER_API_KEY"),
    reason="OPENWEATHER_API_KEY not set - skipping integration test"
)
def test_fetch_by_city_name_integration():
    """
    Integration test that hits the real OpenWeather API.

    Set OPENWEATHER_API_KEY environment variable to run this test.
    """
    gateway = WeatherGateway(OpenWeatherProvider(api_key=os.environ["OPENWEATHER_API_KEY"]))

    snapshot, forecast = asyncio.run(gateway.fetch_by_city_name("London", "metric"))

    assert snapshot.city
    assert snapshot.timestamp > 0
    assert 5 <= len(forecast) <= 6


@pytest.mark.skipif(
    not os.environ.get("OPENWEATHER_API_KEY"),
    reason="OPENWEATHER_API_KEY not set - skipping integration test"
)
def test_fetch_by_coordinates_and_suggest_integration():
    gateway = WeatherGateway(OpenWeatherProvider(api_key=os.environ["OPENWEATHER_API_KEY"]))

    snapshot, _ = asyncio.run(gateway.fetch_by_coordinates(33.44, -94.04, "imperial"))
    assert snapshot.unit == "imperial"

    suggestions = asyncio.run(gateway.suggest_cities("Lond"))
    assert suggestions
    assert all(s.display_name for s in suggestions)
