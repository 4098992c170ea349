"""Tests for the weather gateway."""
import asyncio
from datetime import date, timezone
import pytest
from weather_service import WeatherGateway
from weather_provider import AuthError, CityNotFound, NetworkError, ServerError, UnknownError, ValidationError
from fakes import FakeProvider, make_forecast_payload

PARIS = {"name": "Paris", "country": "FR", "lat": 48.8589, "lon": 2.32, "state": "Ile-de-France"}


@pytest.fixture
def provider():
    return FakeProvider(coords_name="Testville")


@pytest.fixture
def gateway(provider):
    return WeatherGateway(provider, tz=timezone.utc)


def test_fetch_by_city_name(gateway, provider):
    """Current weather and forecast are both requested by name."""
    snapshot, forecast = asyncio.run(gateway.fetch_by_city_name("Paris", "imperial"))

    assert snapshot.city == "Paris"
    assert snapshot.unit == "imperial"
    assert len(forecast) == 6
    assert forecast[0].date == date(2023, 11, 15)
    assert forecast[0].temp_min == 10
    assert forecast[0].temp_max == 17
    assert forecast[0].icon == "04d"  # sample 8 // 2
    assert provider.calls_to("current_by_city") == [("current_by_city", "Paris", "imperial")]
    assert provider.calls_to("forecast_by_city") == [("forecast_by_city", "Paris", "imperial")]
    assert provider.calls_to("geocode") == []


def test_fetch_by_city_name_strips_input(gateway, provider):
    asyncio.run(gateway.fetch_by_city_name("  Paris ", "metric"))
    assert provider.calls_to("current_by_city")[0][1] == "Paris"


def test_fetch_by_city_name_rejects_blank(gateway, provider):
    with pytest.raises(ValidationError):
        asyncio.run(gateway.fetch_by_city_name("   ", "metric"))
    assert provider.calls == []


def test_not_found_falls_back_to_geocoding(gateway, provider):
    """A name the weather API rejects is geocoded and looked up by coordinates."""
    provider.errors["current_by_city"] = CityNotFound(status_code=404)
    provider.geocode_results = [PARIS]
    provider.reverse_results = [PARIS]

    snapshot, forecast = asyncio.run(gateway.fetch_by_city_name("Pariss", "metric"))

    assert snapshot.city == "Paris"
    assert snapshot.region == "Ile-de-France"
    assert provider.calls_to("geocode") == [("geocode", "Pariss", 5)]
    assert provider.calls_to("current_by_coords") == [("current_by_coords", 48.8589, 2.32, "metric")]
    assert len(forecast) == 6


def test_not_found_when_geocoding_finds_nothing(gateway, provider):
    provider.errors["forecast_by_city"] = CityNotFound(status_code=404)

    with pytest.raises(CityNotFound):
        asyncio.run(gateway.fetch_by_city_name("Atlantis", "metric"))

    assert provider.calls_to("current_by_coords") == []


def test_other_errors_do_not_fall_back(gateway, provider):
    provider.errors["current_by_city"] = AuthError(status_code=401)

    with pytest.raises(AuthError):
        asyncio.run(gateway.fetch_by_city_name("Paris", "metric"))

    assert provider.calls_to("geocode") == []


def test_fetch_by_coordinates_uses_reverse_geocoded_name(gateway, provider):
    provider.reverse_results = [{"name": "Westminster", "country": "GB", "lat": 51.5, "lon": -0.12}]

    snapshot, forecast = asyncio.run(gateway.fetch_by_coordinates(51.5, -0.12, "metric"))

    assert snapshot.city == "Westminster"
    assert snapshot.country == "GB"
    assert snapshot.coordinates == (51.5, -0.12)
    assert len(forecast) == 6


def test_reverse_geocode_failure_is_not_fatal(gateway, provider):
    provider.errors["reverse_geocode"] = NetworkError()

    snapshot, _ = asyncio.run(gateway.fetch_by_coordinates(51.5, -0.12, "metric"))

    assert snapshot.city == "Testville"
    assert snapshot.country == "FR"


def test_reverse_geocode_empty_result(gateway, provider):
    snapshot, _ = asyncio.run(gateway.fetch_by_coordinates(51.5, -0.12, "metric"))
    assert snapshot.city == "Testville"


def test_forecast_failure_fails_the_lookup(gateway, provider):
    """Both requests must succeed."""
    provider.errors["forecast_by_coords"] = ServerError(status_code=500)

    with pytest.raises(ServerError):
        asyncio.run(gateway.fetch_by_coordinates(51.5, -0.12, "metric"))


def _forecast_with_null_humidity():
    payload = make_forecast_payload()
    payload["list"][0]["main"]["humidity"] = None
    return payload


def test_malformed_forecast_raises_unknown_error(gateway, provider):
    """Null numeric fields surface as UnknownError, not a raw TypeError."""
    provider.forecast_by_city = lambda city, units: _forecast_with_null_humidity()

    with pytest.raises(UnknownError) as exc:
        asyncio.run(gateway.fetch_by_city_name("Paris", "metric"))
    assert exc.value.message == "An unexpected error occurred."


def test_malformed_forecast_by_coordinates(gateway, provider):
    provider.forecast_by_coords = lambda lat, lon, units: _forecast_with_null_humidity()

    with pytest.raises(UnknownError):
        asyncio.run(gateway.fetch_by_coordinates(51.5, -0.12, "metric"))


def test_suggest_cities(gateway, provider):
    provider.geocode_results = [PARIS, {"name": "Paris", "country": "US", "lat": 33.66, "lon": -95.55, "state": "Texas"}]

    suggestions = asyncio.run(gateway.suggest_cities("Par"))

    assert [s.display_name for s in suggestions] == ["Paris, Ile-de-France, FR", "Paris, Texas, US"]
    assert provider.calls_to("geocode") == [("geocode", "Par", 5)]


def test_suggest_cities_respects_limit(gateway, provider):
    provider.geocode_results = [PARIS] * 4
    assert len(asyncio.run(gateway.suggest_cities("Paris", limit=2))) == 2


def test_short_queries_skip_the_network(gateway, provider):
    assert asyncio.run(gateway.suggest_cities("P")) == []
    assert asyncio.run(gateway.suggest_cities(" ")) == []
    assert provider.calls == []


def test_suggest_cities_swallows_errors(gateway, provider):
    provider.errors["geocode"] = NetworkError()
    assert asyncio.run(gateway.suggest_cities("Paris")) == []


def test_suggest_cities_skips_malformed_payload(gateway, provider):
    provider.geocode_results = [{"country": "FR"}]
    assert asyncio.run(gateway.suggest_cities("Paris")) == []


def test_fetch_air_quality(gateway, provider):
    provider.pollution = {"list": [{"main": {"aqi": 3}, "components": {"o3": 60.1}, "dt": 100}]}
    reading = asyncio.run(gateway.fetch_air_quality(48.85, 2.35))
    assert reading.aqi == 3


def test_fetch_air_quality_best_effort(gateway, provider):
    provider.errors["air_pollution"] = ServerError()
    assert asyncio.run(gateway.fetch_air_quality(48.85, 2.35)) is None
