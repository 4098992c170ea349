"""Tests for OpenWeather provider."""
import pytest
import requests
from unittest.mock import Mock, patch
from openweather_provider import (
    OpenWeatherProvider,
    parse_air_quality,
    parse_city,
    parse_current,
    parse_forecast_samples,
)
from weather_provider import (
    AuthError,
    CityNotFound,
    InvalidRequest,
    NetworkError,
    RateLimited,
    ServerError,
    UnknownError,
    WeatherProviderError,
)
from weather_data import CitySuggestion, WeatherSnapshot
from fakes import make_current_payload, make_forecast_payload


@pytest.fixture
def provider():
    """Create OpenWeather provider instance."""
    return OpenWeatherProvider(api_key="test_key", lang="en", timeout=5)


def ok_response(payload):
    mock_response = Mock()
    mock_response.ok = True
    mock_response.status_code = 200
    mock_response.json.return_value = payload
    return mock_response


def error_response(status, payload=None):
    mock_response = Mock()
    mock_response.ok = False
    mock_response.status_code = status
    if payload is None:
        mock_response.json.side_effect = ValueError("not json")
        mock_response.text = "<html>oops</html>"
    else:
        mock_response.json.return_value = payload
    return mock_response


def test_current_by_city_request(provider):
    """City lookups send the name, units, key and language."""
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.return_value = ok_response(make_current_payload())

        data = provider.current_by_city("Paris", "imperial")

        assert data["name"] == "Paris"
        url = mock_get.call_args[0][0]
        params = mock_get.call_args[1]["params"]
        assert url == "https://api.openweathermap.org/data/2.5/weather"
        assert params == {"q": "Paris", "units": "imperial", "appid": "test_key", "lang": "en"}
        assert mock_get.call_args[1]["timeout"] == 5


def test_forecast_by_coords_request(provider):
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.return_value = ok_response(make_forecast_payload())

        provider.forecast_by_coords(51.5, -0.12, "metric")

        assert mock_get.call_args[0][0].endswith("/forecast")
        params = mock_get.call_args[1]["params"]
        assert params["lat"] == 51.5
        assert params["lon"] == -0.12


def test_geocoding_uses_geo_api(provider):
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.return_value = ok_response([])

        provider.geocode("Par", 5)
        assert mock_get.call_args[0][0] == "https://api.openweathermap.org/geo/1.0/direct"
        assert mock_get.call_args[1]["params"]["limit"] == 5

        provider.reverse_geocode(48.85, 2.35)
        assert mock_get.call_args[0][0] == "https://api.openweathermap.org/geo/1.0/reverse"
        assert mock_get.call_args[1]["params"]["limit"] == 1


def test_custom_base_url():
    provider = OpenWeatherProvider(api_key="k", base_url="https://example.test/data/2.5/")
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.return_value = ok_response({"list": []})
        provider.air_pollution(1.0, 2.0)
        assert mock_get.call_args[0][0] == "https://example.test/data/2.5/air_pollution"


@pytest.mark.parametrize("status,error_cls", [
    (400, InvalidRequest),
    (401, AuthError),
    (404, CityNotFound),
    (429, RateLimited),
    (500, ServerError),
    (503, ServerError),
])
def test_http_errors_are_classified(provider, status, error_cls):
    """Test handling of HTTP errors."""
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.return_value = error_response(status, {"cod": status, "message": "upstream says no"})

        with pytest.raises(error_cls) as exc_info:
            provider.current_by_city("Nowhere", "metric")

        assert exc_info.value.status_code == status
        assert exc_info.value.message == error_cls.default_message


def test_unclassified_status_uses_provider_message(provider):
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.return_value = error_response(418, {"cod": 418, "message": "I'm a teapot"})

        with pytest.raises(UnknownError) as exc_info:
            provider.current_by_city("Paris", "metric")

        assert exc_info.value.message == "I'm a teapot"


def test_non_json_error_body(provider):
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.return_value = error_response(502)

        with pytest.raises(ServerError):
            provider.current_by_city("Paris", "metric")


def test_network_error(provider):
    """Test handling of network errors."""
    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.side_effect = requests.exceptions.ConnectionError("Connection refused")

        with pytest.raises(NetworkError) as exc_info:
            provider.current_by_city("Paris", "metric")

        assert "internet connection" in exc_info.value.message


def test_undecodable_success_body(provider):
    with patch('openweather_provider.requests.get') as mock_get:
        response = ok_response(None)
        response.json.side_effect = ValueError("bad json")
        mock_get.return_value = response

        with pytest.raises(UnknownError):
            provider.current_by_city("Paris", "metric")


def test_parse_current_rounds_temperatures():
    """Test successful parsing."""
    snapshot = parse_current(make_current_payload(temp=18.5), "metric")

    assert isinstance(snapshot, WeatherSnapshot)
    assert snapshot.city == "Paris"
    assert snapshot.country == "FR"
    assert snapshot.region is None
    assert snapshot.temperature == 19
    assert snapshot.feels_like == 18  # 17.8
    assert snapshot.temp_min == 16  # 16.3
    assert snapshot.temp_max == 20
    assert snapshot.humidity == 72
    assert snapshot.wind_speed == 4.1
    assert snapshot.wind_deg == 250
    assert snapshot.wind_gust == 7.2
    assert snapshot.description == "broken clouds"
    assert snapshot.icon == "04d"
    assert snapshot.clouds == 75
    assert snapshot.visibility == 10000
    assert snapshot.unit == "metric"
    assert snapshot.alerts == ()


def test_parse_current_prefers_resolved_place():
    place = CitySuggestion(name="Westminster", country="GB", region="England", lat=51.5, lon=-0.12)
    snapshot = parse_current(make_current_payload(name="London", country="XX"), "imperial", place)

    assert snapshot.city == "Westminster"
    assert snapshot.country == "GB"
    assert snapshot.region == "England"
    assert snapshot.unit == "imperial"


def test_parse_current_without_gust():
    payload = make_current_payload()
    del payload["wind"]["gust"]
    assert parse_current(payload, "metric").wind_gust is None


def test_parse_current_missing_main():
    """Test handling of missing main block."""
    payload = make_current_payload()
    del payload["main"]

    with pytest.raises(WeatherProviderError) as exc_info:
        parse_current(payload, "metric")

    assert "missing 'main' block" in str(exc_info.value)


def test_parse_current_missing_weather():
    """Test handling of missing 'weather' array."""
    payload = make_current_payload()
    payload["weather"] = []

    with pytest.raises(UnknownError) as exc_info:
        parse_current(payload, "metric")

    assert "missing 'weather' array" in str(exc_info.value)


def test_parse_forecast_samples():
    samples = parse_forecast_samples(make_forecast_payload(days=1))

    assert len(samples) == 8
    assert samples[0].temp == 10.0
    assert samples[3].icon == "03d"
    assert samples[3].description == "sky 3"
    assert samples[7].timestamp - samples[0].timestamp == 7 * 10800


def test_parse_forecast_samples_malformed():
    with pytest.raises(UnknownError):
        parse_forecast_samples({"list": [{"dt": 1}]})


def test_parse_city():
    city = parse_city({"name": "Springfield", "state": "Illinois", "country": "US",
                       "lat": 39.8, "lon": -89.6, "local_names": {"en": "Springfield"}})
    assert city.region == "Illinois"
    assert city.local_names == {"en": "Springfield"}
    assert city.display_name == "Springfield, Illinois, US"


def test_parse_air_quality():
    reading = parse_air_quality({"list": [{"main": {"aqi": 2}, "components": {"pm2_5": 8.1}, "dt": 5}]})
    assert reading.aqi == 2
    assert reading.components == {"pm2_5": 8.1}
    assert parse_air_quality({"list": []}) is None
