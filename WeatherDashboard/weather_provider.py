"""Weather provider abstraction - allows swapping different weather APIs."""
from abc import ABC, abstractmethod
from typing import List, Optional


class WeatherProviderError(Exception):
    """Exception raised when a weather provider fails.

    Subclasses form a closed taxonomy; ``message`` is always safe to show
    to the user.
    """

    default_message = "An error occurred. Please try again."

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        self.status_code = status_code
        super().__init__(self.message)


class ValidationError(WeatherProviderError):
    default_message = "Please enter a city name."


class InvalidRequest(WeatherProviderError):
    default_message = "Invalid request. Please check the city name."


class AuthError(WeatherProviderError):
    default_message = "Invalid API key. Please check your API key."


class CityNotFound(WeatherProviderError):
    default_message = "City not found. Please check the city name and try again."


class RateLimited(WeatherProviderError):
    default_message = "Too many requests. Please wait a moment and try again."


class ServerError(WeatherProviderError):
    default_message = "Server error. Please try again later."


class NetworkError(WeatherProviderError):
    default_message = "Network error. Please check your internet connection."


class UnknownError(WeatherProviderError):
    default_message = "An unexpected error occurred."


_STATUS_ERRORS = {
    400: InvalidRequest,
    401: AuthError,
    404: CityNotFound,
    429: RateLimited,
}


def error_for_status(status_code: int, provider_message: Optional[str] = None) -> WeatherProviderError:
    """
    Classify an HTTP error status into the provider error taxonomy.

    Args:
        status_code: HTTP status returned by the provider
        provider_message: Message field from the provider's error body, if any

    Returns:
        WeatherProviderError: The matching taxonomy member (not raised)
    """
    error_cls = _STATUS_ERRORS.get(status_code)
    if error_cls is not None:
        return error_cls(status_code=status_code)
    if 500 <= status_code < 600:
        return ServerError(status_code=status_code)
    return UnknownError(provider_message, status_code=status_code)


class WeatherProviderBase(ABC):
    """
    Abstract base class for weather data providers.

    Methods are blocking and return the provider's decoded JSON. They raise
    a ``WeatherProviderError`` subclass on any failure.
    """

    @abstractmethod
    def current_by_city(self, city: str, units: str) -> dict:
        """Fetch current conditions for a free-text city name."""

    @abstractmethod
    def current_by_coords(self, lat: float, lon: float, units: str) -> dict:
        """Fetch current conditions for a coordinate pair."""

    @abstractmethod
    def forecast_by_city(self, city: str, units: str) -> dict:
        """Fetch the 3-hourly forecast for a free-text city name."""

    @abstractmethod
    def forecast_by_coords(self, lat: float, lon: float, units: str) -> dict:
        """Fetch the 3-hourly forecast for a coordinate pair."""

    @abstractmethod
    def geocode(self, query: str, limit: int) -> List[dict]:
        """Forward-geocode free text into candidate places."""

    @abstractmethod
    def reverse_geocode(self, lat: float, lon: float, limit: int = 1) -> List[dict]:
        """Resolve a coordinate pair into named places."""

    @abstractmethod
    def air_pollution(self, lat: float, lon: float) -> dict:
        """Fetch current air pollution for a coordinate pair."""
