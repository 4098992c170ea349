"""Weather domain model - pure data structures independent of any API."""
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Optional, Tuple

ICON_URL_TEMPLATE = "https://openweathermap.org/img/wn/{icon}{suffix}.png"


def icon_url(icon: str, large: bool = False) -> str:
    """Build the HTTPS URL of a provider condition icon."""
    return ICON_URL_TEMPLATE.format(icon=icon, suffix="@2x" if large else "")


@dataclass(frozen=True)
class WeatherSnapshot:
    """Point-in-time weather reading for one location."""
    city: str
    country: str
    lat: float
    lon: float
    temperature: int
    feels_like: int
    temp_min: int
    temp_max: int
    humidity: float
    pressure: float
    wind_speed: float
    wind_deg: Optional[float]
    description: str  # e.g., "broken clouds", "light rain"
    icon: str  # provider icon code, e.g. "04d"
    sunrise: int  # UNIX timestamp (UTC)
    sunset: int  # UNIX timestamp (UTC)
    clouds: int  # percentage
    visibility: Optional[int]
    timestamp: int  # observation time, UNIX timestamp (UTC)
    unit: str = "metric"
    region: Optional[str] = None
    wind_gust: Optional[float] = None
    alerts: Tuple[dict, ...] = ()

    @property
    def coordinates(self) -> Tuple[float, float]:
        return (self.lat, self.lon)

    @property
    def icon_url(self) -> str:
        return icon_url(self.icon, large=True)


@dataclass(frozen=True)
class ForecastSample:
    """One raw 3-hourly forecast entry, before daily aggregation."""
    timestamp: int
    temp: float
    feels_like: float
    humidity: float
    pressure: float
    wind_speed: float
    clouds: float
    icon: str
    description: str


@dataclass(frozen=True)
class ForecastDay:
    """Aggregated summary of one calendar day of forecast samples."""
    date: date
    temp_min: int
    temp_max: int
    avg_temp: int
    feels_like: int
    icon: str
    description: str
    avg_humidity: int
    avg_wind_speed: int
    avg_pressure: int
    avg_clouds: int

    @property
    def icon_url(self) -> str:
        return icon_url(self.icon)


@dataclass(frozen=True)
class CitySuggestion:
    """A geocoding candidate offered while the user types."""
    name: str
    country: str
    lat: float
    lon: float
    region: Optional[str] = None
    local_names: Dict[str, str] = field(default_factory=dict, compare=False)

    @property
    def display_name(self) -> str:
        if self.region:
            return f"{self.name}, {self.region}, {self.country}"
        return f"{self.name}, {self.country}"


@dataclass(frozen=True)
class AirQuality:
    """Air pollution reading (AQI is 1 = good ... 5 = very poor)."""
    aqi: int
    components: Dict[str, float]
    timestamp: int
