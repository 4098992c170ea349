"""Text layout for the dashboard - pure functions for testability."""
import time
from typing import List, Optional, Sequence
from weather_data import AirQuality, ForecastDay, WeatherSnapshot
from app_state import ApplicationState, page_total, visible_forecast
from geolocation import DENIED, UNSUPPORTED

DIRECTIONS = [
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
]

AQI_LABELS = {1: "Good", 2: "Fair", 3: "Moderate", 4: "Poor", 5: "Very poor"}

# Instructions shown when location access is blocked, keyed by sys.platform.
LOCATION_HELP = {
    "linux": "Enable location services for this application in your desktop privacy settings, then try again.",
    "darwin": "Open System Settings > Privacy & Security > Location Services and allow this application.",
    "win32": "Open Settings > Privacy & security > Location and allow apps to access your location.",
}
DEFAULT_LOCATION_HELP = "Allow location access for this application in your system settings, then try again."


def location_help(platform: str) -> str:
    return LOCATION_HELP.get(platform, DEFAULT_LOCATION_HELP)


def temperature_symbol(unit: str) -> str:
    return "°F" if unit == "imperial" else "°C"


def speed_symbol(unit: str) -> str:
    return "mph" if unit == "imperial" else "m/s"


def wind_direction(deg: Optional[float]) -> str:
    """
    Get the 16-point compass direction for a wind bearing.

    Args:
        deg: Bearing in degrees (meteorological, 0 = from north)

    Returns:
        Compass label such as "NNE", or "" when the bearing is unknown
    """
    if deg is None:
        return ""
    return DIRECTIONS[int(deg / 22.5 + 0.5) % 16]


def format_clock(timestamp: int) -> str:
    return time.strftime("%H:%M", time.localtime(timestamp))


def format_current(weather: WeatherSnapshot) -> List[str]:
    """Lines describing the current conditions block."""
    deg = temperature_symbol(weather.unit)
    speed = speed_symbol(weather.unit)
    place = ", ".join(p for p in (weather.city, weather.region, weather.country) if p)

    wind = f"Wind {weather.wind_speed:.1f} {speed} {wind_direction(weather.wind_deg)}".rstrip()
    if weather.wind_gust is not None:
        wind += f" (gusts {weather.wind_gust:.1f} {speed})"

    lines = [
        place,
        f"{weather.temperature}{deg}  {weather.description.capitalize()}",
        f"Feels like {weather.feels_like}{deg}  Low {weather.temp_min}{deg}  High {weather.temp_max}{deg}",
        f"Humidity {weather.humidity}%  Pressure {weather.pressure} hPa  Clouds {weather.clouds}%",
        wind,
    ]
    if weather.visibility is not None:
        lines.append(f"Visibility {weather.visibility / 1000:.1f} km")
    lines.append(f"Sunrise {format_clock(weather.sunrise)}  Sunset {format_clock(weather.sunset)}")
    lines.append(f"Updated {format_clock(weather.timestamp)}")
    return lines


def format_air_quality(reading: Optional[AirQuality]) -> str:
    if reading is None:
        return "Air quality data not available"
    label = AQI_LABELS.get(reading.aqi, "Unknown")
    line = f"Air quality: {label} (AQI {reading.aqi})"
    pm25 = reading.components.get("pm2_5")
    if pm25 is not None:
        line += f"  PM2.5 {pm25:.1f} µg/m³"
    return line


def format_forecast_day(day: ForecastDay, unit: str) -> str:
    deg = temperature_symbol(unit)
    return (
        f"{day.date.strftime('%a %d %b')}  {day.temp_min:>3}{deg} / {day.temp_max:>3}{deg}  "
        f"{day.description}  ({day.avg_humidity}% hum, {day.avg_wind_speed} {speed_symbol(unit)})"
    )


def format_forecast_page(days: Sequence[ForecastDay], unit: str, page: int, total_pages: int) -> List[str]:
    """Lines for one page of the forecast, with a page indicator."""
    if not days:
        return []
    lines = [format_forecast_day(day, unit) for day in days]
    lines.append(f"Page {page + 1} of {total_pages}")
    return lines


def render_state(state: ApplicationState, platform: str = "") -> str:
    """Render the whole dashboard as plain text."""
    lines = []
    if state.loading:
        lines.append("Loading...")
    if state.error:
        lines.append(f"! {state.error}")

    if state.location_permission == DENIED and state.current_weather is None:
        lines.append("Location access is blocked.")
        lines.append(location_help(platform))
    elif state.location_permission == UNSUPPORTED and state.current_weather is None:
        lines.append("Location is not available here; search for a city instead.")

    if state.current_weather is not None:
        lines.append("")
        lines.extend(format_current(state.current_weather))
        forecast_lines = format_forecast_page(
            visible_forecast(state), state.unit, state.current_page, page_total(state)
        )
        if forecast_lines:
            lines.append("")
            lines.append("Forecast")
            lines.extend(forecast_lines)

    if state.favorites:
        lines.append("")
        favorites = []
        for fav in state.favorites:
            temp = "" if fav.temp is None else f" {fav.temp}{temperature_symbol(fav.unit)}"
            favorites.append(f"{fav.city}{temp}")
        lines.append("Favorites: " + ", ".join(favorites))
    if state.search_history:
        lines.append("Recent: " + ", ".join(state.search_history))
    return "\n".join(lines)
