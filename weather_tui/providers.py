"""
HTTP weather providers.

OpenMeteoProvider needs no key. OpenWeatherMapProvider and
WeatherApiProvider need one and map their own condition codes onto WMO
codes so the rest of the program only ever deals with WMO codes.
"""

import json
import logging
import socket
import urllib.error
import urllib.parse
import urllib.request
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .errors import ConfigurationError, NetworkError, ProviderError
from .models import Location
from .protocol import ProviderReading, WeatherProvider

logger = logging.getLogger(__name__)

USER_AGENT = "weather-tui"
DEFAULT_TIMEOUT = 10.0


def fetch_json(url: str, timeout: float = DEFAULT_TIMEOUT) -> Any:
    """
    GET a URL and decode its JSON body.

    Raises:
        NetworkError: Connection, HTTP or timeout failure
        ProviderError: Body is not valid JSON
    """
    request = urllib.request.Request(url, headers={'User-Agent': USER_AGENT})
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            body = response.read()
    except urllib.error.HTTPError as e:
        raise NetworkError(f"HTTP {e.code} from {_redact(url)}", url=_redact(url)) from e
    except urllib.error.URLError as e:
        raise NetworkError(f"Cannot reach {_redact(url)}: {e.reason}", url=_redact(url)) from e
    except (socket.timeout, TimeoutError) as e:
        raise NetworkError(f"Timed out after {timeout}s: {_redact(url)}", url=_redact(url)) from e
    except OSError as e:
        raise NetworkError(f"Connection error for {_redact(url)}: {e}", url=_redact(url)) from e

    try:
        return json.loads(body.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProviderError(f"Invalid JSON from {_redact(url)}: {e}") from e


def _redact(url: str) -> str:
    """Hide API keys before a URL reaches the log."""
    parts = urllib.parse.urlsplit(url)
    if not parts.query:
        return url
    query = [
        (k, '***' if k.lower() in ('appid', 'key', 'api_key') else v)
        for k, v in urllib.parse.parse_qsl(parts.query)
    ]
    return urllib.parse.urlunsplit(parts._replace(query=urllib.parse.urlencode(query)))


class OpenMeteoProvider(WeatherProvider):
    """Open-Meteo forecast API (https://open-meteo.com), no key required."""

    name = "Open-Meteo.com"
    BASE_URL = "https://api.open-meteo.com/v1/forecast"
    CURRENT_FIELDS = (
        "temperature_2m", "relative_humidity_2m", "apparent_temperature", "is_day",
        "precipitation", "weather_code", "cloud_cover", "pressure_msl",
        "wind_speed_10m", "wind_direction_10m",
    )

    def __init__(self, base_url: str = BASE_URL, timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url
        self.timeout = timeout

    def build_url(self, location: Location) -> str:
        params = {
            'latitude': f"{location.latitude:.4f}",
            'longitude': f"{location.longitude:.4f}",
            'current': ",".join(self.CURRENT_FIELDS),
            'temperature_unit': 'celsius',
            'wind_speed_unit': 'kmh',
            'precipitation_unit': 'mm',
            'timezone': 'auto',
        }
        return f"{self.base_url}?{urllib.parse.urlencode(params)}"

    def get_current(self, location: Location) -> ProviderReading:
        data = fetch_json(self.build_url(location), self.timeout)
        try:
            current = data['current']
            return ProviderReading(
                weather_code=int(current['weather_code']),
                temperature=float(current['temperature_2m']),
                apparent_temperature=_optional_float(current.get('apparent_temperature')),
                humidity=_optional_float(current.get('relative_humidity_2m')),
                precipitation=float(current.get('precipitation') or 0.0),
                wind_speed=float(current.get('wind_speed_10m') or 0.0),
                wind_direction=float(current.get('wind_direction_10m') or 0.0),
                cloud_cover=_optional_float(current.get('cloud_cover')),
                pressure=_optional_float(current.get('pressure_msl')),
                is_day=bool(current.get('is_day', 1)),
                timestamp=str(current.get('time', '')),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(f"Unexpected Open-Meteo response: {e!r}") from e


class OpenWeatherMapProvider(WeatherProvider):
    """OpenWeatherMap current weather API (needs an API key)."""

    name = "OpenWeatherMap"
    BASE_URL = "https://api.openweathermap.org/data/2.5/weather"

    def __init__(self, api_key: str, base_url: str = BASE_URL, timeout: float = DEFAULT_TIMEOUT):
        if not api_key:
            raise ConfigurationError("OpenWeatherMap requires an API key")
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout

    def build_url(self, location: Location) -> str:
        params = {
            'lat': f"{location.latitude:.4f}",
            'lon': f"{location.longitude:.4f}",
            'appid': self.api_key,
            'units': 'metric',
        }
        return f"{self.base_url}?{urllib.parse.urlencode(params)}"

    @staticmethod
    def id_to_wmo_code(owm_id: int, cloud_cover: float = 0.0) -> int:
        """Map an OpenWeatherMap condition id to a WMO code."""
        if owm_id == 800:
            return 0 if cloud_cover < 10 else 1
        if owm_id == 801:
            return 1
        if owm_id in (802, 803):
            return 2
        if owm_id == 804:
            return 3
        if owm_id in (701, 721, 741):
            return 45
        if 300 <= owm_id <= 321:
            return 51
        if owm_id in (500, 501):
            return 61
        if 502 <= owm_id <= 504:
            return 65
        if owm_id == 511:
            return 66
        if owm_id == 520:
            return 80
        if owm_id in (521, 531):
            return 81
        if owm_id == 522:
            return 82
        if owm_id == 600:
            return 71
        if owm_id == 601:
            return 73
        if owm_id == 602:
            return 75
        if 611 <= owm_id <= 613:
            return 77
        if owm_id in (615, 616, 620, 621):
            return 85
        if owm_id == 622:
            return 86
        if 200 <= owm_id <= 232:
            return 95
        return 0

    @staticmethod
    def is_daytime(current: int, sunrise: int, sunset: int) -> bool:
        return sunrise <= current < sunset

    def get_current(self, location: Location) -> ProviderReading:
        data = fetch_json(self.build_url(location), self.timeout)
        try:
            main = data['main']
            wind = data.get('wind', {})
            clouds = float(data.get('clouds', {}).get('all', 0))
            weather = data.get('weather') or [{'id': 800}]
            observed = int(data['dt'])
            sun = data.get('sys', {})
            precipitation = (data.get('rain') or {}).get('1h', 0.0) or (data.get('snow') or {}).get('1h', 0.0)

            return ProviderReading(
                weather_code=self.id_to_wmo_code(int(weather[0]['id']), clouds),
                temperature=float(main['temp']),
                apparent_temperature=_optional_float(main.get('feels_like')),
                humidity=_optional_float(main.get('humidity')),
                precipitation=float(precipitation),
                # OpenWeatherMap reports m/s in metric mode
                wind_speed=float(wind.get('speed', 0.0)) * 3.6,
                wind_direction=float(wind.get('deg', 0.0)),
                cloud_cover=clouds,
                pressure=_optional_float(main.get('pressure')),
                visibility=_optional_float(data.get('visibility')),
                is_day=self.is_daytime(observed, int(sun.get('sunrise', 0)), int(sun.get('sunset', 0))),
                timestamp=datetime.fromtimestamp(observed, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S"),
            )
        except (KeyError, TypeError, ValueError, IndexError) as e:
            raise ProviderError(f"Unexpected OpenWeatherMap response: {e!r}") from e


class WeatherApiProvider(WeatherProvider):
    """WeatherAPI.com current weather API (needs an API key)."""

    name = "WeatherAPI.com"
    BASE_URL = "https://api.weatherapi.com/v1/current.json"

    # WeatherAPI.com condition code -> WMO code
    CODE_MAP: Dict[int, int] = {
        1000: 0,
        1003: 1,
        1006: 2,
        1009: 3,
        **dict.fromkeys((1030, 1135, 1147), 45),
        **dict.fromkeys((1063, 1150, 1153, 1168, 1171), 51),
        **dict.fromkeys((1180, 1183, 1186), 61),
        **dict.fromkeys((1189, 1192, 1195), 63),
        **dict.fromkeys((1198, 1201, 1204, 1207, 1237, 1261), 66),
        **dict.fromkeys((1066, 1210, 1213, 1216, 1255), 71),
        **dict.fromkeys((1219, 1222, 1258), 73),
        **dict.fromkeys((1225, 1282), 75),
        **dict.fromkeys((1069, 1072, 1114, 1117, 1249, 1252), 77),
        **dict.fromkeys((1240, 1243, 1246), 80),
        1279: 85,
        **dict.fromkeys((1087, 1273), 95),
        **dict.fromkeys((1264, 1276), 99),
    }

    def __init__(self, api_key: str, base_url: str = BASE_URL, timeout: float = DEFAULT_TIMEOUT):
        if not api_key:
            raise ConfigurationError("WeatherAPI requires an API key")
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout

    def build_url(self, location: Location) -> str:
        params = {
            'key': self.api_key,
            'q': f"{location.latitude:.4f},{location.longitude:.4f}",
            'aqi': 'no',
        }
        return f"{self.base_url}?{urllib.parse.urlencode(params)}"

    @classmethod
    def code_to_wmo_code(cls, code: int) -> int:
        """Map a WeatherAPI.com condition code to a WMO code."""
        return cls.CODE_MAP.get(code, 0)

    def get_current(self, location: Location) -> ProviderReading:
        data = fetch_json(self.build_url(location), self.timeout)
        try:
            current = data['current']
            visibility_km = current.get('vis_km')
            return ProviderReading(
                weather_code=self.code_to_wmo_code(int(current['condition']['code'])),
                temperature=float(current['temp_c']),
                apparent_temperature=_optional_float(current.get('feelslike_c')),
                humidity=_optional_float(current.get('humidity')),
                precipitation=float(current.get('precip_mm') or 0.0),
                wind_speed=float(current.get('wind_kph') or 0.0),
                wind_direction=float(current.get('wind_degree') or 0.0),
                cloud_cover=_optional_float(current.get('cloud')),
                pressure=_optional_float(current.get('pressure_mb')),
                visibility=None if visibility_km is None else float(visibility_km) * 1000.0,
                is_day=bool(current.get('is_day', 1)),
                timestamp=str(current.get('last_updated', '')),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(f"Unexpected WeatherAPI response: {e!r}") from e


def _optional_float(value) -> Optional[float]:
    return None if value is None else float(value)


PROVIDERS: Dict[str, type] = {
    'open_meteo': OpenMeteoProvider,
    'openweathermap': OpenWeatherMapProvider,
    'weatherapi': WeatherApiProvider,
}


def create_provider(provider: str, api_key: Optional[str] = None,
                    timeout: float = DEFAULT_TIMEOUT) -> WeatherProvider:
    """
    Build a provider by its configuration name.

    Raises:
        ConfigurationError: Unknown provider, or a missing API key
    """
    key = (provider or '').strip().lower().replace('-', '_')
    if key in ('open_meteo', 'openmeteo'):
        return OpenMeteoProvider(timeout=timeout)
    if key in ('openweathermap', 'open_weather_map', 'owm'):
        return OpenWeatherMapProvider(api_key or '', timeout=timeout)
    if key in ('weatherapi', 'weather_api'):
        return WeatherApiProvider(api_key or '', timeout=timeout)
    raise ConfigurationError(
        f"Unknown weather provider {provider!r} (choose from: {', '.join(sorted(PROVIDERS))})"
    )
