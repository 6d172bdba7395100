"""
IP-based location lookup via ipinfo.io, cached on disk.
"""

import json
import logging
import os
import time
from pathlib import Path
from typing import Optional

from .errors import ProviderError
from .models import Location
from .providers import fetch_json

logger = logging.getLogger(__name__)

IPINFO_URL = "https://ipinfo.io/json"
LOCATION_CACHE_NAME = "location.json"
# Re-detect once a day; people travel with laptops
CACHE_MAX_AGE = 24 * 3600


def default_cache_dir() -> Path:
    base = os.environ.get('XDG_CACHE_HOME') or str(Path.home() / '.cache')
    return Path(base) / 'weather-tui'


def parse_ipinfo(data) -> Location:
    """
    Location from an ipinfo.io response ({"loc": "52.52,13.41", ...}).

    Raises:
        ProviderError: Missing or malformed "loc"
    """
    try:
        lat_text, lon_text = str(data['loc']).split(',')
        return Location(float(lat_text), float(lon_text), data.get('city'))
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ProviderError(f"Invalid location format from ipinfo.io: {e!r}") from e


def load_cached_location(cache_dir: Path, max_age: float = CACHE_MAX_AGE) -> Optional[Location]:
    path = Path(cache_dir) / LOCATION_CACHE_NAME
    try:
        with open(path, 'r') as f:
            data = json.load(f)
        if time.time() - float(data.get('saved_at', 0)) > max_age:
            logger.debug(f"Location cache {path} is stale")
            return None
        return Location(float(data['latitude']), float(data['longitude']), data.get('city'))
    except FileNotFoundError:
        return None
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.warning(f"Ignoring unreadable location cache {path}: {e}")
        return None


def save_location_cache(cache_dir: Path, location: Location):
    path = Path(cache_dir) / LOCATION_CACHE_NAME
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump({
                'latitude': location.latitude,
                'longitude': location.longitude,
                'city': location.city,
                'saved_at': time.time(),
            }, f)
    except OSError as e:
        logger.warning(f"Could not write location cache {path}: {e}")


def detect_location(cache_dir: Optional[Path] = None, timeout: float = 5.0) -> Location:
    """
    Where this machine appears to be, by IP address.

    Raises:
        NetworkError: ipinfo.io unreachable
        ProviderError: Response without a usable location
    """
    cache_dir = Path(cache_dir) if cache_dir is not None else default_cache_dir()
    cached = load_cached_location(cache_dir)
    if cached is not None:
        logger.debug(f"Using cached location {cached.describe()}")
        return cached

    location = parse_ipinfo(fetch_json(IPINFO_URL, timeout))
    logger.info(f"Detected location {location.describe()}"
                + (f" ({location.city})" if location.city else ""))
    save_location_cache(cache_dir, location)
    return location
