"""
Weather feed - provider client, background poller and the shared cell.

The poller thread is the only producer of WeatherState; the animation loop
is the only consumer. They meet in WeatherCell, a single-slot, lock-guarded
cell with a version counter, so the loop can check for news every tick
without ever blocking on the network.
"""

import logging
import random
import threading
import time
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional, Tuple

from .errors import CircuitBreaker, CircuitBreakerOpenError, ErrorCategory, WeatherError, handle_error
from .models import Location, WeatherCondition, WeatherState
from .protocol import ProviderReading, WeatherProvider

logger = logging.getLogger(__name__)

# Precipitation (mm) that counts as full intensity
FULL_INTENSITY_MM = 10.0

DEFAULT_REFRESH_INTERVAL = 300.0


class WeatherCell:
    """Latest WeatherState plus a version that grows with every publish."""

    def __init__(self):
        self._lock = threading.Lock()
        self._state: Optional[WeatherState] = None
        self._version = 0

    def publish(self, state: WeatherState) -> int:
        with self._lock:
            self._state = state
            self._version += 1
            return self._version

    def latest(self, after_version: int = 0) -> Optional[Tuple[int, WeatherState]]:
        """(version, state) if something newer than after_version exists."""
        with self._lock:
            if self._state is None or self._version <= after_version:
                return None
            return self._version, self._state

    @property
    def version(self) -> int:
        with self._lock:
            return self._version


def precipitation_intensity(mm: float) -> float:
    return min(1.0, max(0.0, mm / FULL_INTENSITY_MM))


def normalize_reading(reading: ProviderReading, location: Optional[Location] = None,
                      observed_at: Optional[float] = None) -> WeatherState:
    """Turn a provider reading into the engine's WeatherState."""
    return WeatherState(
        condition=WeatherCondition.from_wmo_code(reading.weather_code),
        temperature=reading.temperature,
        wind_speed=reading.wind_speed,
        wind_direction=reading.wind_direction,
        precipitation=reading.precipitation,
        precipitation_intensity=precipitation_intensity(reading.precipitation),
        is_night=not reading.is_day,
        observed_at=observed_at if observed_at is not None else time.time(),
        humidity=reading.humidity,
        cloud_cover=reading.cloud_cover,
        location=location,
    )


def generate_offline_weather(rng: Optional[random.Random] = None,
                             now: Optional[datetime] = None) -> WeatherState:
    """
    A plausible reading for when no provider has ever answered.

    Mild conditions only, night outside 06:00-18:00.
    """
    rng = rng or random.Random()
    now = now or datetime.now()
    condition = rng.choice([
        WeatherCondition.CLEAR,
        WeatherCondition.PARTLY_CLOUDY,
        WeatherCondition.CLOUDY,
        WeatherCondition.RAIN,
    ])
    precipitation = rng.uniform(0.5, 3.0) if condition.is_raining else 0.0
    return WeatherState(
        condition=condition,
        temperature=round(rng.uniform(8.0, 22.0), 1),
        wind_speed=round(rng.uniform(2.0, 20.0), 1),
        wind_direction=rng.uniform(0.0, 360.0),
        precipitation=precipitation,
        precipitation_intensity=precipitation_intensity(precipitation),
        is_night=not (6 <= now.hour < 18),
        offline=True,
    )


class WeatherClient:
    """
    Fetches current weather from a provider.

    Readings are cached for cache_duration seconds and calls go through a
    circuit breaker, so a dead service is not hit on every poll.
    """

    def __init__(self, provider: WeatherProvider, location: Location,
                 cache_duration: float = DEFAULT_REFRESH_INTERVAL,
                 breaker: Optional[CircuitBreaker] = None,
                 clock: Callable[[], float] = time.time):
        self.provider = provider
        self.location = location
        self.cache_duration = cache_duration
        self.breaker = breaker or CircuitBreaker(provider.name, failure_threshold=5, timeout=600.0)
        self._clock = clock
        self._cached: Optional[WeatherState] = None
        self._cached_at = 0.0
        self._lock = threading.Lock()

    @property
    def provider_name(self) -> str:
        return self.provider.name

    def set_location(self, location: Location):
        with self._lock:
            if location != self.location:
                self.location = location
                self._cached = None

    def get_current_weather(self) -> WeatherState:
        """
        Current weather, from cache when fresh.

        Raises:
            CircuitBreakerOpenError: Too many recent failures
            WeatherError: Provider failure
        """
        now = self._clock()
        with self._lock:
            if self._cached is not None and now - self._cached_at < self.cache_duration:
                return self._cached
            location = self.location

        if not self.breaker.can_execute():
            raise CircuitBreakerOpenError(f"{self.provider.name} unavailable, circuit open")

        try:
            reading = self.provider.get_current(location)
        except WeatherError as e:
            self.breaker.record_failure(e)
            raise
        self.breaker.record_success()

        state = normalize_reading(reading, location, observed_at=now)
        logger.info(
            f"Weather from {self.provider.name}: {state.condition.value}, "
            f"{state.temperature:.1f}°C, night={state.is_night}"
        )
        with self._lock:
            self._cached = state
            self._cached_at = now
        return state


class WeatherPoller(threading.Thread):
    """
    Background thread that keeps WeatherCell fresh.

    Each poll retries with exponential backoff. When every attempt fails
    the last good reading is republished marked offline, or a generated
    offline reading if there never was a good one. The engine never sees
    an exception from here.
    """

    def __init__(self, client: WeatherClient, cell: WeatherCell, stop_event: threading.Event,
                 interval: float = DEFAULT_REFRESH_INTERVAL, max_retries: int = 3,
                 retry_delay: float = 2.0, retry_backoff: float = 2.0,
                 locate: Optional[Callable[[], Optional[Location]]] = None,
                 rng: Optional[random.Random] = None):
        super().__init__(name="weather-poller", daemon=True)
        self.client = client
        self.cell = cell
        self.stop_event = stop_event
        self.interval = interval
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.retry_backoff = retry_backoff
        self.locate = locate
        self.rng = rng or random.Random()
        self.last_good: Optional[WeatherState] = None
        self.poll_count = 0

    def run(self):
        logger.info(f"Weather poller started ({self.client.provider_name}, every {self.interval:.0f}s)")
        if self.locate is not None:
            self._detect_location()
        while not self.stop_event.is_set():
            self.poll_once()
            if self.stop_event.wait(self.interval):
                break
        logger.info("Weather poller stopped")

    def _detect_location(self):
        try:
            location = self.locate()
        except WeatherError as e:
            handle_error(e, "location detection", ErrorCategory.UPSTREAM)
            return
        if location is not None:
            logger.info(f"Using detected location {location.describe()}")
            self.client.set_location(location)

    def poll_once(self) -> Optional[WeatherState]:
        """One poll with retries. Returns what was published, None if stopped."""
        self.poll_count += 1
        delay = self.retry_delay

        for attempt in range(1, self.max_retries + 1):
            try:
                state = self.client.get_current_weather()
            except CircuitBreakerOpenError as e:
                # The failures that opened the breaker were already reported
                logger.info(f"Skipping weather poll: {e}")
                break
            except WeatherError as e:
                handle_error(e, "weather poll", ErrorCategory.UPSTREAM, additional_context={
                    'provider': self.client.provider_name,
                    'attempt': attempt,
                    'max_attempts': self.max_retries,
                })
                if attempt < self.max_retries:
                    logger.info(f"Retrying weather poll in {delay:.1f}s "
                                f"(attempt {attempt}/{self.max_retries})")
                    if self.stop_event.wait(delay):
                        return None
                    delay *= self.retry_backoff
                continue

            self.last_good = state
            self.cell.publish(state)
            return state

        if self.last_good is not None:
            fallback = replace(self.last_good, offline=True)
            logger.warning("Weather feed unavailable, keeping last known reading (offline)")
        else:
            fallback = generate_offline_weather(self.rng)
            logger.warning(f"Weather feed unavailable, showing generated offline weather "
                           f"({fallback.condition.value})")
        self.cell.publish(fallback)
        return fallback
