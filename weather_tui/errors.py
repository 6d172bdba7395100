"""
Error handling utilities for weather-tui.

Provides:
1. A small exception hierarchy for the weather feed
2. Error categorization and severity levels
3. Detailed, de-duplicated error logging (handle_error)
4. A circuit breaker for provider calls

USAGE:
    from weather_tui.errors import handle_error, ErrorCategory

    try:
        state = client.get_current_weather()
    except WeatherError as e:
        handle_error(e, "weather poll", ErrorCategory.UPSTREAM)
"""

import logging
import threading
import time
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Categories of errors for handling and reporting."""
    # Bad input: unknown condition, zero-sized grid
    INPUT = "input"

    # Pool exhaustion, terminal write failures
    RESOURCE = "resource"

    # Weather feed failures seen by the poller
    UPSTREAM = "upstream"

    # Network-level failures
    NETWORK = "network"

    # Configuration errors
    CONFIG = "configuration"

    # Unknown/uncategorized
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class WeatherError(Exception):
    """Base class for weather-tui errors."""
    category = ErrorCategory.UNKNOWN


class NetworkError(WeatherError):
    """A weather or geolocation service could not be reached."""
    category = ErrorCategory.NETWORK

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class ProviderError(WeatherError):
    """A provider answered with something we could not use."""
    category = ErrorCategory.UPSTREAM


class ConfigurationError(WeatherError):
    """Invalid configuration file or command line value."""
    category = ErrorCategory.CONFIG


class CircuitBreakerOpenError(WeatherError):
    """Raised when trying to call through an open circuit breaker."""
    category = ErrorCategory.UPSTREAM


@dataclass
class ErrorContext:
    """Detailed context information for an error."""
    error: Exception
    category: ErrorCategory
    severity: ErrorSeverity
    operation: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    thread_name: str = field(default_factory=lambda: threading.current_thread().name)
    stack_trace: str = ""
    additional_context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.stack_trace:
            trace = traceback.format_exc()
            self.stack_trace = "" if trace.startswith("NoneType: None") else trace

    def format_log_message(self) -> str:
        """Format a detailed log message."""
        lines = [
            f"ERROR [{self.severity.value.upper()}] in {self.operation}",
            f"  Category: {self.category.value}",
            f"  Type: {type(self.error).__name__}",
            f"  Message: {self.error}",
            f"  Thread: {self.thread_name}",
        ]

        if self.additional_context:
            lines.append("  Context:")
            for key, value in self.additional_context.items():
                lines.append(f"    {key}: {value}")

        if self.stack_trace:
            lines.append("  Stack Trace:")
            for line in self.stack_trace.split('\n'):
                if line.strip():
                    lines.append(f"    {line}")

        return '\n'.join(lines)


class ErrorAggregator:
    """
    Collects errors and de-duplicates repeats.

    The poller retries every few minutes while offline; without
    de-duplication the log would fill with identical reports.
    """

    def __init__(self, max_errors: int = 200, dedup_window_seconds: float = 300.0):
        self._errors: List[ErrorContext] = []
        self._lock = threading.Lock()
        self._max_errors = max_errors
        self._dedup_window = dedup_window_seconds
        self._error_counts: Dict[str, int] = {}
        self._last_error_times: Dict[str, float] = {}

    def add_error(self, context: ErrorContext) -> bool:
        """
        Add an error to the aggregator.

        Returns True if the error was recorded, False if it was a repeat.
        """
        error_key = f"{context.category.value}:{type(context.error).__name__}:{context.operation}"
        current_time = time.time()

        with self._lock:
            last_time = self._last_error_times.get(error_key)
            if last_time is not None and current_time - last_time < self._dedup_window:
                self._error_counts[error_key] = self._error_counts.get(error_key, 0) + 1
                return False

            self._errors.append(context)
            self._last_error_times[error_key] = current_time
            self._error_counts[error_key] = 1

            if len(self._errors) > self._max_errors:
                self._errors = self._errors[-self._max_errors:]

            return True

    def get_error_summary(self) -> Dict[str, Any]:
        with self._lock:
            by_category: Dict[str, int] = {}
            for ctx in self._errors:
                by_category[ctx.category.value] = by_category.get(ctx.category.value, 0) + 1
            return {
                'total_errors': len(self._errors),
                'by_category': by_category,
                'deduplicated_counts': dict(self._error_counts),
            }

    def clear(self):
        with self._lock:
            self._errors.clear()
            self._error_counts.clear()
            self._last_error_times.clear()


_global_aggregator = ErrorAggregator()


def get_error_aggregator() -> ErrorAggregator:
    """Get the global error aggregator instance."""
    return _global_aggregator


def determine_severity(error: Exception, category: ErrorCategory) -> ErrorSeverity:
    """Pick a severity for an error based on type and category."""
    if category in (ErrorCategory.UPSTREAM, ErrorCategory.NETWORK):
        # The scene keeps running on the last known state
        return ErrorSeverity.WARNING
    if category == ErrorCategory.INPUT:
        return ErrorSeverity.WARNING
    if category == ErrorCategory.RESOURCE:
        return ErrorSeverity.ERROR
    if 'timeout' in type(error).__name__.lower() or 'timeout' in str(error).lower():
        return ErrorSeverity.WARNING
    return ErrorSeverity.ERROR


_LOG_LEVELS = {
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


def handle_error(
    error: Exception,
    operation: str,
    category: Optional[ErrorCategory] = None,
    severity: Optional[ErrorSeverity] = None,
    additional_context: Optional[Dict[str, Any]] = None,
    reraise: bool = False,
) -> ErrorContext:
    """
    Log an error with context and record it in the global aggregator.

    Args:
        error: The exception that occurred
        operation: Name of the operation that failed
        category: Category of the error (taken from WeatherError subclasses
            when not given)
        severity: Severity level (auto-determined if not provided)
        additional_context: Extra key/value pairs for the log block
        reraise: Whether to re-raise the exception after handling

    Returns:
        ErrorContext with full error details
    """
    if category is None:
        category = getattr(error, 'category', ErrorCategory.UNKNOWN)
    if severity is None:
        severity = determine_severity(error, category)

    context = ErrorContext(
        error=error,
        category=category,
        severity=severity,
        operation=operation,
        additional_context=additional_context or {},
    )

    was_added = _global_aggregator.add_error(context)
    log_level = _LOG_LEVELS.get(severity, logging.ERROR)

    if was_added:
        logger.log(log_level, context.format_log_message())
    else:
        logger.debug(f"[DEDUPLICATED] {operation}: {type(error).__name__}: {error}")

    if reraise:
        raise error

    return context


# === Circuit Breaker Pattern ===

class CircuitBreakerState(Enum):
    """States for the circuit breaker."""
    CLOSED = "closed"       # Normal operation
    OPEN = "open"           # Failing, rejecting calls
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitBreaker:
    """
    Stops hammering a weather service that keeps failing.

    Usage:
        breaker = CircuitBreaker("open_meteo", failure_threshold=3)

        if breaker.can_execute():
            try:
                reading = provider.get_current(location)
                breaker.record_success()
            except WeatherError as e:
                breaker.record_failure(e)
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        success_threshold: int = 1,
        timeout: float = 600.0,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            name: Name for logging/identification
            failure_threshold: Failures before opening circuit
            success_threshold: Successes needed to close from half-open
            timeout: Seconds before half-open transition
            clock: Time source, replaceable in tests
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.success_threshold = success_threshold
        self.timeout = timeout
        self._clock = clock

        self._state = CircuitBreakerState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitBreakerState:
        with self._lock:
            self._check_state_transition()
            return self._state

    def _check_state_transition(self):
        if self._state == CircuitBreakerState.OPEN and self._last_failure_time is not None:
            if self._clock() - self._last_failure_time >= self.timeout:
                self._state = CircuitBreakerState.HALF_OPEN
                self._success_count = 0
                logger.info(f"Circuit breaker '{self.name}' -> HALF_OPEN")

    def can_execute(self) -> bool:
        return self.state in (CircuitBreakerState.CLOSED, CircuitBreakerState.HALF_OPEN)

    def record_success(self):
        with self._lock:
            if self._state == CircuitBreakerState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.success_threshold:
                    self._state = CircuitBreakerState.CLOSED
                    self._failure_count = 0
                    logger.info(f"Circuit breaker '{self.name}' -> CLOSED")
            elif self._state == CircuitBreakerState.CLOSED:
                self._failure_count = 0

    def record_failure(self, error: Exception):
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = self._clock()

            if self._state == CircuitBreakerState.HALF_OPEN:
                self._state = CircuitBreakerState.OPEN
                logger.warning(f"Circuit breaker '{self.name}' -> OPEN (half-open failure)")
            elif self._state == CircuitBreakerState.CLOSED:
                if self._failure_count >= self.failure_threshold:
                    self._state = CircuitBreakerState.OPEN
                    logger.warning(
                        f"Circuit breaker '{self.name}' -> OPEN "
                        f"(threshold {self.failure_threshold} reached, last error: {type(error).__name__})"
                    )
