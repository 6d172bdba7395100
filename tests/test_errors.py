"""
Tests for error handling: categories, de-duplicated logging and the
circuit breaker.
"""

import logging
import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from weather_tui.errors import (
    CircuitBreaker,
    CircuitBreakerOpenError,
    CircuitBreakerState,
    ConfigurationError,
    ErrorAggregator,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    NetworkError,
    ProviderError,
    determine_severity,
    get_error_aggregator,
    handle_error,
)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture(autouse=True)
def clear_aggregator():
    get_error_aggregator().clear()
    yield
    get_error_aggregator().clear()


# ===========================================================================
# Categories and severity
# ===========================================================================

class TestCategories:
    @pytest.mark.parametrize("error,category", [
        (NetworkError("x"), ErrorCategory.NETWORK),
        (ProviderError("x"), ErrorCategory.UPSTREAM),
        (ConfigurationError("x"), ErrorCategory.CONFIG),
        (CircuitBreakerOpenError("x"), ErrorCategory.UPSTREAM),
    ])
    def test_category_from_class(self, error, category):
        assert error.category == category
        assert handle_error(error, "test").category == category

    def test_plain_exception_is_unknown(self):
        assert handle_error(RuntimeError("boom"), "test").category == ErrorCategory.UNKNOWN

    @pytest.mark.parametrize("error,category,severity", [
        (NetworkError("x"), ErrorCategory.NETWORK, ErrorSeverity.WARNING),
        (ProviderError("x"), ErrorCategory.UPSTREAM, ErrorSeverity.WARNING),
        (ValueError("x"), ErrorCategory.INPUT, ErrorSeverity.WARNING),
        (OSError("x"), ErrorCategory.RESOURCE, ErrorSeverity.ERROR),
        (RuntimeError("request timeout"), ErrorCategory.UNKNOWN, ErrorSeverity.WARNING),
        (RuntimeError("x"), ErrorCategory.CONFIG, ErrorSeverity.ERROR),
    ])
    def test_determine_severity(self, error, category, severity):
        assert determine_severity(error, category) == severity


# ===========================================================================
# handle_error
# ===========================================================================

class TestHandleError:
    def test_log_message_contents(self, caplog):
        with caplog.at_level(logging.WARNING):
            context = handle_error(NetworkError("connection refused"), "weather poll",
                                   additional_context={'attempt': 2})
        assert context.severity == ErrorSeverity.WARNING
        message = caplog.records[-1].getMessage()
        assert "in weather poll" in message
        assert "NetworkError" in message
        assert "attempt: 2" in message

    def test_repeats_are_deduplicated(self, caplog):
        with caplog.at_level(logging.DEBUG):
            handle_error(NetworkError("down"), "weather poll")
            handle_error(NetworkError("down"), "weather poll")
            handle_error(NetworkError("down"), "weather poll")
        full = [r for r in caplog.records if "in weather poll" in r.getMessage()]
        dedup = [r for r in caplog.records if "[DEDUPLICATED]" in r.getMessage()]
        assert len(full) == 1
        assert len(dedup) == 2
        summary = get_error_aggregator().get_error_summary()
        assert summary['total_errors'] == 1
        assert list(summary['deduplicated_counts'].values()) == [3]

    def test_reraise(self):
        with pytest.raises(ProviderError):
            handle_error(ProviderError("bad"), "parse", reraise=True)

    def test_stack_trace_captured_inside_except(self):
        try:
            raise ValueError("inner")
        except ValueError as e:
            context = handle_error(e, "test")
        assert "ValueError" in context.stack_trace
        assert context.category == ErrorCategory.UNKNOWN


class TestErrorAggregator:
    def test_dedup_window(self, monkeypatch):
        aggregator = ErrorAggregator(dedup_window_seconds=10)
        now = [100.0]
        monkeypatch.setattr('weather_tui.errors.time.time', lambda: now[0])

        def ctx():
            return ErrorContext(NetworkError("x"), ErrorCategory.NETWORK, ErrorSeverity.WARNING, "poll")

        assert aggregator.add_error(ctx()) is True
        now[0] += 5
        assert aggregator.add_error(ctx()) is False
        now[0] += 6
        assert aggregator.add_error(ctx()) is True

    def test_max_errors(self):
        aggregator = ErrorAggregator(max_errors=3, dedup_window_seconds=0)
        for i in range(5):
            aggregator.add_error(ErrorContext(ValueError(), ErrorCategory.INPUT,
                                              ErrorSeverity.WARNING, f"op{i}"))
        assert aggregator.get_error_summary()['total_errors'] == 3


# ===========================================================================
# CircuitBreaker
# ===========================================================================

class TestCircuitBreaker:
    def test_opens_after_threshold(self):
        breaker = CircuitBreaker("svc", failure_threshold=3, clock=FakeClock())
        for _ in range(2):
            breaker.record_failure(NetworkError("x"))
        assert breaker.state == CircuitBreakerState.CLOSED
        breaker.record_failure(NetworkError("x"))
        assert breaker.state == CircuitBreakerState.OPEN
        assert not breaker.can_execute()

    def test_success_resets_failure_count(self):
        breaker = CircuitBreaker("svc", failure_threshold=2, clock=FakeClock())
        breaker.record_failure(NetworkError("x"))
        breaker.record_success()
        breaker.record_failure(NetworkError("x"))
        assert breaker.state == CircuitBreakerState.CLOSED

    def test_half_open_after_timeout(self):
        clock = FakeClock()
        breaker = CircuitBreaker("svc", failure_threshold=1, timeout=60, clock=clock)
        breaker.record_failure(NetworkError("x"))
        clock.now = 59
        assert breaker.state == CircuitBreakerState.OPEN
        clock.now = 60
        assert breaker.state == CircuitBreakerState.HALF_OPEN

        breaker.record_success()
        assert breaker.state == CircuitBreakerState.CLOSED

    def test_half_open_failure_reopens(self):
        clock = FakeClock()
        breaker = CircuitBreaker("svc", failure_threshold=1, timeout=60, clock=clock)
        breaker.record_failure(NetworkError("x"))
        clock.now = 61
        assert breaker.can_execute()
        breaker.record_failure(NetworkError("x"))
        assert breaker.state == CircuitBreakerState.OPEN

    def test_open_log_names_last_error(self, caplog):
        breaker = CircuitBreaker("svc", failure_threshold=2, clock=FakeClock())
        with caplog.at_level(logging.WARNING):
            breaker.record_failure(NetworkError("x"))
            breaker.record_failure(ProviderError("y"))
        assert "-> OPEN" in caplog.text
        assert "last error: ProviderError" in caplog.text
