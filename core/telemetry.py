"""Telemetry module for tracking request performance with PostHog."""

import logging
import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any

from posthog import Posthog

logger = logging.getLogger(__name__)

DISTINCT_ID = "amazon-music-metadata-service"


@dataclass
class StepResult:
    """Result of a tracked step."""

    duration_ms: float
    success: bool = True
    error_type: str | None = None


@dataclass
class RequestTelemetry:
    """Tracks performance metrics for a single request."""

    operation: str = "request"
    steps: dict[str, StepResult] = field(default_factory=dict)
    start_time: float = field(default_factory=time.perf_counter)

    @contextmanager
    def track_step(self, step_name: str):
        """Context manager to time a step.

        Args:
            step_name: Name of the step being tracked

        Yields:
            None
        """
        step_start = time.perf_counter()
        error_type = None

        try:
            yield
        except Exception as e:
            error_type = type(e).__name__
            raise
        finally:
            self.steps[step_name] = StepResult(
                duration_ms=(time.perf_counter() - step_start) * 1000,
                success=error_type is None,
                error_type=error_type,
            )

    def get_total_duration_ms(self) -> float:
        """Get total elapsed time since telemetry was created."""
        return (time.perf_counter() - self.start_time) * 1000

    def get_step_timings(self) -> dict[str, float]:
        """Get timing for each step in milliseconds."""
        return {f"{name}_ms": step.duration_ms for name, step in self.steps.items()}

    def send_to_posthog(
        self,
        posthog_client: Posthog,
        extra_properties: dict[str, Any] | None = None,
    ) -> None:
        """Send the step events and a summary event to PostHog.

        Args:
            posthog_client: PostHog client instance
            extra_properties: Additional properties to include in the completed event
        """
        extra_properties = extra_properties or {}

        for step_name, step_result in self.steps.items():
            posthog_client.capture(
                distinct_id=DISTINCT_ID,
                event=f"{self.operation}_{step_name}",
                properties={
                    "step": step_name,
                    "duration_ms": round(step_result.duration_ms, 2),
                    "success": step_result.success,
                    "error_type": step_result.error_type,
                },
            )

        posthog_client.capture(
            distinct_id=DISTINCT_ID,
            event=f"{self.operation}_completed",
            properties={
                "total_duration_ms": round(self.get_total_duration_ms(), 2),
                "steps": self.get_step_timings(),
                "upstream": get_fetch_stats() or _empty_fetch_stats(),
                **extra_properties,
            },
        )

        logger.debug(
            f"Sent telemetry: {len(self.steps)} steps, total {self.get_total_duration_ms():.1f}ms"
        )


# ---------------------------------------------------------------------------
# Per-request upstream stats via ContextVar
# ---------------------------------------------------------------------------

_fetch_stats_var: ContextVar[dict | None] = ContextVar("fetch_stats", default=None)


def _empty_fetch_stats() -> dict:
    return {
        "page_fetches": 0,
        "search_requests": 0,
        "fetch_failures": 0,
        "degraded_results": 0,
        "upstream_time_ms": 0.0,
    }


def init_fetch_stats() -> None:
    """Initialize upstream stats for the current request context."""
    _fetch_stats_var.set(_empty_fetch_stats())


def _increment(key: str, amount: float = 1) -> None:
    stats = _fetch_stats_var.get()
    if stats is not None:
        stats[key] += amount


def record_page_fetch(ms: float) -> None:
    """Record a completed page fetch and its duration."""
    _increment("page_fetches")
    _increment("upstream_time_ms", ms)


def record_search_request(ms: float) -> None:
    """Record a search engine request and its duration."""
    _increment("search_requests")
    _increment("upstream_time_ms", ms)


def record_fetch_failure() -> None:
    """Record a page fetch that raised."""
    _increment("fetch_failures")


def record_degraded_result() -> None:
    """Record a result built from fallback data instead of a clean extraction."""
    _increment("degraded_results")


def get_fetch_stats() -> dict | None:
    """Get upstream stats for the current request context, or None if not initialized."""
    return _fetch_stats_var.get()
