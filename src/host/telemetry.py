"""Telemetry services."""

from typing import Any, Dict, List, Optional, Tuple

import structlog

logger = structlog.get_logger(__name__)


class StructlogTelemetryService:
    """Writes telemetry events to the structured log instead of a transport."""

    def __init__(self) -> None:
        self.logger = structlog.get_logger(self.__class__.__name__)

    def public_log(self, event_name: str, data: Optional[Dict[str, Any]] = None) -> None:
        self.logger.info("telemetry", event_name=event_name, **(data or {}))


class RecordingTelemetryService:
    """Keeps telemetry events in memory, in the order they were logged."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def public_log(self, event_name: str, data: Optional[Dict[str, Any]] = None) -> None:
        self.events.append((event_name, dict(data or {})))

    def named(self, event_name: str) -> List[Dict[str, Any]]:
        return [data for name, data in self.events if name == event_name]


def log_event(telemetry: Any, event_name: str, data: Optional[Dict[str, Any]] = None) -> None:
    """Send a telemetry event without letting sink failures reach the caller."""
    try:
        telemetry.public_log(event_name, data or {})
    except Exception as e:
        logger.warning("Telemetry logging failed", event_name=event_name, error=str(e))
