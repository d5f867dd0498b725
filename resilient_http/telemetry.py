"""
Telemetry and logger ports, plus a structlog-backed sink.

The HTTP client never depends on these directly: ``observe_responses``
turns a telemetry sink into a ``response_observer`` hook.
"""

from typing import Any, Callable, Optional, Protocol

from .logging_config import get_logger


class TelemetryPort(Protocol):
    """Event tracking sink."""

    def track(self, event: str, data: Optional[dict[str, Any]] = None) -> None: ...


class LoggerPort(Protocol):
    """Leveled application logger."""

    def info(self, message: str, data: Optional[dict[str, Any]] = None) -> None: ...

    def warn(self, message: str, data: Optional[dict[str, Any]] = None) -> None: ...

    def error(self, message: str, data: Optional[dict[str, Any]] = None) -> None: ...


class TelemetryLoggerPort(TelemetryPort, LoggerPort, Protocol):
    """Sink offering both event tracking and leveled logging."""


class StructlogTelemetry:
    """
    Telemetry and logger port implementation writing through structlog.

    Payloads are passed under a single ``data`` key; ``merge_event_data`` in
    the logging pipeline flattens them back into the entry.
    """

    def __init__(self, name: str = "telemetry", logger: Any = None):
        self.logger = logger if logger is not None else get_logger(name)

    def track(self, event: str, data: Optional[dict[str, Any]] = None) -> None:
        self.logger.info(event, telemetry=True, data=dict(data or {}))

    def info(self, message: str, data: Optional[dict[str, Any]] = None) -> None:
        self._log(self.logger.info, message, data)

    def warn(self, message: str, data: Optional[dict[str, Any]] = None) -> None:
        self._log(self.logger.warning, message, data)

    def error(self, message: str, data: Optional[dict[str, Any]] = None) -> None:
        self._log(self.logger.error, message, data)

    @staticmethod
    def _log(
        method: Callable[..., Any], message: str, data: Optional[dict[str, Any]]
    ) -> None:
        if data:
            method(message, data=dict(data))
        else:
            method(message)


def observe_responses(
    telemetry: TelemetryPort, event: str = "http.response"
) -> Callable[[Any], None]:
    """
    Build a ``response_observer`` hook that reports every completed attempt.

    Args:
        telemetry: Sink receiving the events
        event: Event name to track

    Returns:
        Hook accepting a ``ResponseInfo``
    """

    def observer(info: Any) -> None:
        telemetry.track(
            event,
            {
                "method": info.method,
                "url": info.url,
                "status": info.status,
                "duration_ms": round(info.duration_ms, 2),
            },
        )

    return observer
