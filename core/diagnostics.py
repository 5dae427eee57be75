"""Structured diagnostics emitted by the dependency engine."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional


@dataclass(frozen=True)
class DiagnosticEvent:
    """Single non-fatal finding raised while planning."""

    code: str
    message: str
    severity: int = logging.WARNING
    details: Dict[str, object] = field(default_factory=dict)

    @property
    def severity_name(self) -> str:
        return logging.getLevelName(self.severity).lower()

    def to_dict(self) -> Dict[str, object]:
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity_name,
            "details": dict(self.details),
        }


Notifier = Optional[Callable[[DiagnosticEvent], None]]


def emit(
    logger: logging.Logger,
    notifier: Notifier,
    code: str,
    message: str,
    *args: object,
    severity: int = logging.WARNING,
    **details: object,
) -> DiagnosticEvent:
    """Log ``message`` and forward it to ``notifier`` when one is set.

    ``message`` uses %-style placeholders filled from ``args`` so the logger
    keeps its lazy formatting.
    """

    logger.log(severity, "[%s] " + message, code, *args)
    event = DiagnosticEvent(
        code=code,
        message=message % args if args else message,
        severity=severity,
        details=dict(details),
    )
    if notifier:
        notifier(event)
    return event


class DiagnosticCollector:
    """Notifier that keeps every event, mostly useful in tests and the API."""

    def __init__(self) -> None:
        self.events: list[DiagnosticEvent] = []

    def __call__(self, event: DiagnosticEvent) -> None:
        self.events.append(event)

    def codes(self) -> list[str]:
        return [event.code for event in self.events]

    def snapshot(self) -> list[Dict[str, object]]:
        return [event.to_dict() for event in self.events]
