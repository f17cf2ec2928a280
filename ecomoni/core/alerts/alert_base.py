"""
Alert filtering contracts.

This module defines the objects consumers use to narrow a derived alert set:

- :class:`AlertPredicate`: any callable deciding whether one alert is kept
- :class:`AlertQuery`: the standard predicate over parameter, severity and
  standard-source, as offered by the alert list filters

Filtering never mutates the derived set; it returns a new list.

Notes
-----
Alert identity (:class:`~ecomoni.domain.models.AlertId`) lives with the
domain models because alerts expose it directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from ecomoni.domain.models import Alert, Severity


class AlertPredicate(Protocol):
    """
    Protocol for alert filters.

    Any callable ``(alert) -> bool`` satisfies it, including plain functions
    and lambdas.
    """

    def __call__(self, alert: Alert) -> bool:
        ...


@dataclass(frozen=True)
class AlertQuery:
    """
    Conjunctive filter over the user-facing alert attributes.

    A field left as ``None`` matches every alert.

    Parameters
    ----------
    parameter
        Exact parameter name (e.g. "Arsenic").
    severity
        Severity band.
    source
        Standard-source name (e.g. "WHO").

    Examples
    --------
    Critical alerts against the WHO limits only::

        AlertQuery(severity=Severity.CRITICAL, source="WHO")
    """

    parameter: Optional[str] = None
    severity: Optional[Severity] = None
    source: Optional[str] = None

    def __call__(self, alert: Alert) -> bool:
        if self.parameter is not None and alert.parameter != self.parameter:
            return False
        if self.severity is not None and alert.severity != self.severity:
            return False
        if self.source is not None and alert.source != self.source:
            return False
        return True
