"""
Domain error taxonomy.

- :class:`MalformedMeasurement`: input rejected before it reaches the store.
- :class:`ZeroThresholdError`: a zero limit for one standard-source; only that
  source is skipped by the evaluator.
- :class:`DuplicateMeasurement`: an id that is already in the store.
- :class:`StoreError`: remote or local persistence failed.

An unknown parameter is not an error: it yields no results and no alerts.
"""

from __future__ import annotations

from typing import Optional


class MalformedMeasurement(ValueError):
    """
    Raised when a raw record does not satisfy the measurement schema.

    Parameters
    ----------
    reason
        Human-readable reason, suitable for showing to the person who entered
        or imported the record.
    field
        Name of the offending field, if a single field is at fault.
    """

    def __init__(self, reason: str, field: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.field = field


class ZeroThresholdError(ZeroDivisionError):
    """Raised when a standard-source declares a limit of zero."""

    def __init__(self, parameter: str, source: str):
        super().__init__(f"Zero limit for {parameter!r} from source {source!r}")
        self.parameter = parameter
        self.source = source


class DuplicateMeasurement(ValueError):
    """Raised when appending a measurement whose id is already stored."""

    def __init__(self, measurement_id: str):
        super().__init__(f"Measurement id already stored: {measurement_id}")
        self.measurement_id = measurement_id


class StoreError(RuntimeError):
    """Raised when the measurement file cannot be read or written."""
