from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set, Tuple

from ecomoni.domain.errors import DuplicateMeasurement
from ecomoni.domain.models import Measurement


@dataclass
class MeasurementLog:
    """
    In-memory, append-only log of measurements.

    The log keeps measurements in insertion order and a version counter that
    increases on every mutation. Derived data (alerts) is tagged with the
    version it was computed from, so any write invalidates it.

    Notes
    -----
    - Thread-safety is not handled here; the enclosing `MonitoringStore` is
      responsible for synchronization.
    - Measurements are never edited or removed individually. `replace_all`
      exists for a full refresh from the remote file.

    Attributes
    ----------
    items
        Measurements in insertion order.
    version
        Mutation counter.
    """

    items: List[Measurement] = field(default_factory=list)
    version: int = 0
    _ids: Set[str] = field(default_factory=set, repr=False)

    def append(self, measurement: Measurement) -> None:
        """
        Append a measurement.

        Parameters
        ----------
        measurement
            Validated measurement.

        Raises
        ------
        DuplicateMeasurement
            If a measurement with the same id is already stored.
        """
        if measurement.id in self._ids:
            raise DuplicateMeasurement(measurement.id)
        self.items.append(measurement)
        self._ids.add(measurement.id)
        self.version += 1

    def replace_all(self, measurements: Iterable[Measurement]) -> None:
        """
        Replace the whole log.

        Parameters
        ----------
        measurements
            New content, in order.

        Raises
        ------
        DuplicateMeasurement
            If the new content repeats an id. The log is left unchanged.
        """
        items = list(measurements)
        ids: Set[str] = set()
        for m in items:
            if m.id in ids:
                raise DuplicateMeasurement(m.id)
            ids.add(m.id)
        self.items = items
        self._ids = ids
        self.version += 1

    def get(self, measurement_id: str) -> Optional[Measurement]:
        """Return the measurement with ``measurement_id``, if stored."""
        if measurement_id not in self._ids:
            return None
        for m in self.items:
            if m.id == measurement_id:
                return m
        return None

    def snapshot(self) -> Tuple[Measurement, ...]:
        """Return an immutable copy of the log."""
        return tuple(self.items)

    def __len__(self) -> int:
        return len(self.items)
