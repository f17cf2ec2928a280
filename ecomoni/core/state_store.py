from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from ecomoni.core.alerts.alert_deriver import AlertDeriver
from ecomoni.core.state.alert_cache import DerivedAlertCache
from ecomoni.core.state.measurement_store import MeasurementLog
from ecomoni.domain.models import Alert, Measurement


@dataclass
class MonitoringStore:
    """
    Thread-safe facade for application state.

    'MonitoringStore' coordinates access to:
    - the append-only measurement log
    - the derived alert cache (invalidated by every log write)

    Concurrency Model
    -----------------
    All reads/writes are guarded by a single re-entrant lock
    (`threading.RLock`). Readers get immutable snapshots (copy-on-read), so
    alert derivation never observes a half-applied write.

    Alert derivation itself runs *outside* the lock on a snapshot; the result
    is only written back to the cache if no write happened meanwhile.

    Attributes
    ----------
    measurements
        Measurement log.
    alert_cache
        Cache of the last full derivation.
    """

    measurements: MeasurementLog = field(default_factory=MeasurementLog)
    alert_cache: DerivedAlertCache = field(default_factory=DerivedAlertCache)

    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False)

    # --- Measurements API ---
    def append(self, measurement: Measurement) -> None:
        """
        Append a measurement and invalidate derived alerts.

        Parameters
        ----------
        measurement
            Validated measurement.
        """
        with self._lock:
            self.measurements.append(measurement)
            self.alert_cache.invalidate()

    def replace_all(self, measurements: Iterable[Measurement]) -> None:
        """
        Replace all measurements (full refresh) and invalidate derived alerts.

        Parameters
        ----------
        measurements
            New content, in order.
        """
        with self._lock:
            self.measurements.replace_all(measurements)
            self.alert_cache.invalidate()

    def get(self, measurement_id: str) -> Optional[Measurement]:
        """
        Get a stored measurement by id.

        Parameters
        ----------
        measurement_id
            Measurement id.

        Returns
        -------
        Measurement or None
            The measurement if stored.
        """
        with self._lock:
            return self.measurements.get(measurement_id)

    def snapshot(self) -> Tuple[Measurement, ...]:
        """
        Immutable copy of the measurement log.

        Returns
        -------
        tuple of Measurement
            Measurements in insertion order.
        """
        with self._lock:
            return self.measurements.snapshot()

    def versioned_snapshot(self) -> Tuple[int, Tuple[Measurement, ...]]:
        """Return the log version together with a snapshot taken at that version."""
        with self._lock:
            return self.measurements.version, self.measurements.snapshot()

    @property
    def version(self) -> int:
        with self._lock:
            return self.measurements.version

    # --- Alerts API ---
    def alerts(self, deriver: AlertDeriver) -> List[Alert]:
        """
        Current alert set, derived from the measurement log.

        Parameters
        ----------
        deriver
            Deriver bound to the catalog in use.

        Returns
        -------
        list of Alert
            Alerts of the current measurements. Served from the cache when it
            matches the current log version, derived otherwise.
        """
        with self._lock:
            version = self.measurements.version
            cached = self.alert_cache.get(version)
            if cached is not None:
                return cached
            snap = self.measurements.snapshot()

        alerts = deriver.derive_all(snap)

        with self._lock:
            if self.measurements.version == version:
                self.alert_cache.put(version, alerts)
        return alerts

    def __len__(self) -> int:
        with self._lock:
            return len(self.measurements)
