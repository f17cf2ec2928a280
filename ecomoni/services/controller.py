from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from ecomoni.core.alerts.alert_base import AlertQuery
from ecomoni.core.alerts.alert_deriver import AlertDeriver, filter_alerts
from ecomoni.core.state_store import MonitoringStore
from ecomoni.domain.errors import DuplicateMeasurement, MalformedMeasurement
from ecomoni.domain.models import Alert, ExceedanceResult, Measurement, MeasurementType, Severity
from ecomoni.domain.parsing import parse_measurement, parse_timestamp
from ecomoni.runtime.event_bus import EventBus
from ecomoni.storage.repository import MeasurementRepository

logger = logging.getLogger(__name__)

IncomingRecord = Union[Mapping[str, Any], Measurement]


@dataclass(frozen=True)
class ImportReport:
    """
    Outcome of a bulk import.

    Parameters
    ----------
    total
        Records read from the file.
    added
        Records stored.
    failed
        Records rejected.
    errors
        One human-readable reason per rejected record, prefixed with its
        1-based position.
    """

    total: int
    added: int
    failed: int
    errors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class MonitoringStatistics:
    """
    Summary figures shown next to the map.

    Parameters
    ----------
    measurements
        Number of measurements considered.
    critical_alerts
        Critical alerts among those measurements (one per source).
    zones
        Distinct sampling zones, coordinates rounded to 2 decimals.
    days_since_last
        Whole days since the latest measurement, None without measurements.
    """

    measurements: int
    critical_alerts: int
    zones: int
    days_since_last: Optional[int]


def compute_statistics(
    measurements: Sequence[Measurement],
    deriver: AlertDeriver,
    now: Optional[datetime] = None,
) -> MonitoringStatistics:
    """Summarize a measurement snapshot; alerts are derived from it."""
    alerts = deriver.derive_all(measurements)
    critical = sum(1 for a in alerts if a.severity == Severity.CRITICAL)
    zones = {f"{m.latitude:.2f},{m.longitude:.2f}" for m in measurements}

    days: Optional[int] = None
    if measurements:
        latest = max(m.timestamp for m in measurements)
        ref = parse_timestamp(now or datetime.now(timezone.utc))
        days = (ref - latest) // timedelta(days=1)

    return MonitoringStatistics(
        measurements=len(measurements),
        critical_alerts=critical,
        zones=len(zones),
        days_since_last=days,
    )


@dataclass
class MonitoringController:
    """
    Orchestrate measurement intake, persistence and alert queries.

    Responsibilities
    ----------------
    - Validate incoming records into measurements.
    - Persist the new collection (when a repository is configured), then
      append to the in-memory store.
    - Derive the alerts of a newly added measurement and publish them.
    - Answer alert, comparison and measurement queries from the current
      store content.

    Notes
    -----
    This controller contains orchestration logic only. Threshold rules live
    in the evaluator, and alerts are always derived from measurements, never
    accumulated separately.

    Parameters
    ----------
    store
        Thread-safe measurement store.
    deriver
        Alert deriver bound to the catalog in use.
    repository
        Optional persistence. When None, measurements live in memory only.
    bus
        Optional event bus receiving each newly derived alert.
    """

    store: MonitoringStore
    deriver: AlertDeriver
    repository: Optional[MeasurementRepository] = None
    bus: Optional[EventBus] = None

    # Serializes read-modify-write of the persisted collection.
    _write_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def add_measurement(self, record: IncomingRecord, now: Optional[datetime] = None) -> List[Alert]:
        """
        Validate, persist and store one measurement.

        Parameters
        ----------
        record
            Raw record (form or import) or an already built measurement.
        now
            Timestamp used when the record carries none.

        Returns
        -------
        list of Alert
            Alerts of the new measurement (possibly empty).

        Raises
        ------
        MalformedMeasurement
            If the record fails validation. Nothing is stored.
        DuplicateMeasurement
            If the id is already stored.
        StoreError
            If persistence fails under the repository write policy. Nothing
            is stored.
        """
        if isinstance(record, Measurement):
            m = record
        else:
            m = parse_measurement(record, catalog=self.deriver.evaluator.catalog, now=now)

        with self._write_lock:
            if self.store.get(m.id) is not None:
                raise DuplicateMeasurement(m.id)
            if self.repository is not None:
                self.repository.save(self.store.snapshot() + (m,))
            self.store.append(m)

        alerts = self.deriver.derive_for(m)
        if alerts:
            logger.info(
                "Measurement %s (%s=%s %s) raised %d alert(s)",
                m.id, m.parameter, m.value, m.unit, len(alerts),
            )

        if self.bus is not None:
            for a in alerts:
                self.bus.publish_alert(a)

        return alerts

    def import_records(self, records: Iterable[Mapping[str, Any]], now: Optional[datetime] = None) -> ImportReport:
        """
        Add many records, collecting per-record failures.

        Each record goes through `add_measurement`; one bad record does not
        stop the import.

        Returns
        -------
        ImportReport
            Counts and reasons.
        """
        total = added = 0
        errors: List[str] = []
        for i, rec in enumerate(records, start=1):
            total += 1
            try:
                self.add_measurement(rec, now=now)
            except (MalformedMeasurement, DuplicateMeasurement) as e:
                errors.append(f"#{i}: {e}")
                continue
            added += 1

        if errors:
            logger.warning("Import finished with %d rejected record(s) out of %d", len(errors), total)
        return ImportReport(total=total, added=added, failed=len(errors), errors=errors)

    def refresh(self) -> int:
        """
        Reload the full collection from the repository.

        Returns
        -------
        int
            Number of measurements now stored.

        Raises
        ------
        StoreError
            If the repository cannot load.
        """
        if self.repository is None:
            return len(self.store)
        with self._write_lock:
            measurements = self.repository.load()
            self.store.replace_all(measurements)
        logger.debug("Refreshed %d measurements from repository", len(measurements))
        return len(measurements)

    def measurements(self) -> List[Measurement]:
        return list(self.store.snapshot())

    def get(self, measurement_id: str) -> Optional[Measurement]:
        return self.store.get(measurement_id)

    def alerts(self) -> List[Alert]:
        """Current alert set, derived from the stored measurements."""
        return self.store.alerts(self.deriver)

    def filter_alerts(
        self,
        parameter: Optional[str] = None,
        severity: Optional[Severity] = None,
        source: Optional[str] = None,
    ) -> List[Alert]:
        """Current alerts narrowed by parameter, severity and standard-source."""
        return filter_alerts(self.alerts(), AlertQuery(parameter=parameter, severity=severity, source=source))

    def compare(self, measurement: Measurement) -> Dict[str, ExceedanceResult]:
        """Per-source comparison of one measurement with its standards."""
        return self.deriver.evaluator.evaluate(measurement)

    def filter_measurements(
        self,
        measurement_type: Optional[MeasurementType] = None,
        parameter: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Measurement]:
        """
        Stored measurements narrowed by type, parameter and time range.

        ``start`` and ``end`` are inclusive and only applied together, as the
        map filters do. Naive datetimes are taken to be UTC.
        """
        out = self.measurements()
        if measurement_type is not None:
            out = [m for m in out if m.measurement_type == measurement_type]
        if parameter is not None:
            out = [m for m in out if m.parameter == parameter]
        if start is not None and end is not None:
            lo = parse_timestamp(start)
            hi = parse_timestamp(end)
            out = [m for m in out if lo <= m.timestamp <= hi]
        return out

    def statistics(
        self,
        measurements: Optional[Sequence[Measurement]] = None,
        now: Optional[datetime] = None,
    ) -> MonitoringStatistics:
        """
        Summary figures over ``measurements`` (a filtered view) or, when
        None, over a snapshot of the whole store.
        """
        if measurements is None:
            measurements = self.store.snapshot()
        return compute_statistics(measurements, self.deriver, now=now)
