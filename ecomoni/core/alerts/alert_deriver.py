"""
Alert derivation.

Alerts are a pure function of the measurement collection and the standards
catalog. The deriver holds no state between calls: every query recomputes
from the measurements it is given, so two calls over the same collection
return identical alerts, whatever happened in between.

Any alert list kept elsewhere (caches, exports, notification payloads) is a
copy of a derivation and is never written back as a source of truth.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence

from ecomoni.core.alerts.alert_base import AlertPredicate
from ecomoni.core.alerts.threshold_evaluator import ThresholdEvaluator
from ecomoni.core.standards.catalog import StandardsCatalog
from ecomoni.domain.models import Alert, ExceedanceResult, Measurement, Severity


def _to_alert(m: Measurement, result: ExceedanceResult) -> Alert:
    return Alert(
        measurement_id=m.id,
        parameter=m.parameter,
        value=m.value,
        unit=m.unit,
        latitude=m.latitude,
        longitude=m.longitude,
        timestamp=m.timestamp,
        source=result.source,
        limit=result.limit,
        ratio=result.ratio,
        severity=result.severity,
    )


def filter_alerts(alerts: Iterable[Alert], predicate: AlertPredicate) -> List[Alert]:
    """
    Keep the alerts accepted by ``predicate``.

    Parameters
    ----------
    alerts
        Derived alerts. Not modified.
    predicate
        Filter, typically an :class:`~ecomoni.core.alerts.alert_base.AlertQuery`.

    Returns
    -------
    list of Alert
        Matching alerts in their original order.
    """
    return [a for a in alerts if predicate(a)]


@dataclass(frozen=True)
class AlertDeriver:
    """
    Derive alerts from measurements.

    An alert is produced for every (measurement, standard-source) pair whose
    exceedance result has ``exceeded=True``. Results that do not exceed their
    limit are evidence of compliance and produce nothing. An exceeding value
    whose ratio is below 1.5 still produces an alert, with severity
    COMPLIANT.

    Parameters
    ----------
    evaluator
        Threshold evaluator bound to the catalog in use.
    """

    evaluator: ThresholdEvaluator

    @classmethod
    def from_catalog(cls, catalog: StandardsCatalog) -> "AlertDeriver":
        """Build a deriver (and its evaluator) for a catalog."""
        return cls(evaluator=ThresholdEvaluator(catalog))

    def derive_for(self, measurement: Measurement) -> List[Alert]:
        """
        Derive the alerts of a single measurement.

        Used when one measurement has just been appended, to report its
        alerts without recomputing the whole history.

        Parameters
        ----------
        measurement
            Validated measurement.

        Returns
        -------
        list of Alert
            One alert per exceeded source, in catalog source order.
        """
        results = self.evaluator.evaluate(measurement)
        return [_to_alert(measurement, r) for r in results.values() if r.exceeded]

    def derive_all(self, measurements: Sequence[Measurement]) -> List[Alert]:
        """
        Derive the complete alert set of a measurement collection.

        Parameters
        ----------
        measurements
            Snapshot of the collection. Callers sharing a live collection with
            writers must pass an immutable copy.

        Returns
        -------
        list of Alert
            Alerts in measurement order, then catalog source order. Permuting
            the input permutes the output without changing its content.
        """
        alerts: List[Alert] = []
        for m in measurements:
            alerts.extend(self.derive_for(m))
        return alerts

    def filter_alerts(self, measurements: Sequence[Measurement], predicate: AlertPredicate) -> List[Alert]:
        """Derive the alerts of ``measurements`` and keep those matching ``predicate``."""
        return filter_alerts(self.derive_all(measurements), predicate)

    def measurement_status(self, measurement: Measurement) -> Severity:
        """
        Overall status of one measurement: its worst alert severity.

        Returns COMPLIANT when the measurement has no alert, including when its
        parameter is unknown. Map markers and export status columns use this.
        """
        return worst_severity(self.derive_for(measurement))


def worst_severity(alerts: Iterable[Alert]) -> Severity:
    """Return the highest severity among ``alerts``, COMPLIANT if empty."""
    worst = Severity.COMPLIANT
    for a in alerts:
        if a.severity.rank > worst.rank:
            worst = a.severity
    return worst
