"""
Threshold evaluation.

Compares one measurement against every limit its parameter has in the
standards catalog. The evaluator is stateless: results depend only on the
measurement and the (read-only) catalog it was built with.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

from ecomoni.core.standards.catalog import StandardsCatalog
from ecomoni.domain.errors import ZeroThresholdError
from ecomoni.domain.models import ExceedanceResult, Measurement, Severity

logger = logging.getLogger(__name__)

WARNING_RATIO = 1.5
CRITICAL_RATIO = 2.0


def classify_severity(ratio: float) -> Severity:
    """
    Map a value/limit ratio onto a severity band.

    Bands are closed on their lower bound and open on their upper bound:

    - ``ratio >= 2.0``        -> CRITICAL
    - ``1.5 <= ratio < 2.0``  -> WARNING
    - ``ratio < 1.5``         -> COMPLIANT

    Parameters
    ----------
    ratio
        ``value / limit``.

    Returns
    -------
    Severity
        Severity band.
    """
    if ratio >= CRITICAL_RATIO:
        return Severity.CRITICAL
    if ratio >= WARNING_RATIO:
        return Severity.WARNING
    return Severity.COMPLIANT


def evaluate_threshold(parameter: str, value: float, source: str, limit: float) -> ExceedanceResult:
    """
    Compare one value with one limit.

    Parameters
    ----------
    parameter
        Parameter name, used for error reporting only.
    value
        Measured value.
    source
        Standard-source that declared ``limit``.
    limit
        Threshold.

    Returns
    -------
    ExceedanceResult
        ``exceeded`` is the strict comparison ``value > limit``, so a value
        equal to its limit is not an exceedance.

    Raises
    ------
    ZeroThresholdError
        If ``limit`` is zero.
    """
    if limit == 0:
        raise ZeroThresholdError(parameter=parameter, source=source)

    ratio = value / limit
    return ExceedanceResult(
        source=source,
        limit=limit,
        exceeded=value > limit,
        ratio=ratio,
        severity=classify_severity(ratio),
    )


@dataclass(frozen=True)
class ThresholdEvaluator:
    """
    Evaluate measurements against the standards catalog.

    Parameters
    ----------
    catalog
        Catalog supplying the limits. Injected rather than read from a
        module global so tests and alternative tables need no patching.
    """

    catalog: StandardsCatalog

    def evaluate(self, measurement: Measurement) -> Dict[str, ExceedanceResult]:
        """
        Compare a measurement with every limit declared for its parameter.

        Parameters
        ----------
        measurement
            Validated measurement.

        Returns
        -------
        dict[str, ExceedanceResult]
            Results keyed by standard-source, in catalog order. Empty when the
            parameter has no catalog entry. A source with a zero limit is
            left out; its siblings are still evaluated.
        """
        entry = self.catalog.lookup(measurement.parameter)
        if entry is None:
            logger.debug("No standards for parameter %r (measurement %s)", measurement.parameter, measurement.id)
            return {}

        results: Dict[str, ExceedanceResult] = {}
        for source, limit in entry.thresholds.items():
            try:
                results[source] = evaluate_threshold(measurement.parameter, measurement.value, source, limit)
            except ZeroThresholdError as e:
                logger.warning("Skipping source for measurement %s: %s", measurement.id, e)
        return results
