"""
Domain models and enums.

This module defines the core domain-level types used across the system:
- Measurement categories and alert severities
- Field measurements (parameter, value, unit, location)
- Regulatory standard entries (parameter -> per-source limits)
- Exceedance results and alerts, both derived from measurements

These are immutable (frozen) dataclasses so they can be shared safely across
layers and threads, and so derived values (results, alerts) compare and hash
by content.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional


class MeasurementType(str, Enum):
    """
    Physical category of a measurement.

    Members
    -------
    WATER : str
        Dissolved contaminants in surface or ground water.
    AIR : str
        Airborne particulates and gases.
    SOIL : str
        Soil contamination.
    WASTE : str
        Mining waste and tailings.
    NOISE : str
        Sound pressure levels.
    """

    WATER = "Water"
    AIR = "Air"
    SOIL = "Soil"
    WASTE = "Waste"
    NOISE = "Noise"


class Severity(str, Enum):
    """
    Severity band derived from the ratio of a value to its limit.

    Members
    -------
    COMPLIANT : str
        Ratio below 1.5. Includes values at or below the limit.
    WARNING : str
        Ratio in ``[1.5, 2.0)``.
    CRITICAL : str
        Ratio of 2.0 or more.
    """

    COMPLIANT = "Compliant"
    WARNING = "Warning"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        """Ordering key, higher is worse."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.COMPLIANT: 0,
    Severity.WARNING: 1,
    Severity.CRITICAL: 2,
}


@dataclass(frozen=True)
class Measurement:
    """
    A single field measurement.

    Measurements are immutable once created and only ever appended to the
    store. Construction goes through
    :func:`ecomoni.domain.parsing.parse_measurement`, which enforces the
    mandatory fields; the core assumes that validation already happened.

    Parameters
    ----------
    id
        Opaque unique identifier assigned at creation time.
    parameter
        Key into the standards catalog (e.g. "Arsenic").
    value
        Measured magnitude.
    unit
        Unit of ``value``. Expected to match the catalog unit for
        ``parameter``; this is not checked by the core.
    latitude, longitude
        Geographic coordinates of the sampling point.
    timestamp
        When the measurement was taken.
    measurement_type
        Physical category, if known.
    label, description
        Optional free text.
    """

    id: str
    parameter: str
    value: float
    unit: str
    latitude: float
    longitude: float
    timestamp: datetime
    measurement_type: Optional[MeasurementType] = None
    label: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class StandardEntry:
    """
    Regulatory limits for one parameter.

    Parameters
    ----------
    parameter
        Parameter name, unique within a catalog.
    unit
        Canonical unit the limits are expressed in.
    measurement_type
        Physical category of the parameter.
    thresholds
        Mapping of standard-source name (e.g. "WHO") to numeric limit.
        Stored as a read-only view; insertion order is preserved and is the
        order in which sources are evaluated.
    """

    parameter: str
    unit: str
    measurement_type: MeasurementType
    thresholds: Mapping[str, float]

    def __post_init__(self) -> None:
        object.__setattr__(self, "thresholds", MappingProxyType(dict(self.thresholds)))

    def __hash__(self) -> int:
        return hash((self.parameter, self.unit, self.measurement_type, tuple(self.thresholds.items())))


@dataclass(frozen=True)
class ExceedanceResult:
    """
    Comparison of one measurement against one standard-source.

    Parameters
    ----------
    source
        Standard-source that supplied the limit.
    limit
        Threshold used for the comparison.
    exceeded
        ``value > limit`` (strict).
    ratio
        ``value / limit``.
    severity
        Severity band of ``ratio``.
    """

    source: str
    limit: float
    exceeded: bool
    ratio: float
    severity: Severity


@dataclass(frozen=True)
class AlertId:
    """
    Identity of an alert: one measurement violating one standard-source.

    Two derivations over the same measurements always produce the same ids,
    which is what makes alerts comparable across recomputations.
    """

    measurement_id: str
    source: str


@dataclass(frozen=True)
class Alert:
    """
    A threshold violation derived from a measurement.

    Alerts are never stored as a source of truth; they are recomputed from
    measurements and the catalog. The measurement fields are a snapshot taken
    at derivation time so consumers (exports, map markers, notifications)
    need no second lookup.

    Parameters
    ----------
    measurement_id
        Id of the triggering measurement.
    parameter, value, unit, latitude, longitude, timestamp
        Snapshot of the triggering measurement.
    source
        Standard-source whose limit was exceeded.
    limit
        The exceeded limit.
    ratio
        ``value / limit``.
    severity
        Severity band of ``ratio``.
    """

    measurement_id: str
    parameter: str
    value: float
    unit: str
    latitude: float
    longitude: float
    timestamp: datetime
    source: str
    limit: float
    ratio: float
    severity: Severity

    @property
    def alert_id(self) -> AlertId:
        return AlertId(measurement_id=self.measurement_id, source=self.source)
