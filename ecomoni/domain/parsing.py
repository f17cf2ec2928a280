"""
Measurement schema: raw record -> :class:`Measurement` and back.

Raw records come from user input, imports and the stored measurement file.
They are loosely typed, may use the field names of the original French
deployment, and may carry numbers as strings. This module is the single
place where such records are validated; anything that fails is rejected
with :class:`~ecomoni.domain.errors.MalformedMeasurement` and never
coerced into a measurement.
"""

from __future__ import annotations

import math
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple

from ecomoni.domain.errors import MalformedMeasurement
from ecomoni.domain.models import Measurement, MeasurementType, Severity

if TYPE_CHECKING:
    from ecomoni.core.standards.catalog import StandardsCatalog


# Canonical field -> accepted keys, canonical first.
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "id": ("id",),
    "parameter": ("parameter", "parametre"),
    "value": ("value", "valeur"),
    "unit": ("unit", "unite"),
    "measurement_type": ("measurement_type", "measurementType", "type"),
    "timestamp": ("timestamp", "date"),
    "latitude": ("latitude", "lat"),
    "longitude": ("longitude", "lng", "lon"),
    "label": ("label", "libelle"),
    "description": ("description",),
}

_TYPE_LABELS: Dict[str, MeasurementType] = {
    "eau": MeasurementType.WATER,
    "sol": MeasurementType.SOIL,
    "déchets": MeasurementType.WASTE,
    "dechets": MeasurementType.WASTE,
    "bruit": MeasurementType.NOISE,
}

# Parameter names of the original French deployment -> catalog names.
_PARAMETER_LABELS: Dict[str, str] = {
    "mercure": "Mercury",
    "cyanures": "Cyanides",
    "plomb": "Lead",
    "chrome": "Chromium",
    "plomb (sol)": "Lead (soil)",
    "cadmium (sol)": "Cadmium (soil)",
    "mercure (sol)": "Mercury (soil)",
    "arsenic (sol)": "Arsenic (soil)",
    "chrome (sol)": "Chromium (soil)",
    "nickel (sol)": "Nickel (soil)",
    "hydrocarbures totaux": "Total hydrocarbons",
    "métaux lourds totaux": "Total heavy metals",
    "metaux lourds totaux": "Total heavy metals",
    "bruit (jour résidentiel)": "Noise (residential day)",
    "bruit (nuit résidentiel)": "Noise (residential night)",
    "bruit (zone industrielle)": "Noise (industrial zone)",
    "bruit (zone commerciale)": "Noise (commercial zone)",
}


def _pick(raw: Mapping[str, Any], field: str) -> Any:
    """
    Return the first non-empty value stored under any alias of ``field``.

    Empty strings count as missing so that blank CSV cells and blank form
    inputs are treated the same way as absent keys.
    """
    for key in FIELD_ALIASES[field]:
        if key in raw:
            val = raw[key]
            if val is None:
                continue
            if isinstance(val, str) and not val.strip():
                continue
            return val
    return None


def _require_text(raw: Mapping[str, Any], field: str) -> str:
    val = _pick(raw, field)
    if val is None:
        raise MalformedMeasurement(f"Missing required field: {field}", field=field)
    return str(val).strip()


def _optional_text(raw: Mapping[str, Any], field: str) -> Optional[str]:
    val = _pick(raw, field)
    return None if val is None else str(val).strip()


def parse_number(val: Any, field: str) -> float:
    """
    Parse a finite float from a number or a numeric string.

    Parameters
    ----------
    val
        Raw value. ``bool`` is rejected even though it is an ``int`` subclass.
    field
        Field name used in the error.

    Returns
    -------
    float
        Parsed value.

    Raises
    ------
    MalformedMeasurement
        If the value is missing, not numeric, NaN or infinite.
    """
    if val is None:
        raise MalformedMeasurement(f"Missing required field: {field}", field=field)
    if isinstance(val, bool):
        raise MalformedMeasurement(f"{field} must be numeric, got a boolean", field=field)
    if isinstance(val, (int, float)):
        out = float(val)
    elif isinstance(val, str):
        try:
            out = float(val.strip())
        except ValueError:
            raise MalformedMeasurement(f"{field} is not a number: {val!r}", field=field) from None
    else:
        raise MalformedMeasurement(f"{field} is not a number: {val!r}", field=field)

    if not math.isfinite(out):
        raise MalformedMeasurement(f"{field} must be finite, got {val!r}", field=field)
    return out


def parse_measurement_type(val: Any) -> MeasurementType:
    """
    Map a type label onto :class:`MeasurementType`.

    Accepts enum values ("Water"), enum names ("WATER") and the French labels
    used by the original deployment ("Eau", "Sol", "Déchets", "Bruit").
    """
    if isinstance(val, MeasurementType):
        return val
    text = str(val).strip()
    for member in MeasurementType:
        if text == member.value or text.upper() == member.name:
            return member
    legacy = _TYPE_LABELS.get(text.lower())
    if legacy is not None:
        return legacy
    raise MalformedMeasurement(f"Unknown measurement type: {text!r}", field="measurement_type")


def parse_timestamp(val: Any) -> datetime:
    """
    Parse a timestamp into a timezone-aware UTC ``datetime``.

    Accepted forms: ``datetime``, ISO-8601 string (a trailing ``Z`` is
    allowed), or epoch milliseconds as a number. Naive values are taken to be
    UTC.
    """
    if isinstance(val, datetime):
        ts = val
    elif isinstance(val, bool):
        raise MalformedMeasurement("timestamp must be a date, got a boolean", field="timestamp")
    elif isinstance(val, (int, float)):
        try:
            ts = datetime.fromtimestamp(float(val) / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise MalformedMeasurement(f"timestamp out of range: {val!r}", field="timestamp") from None
    elif isinstance(val, str):
        text = val.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(text)
        except ValueError:
            raise MalformedMeasurement(f"timestamp is not ISO-8601: {val!r}", field="timestamp") from None
    else:
        raise MalformedMeasurement(f"timestamp is not a date: {val!r}", field="timestamp")

    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def canonical_parameter(name: str, catalog: Optional["StandardsCatalog"] = None) -> str:
    """
    Translate a legacy French parameter name ("Plomb", "Bruit (zone
    industrielle)") to its catalog name.

    A name the catalog already knows is kept as-is, so a custom table that
    uses French names still matches. Unknown names are returned unchanged.
    """
    if catalog is not None and name in catalog:
        return name
    return _PARAMETER_LABELS.get(name.lower(), name)


def parse_measurement(
    raw: Mapping[str, Any],
    catalog: Optional["StandardsCatalog"] = None,
    now: Optional[datetime] = None,
) -> Measurement:
    """
    Validate a raw record and build a :class:`Measurement`.

    Parameters
    ----------
    raw
        Record from a form, an import file or the stored measurement file.
    catalog
        Optional catalog used to fill ``measurement_type`` when the record
        does not carry one. Legacy French parameter names are mapped to
        catalog names with or without it.
    now
        Timestamp used when the record has none. Defaults to the current UTC
        time.

    Returns
    -------
    Measurement
        Validated measurement. A missing ``id`` is replaced by a fresh one.

    Raises
    ------
    MalformedMeasurement
        If a mandatory field is missing or a field fails to parse.
    """
    if not isinstance(raw, Mapping):
        raise MalformedMeasurement(f"Record must be a mapping, got {type(raw).__name__}")

    parameter = canonical_parameter(_require_text(raw, "parameter"), catalog)
    value = parse_number(_pick(raw, "value"), "value")
    unit = _require_text(raw, "unit")

    latitude = parse_number(_pick(raw, "latitude"), "latitude")
    if not -90.0 <= latitude <= 90.0:
        raise MalformedMeasurement(f"latitude out of range: {latitude}", field="latitude")
    longitude = parse_number(_pick(raw, "longitude"), "longitude")
    if not -180.0 <= longitude <= 180.0:
        raise MalformedMeasurement(f"longitude out of range: {longitude}", field="longitude")

    raw_type = _pick(raw, "measurement_type")
    measurement_type: Optional[MeasurementType] = None
    if raw_type is not None:
        measurement_type = parse_measurement_type(raw_type)
    elif catalog is not None:
        entry = catalog.lookup(parameter)
        if entry is not None:
            measurement_type = entry.measurement_type

    raw_ts = _pick(raw, "timestamp")
    if raw_ts is None:
        timestamp = parse_timestamp(now or datetime.now(timezone.utc))
    else:
        timestamp = parse_timestamp(raw_ts)

    measurement_id = _optional_text(raw, "id") or uuid.uuid4().hex

    return Measurement(
        id=measurement_id,
        parameter=parameter,
        value=value,
        unit=unit,
        latitude=latitude,
        longitude=longitude,
        timestamp=timestamp,
        measurement_type=measurement_type,
        label=_optional_text(raw, "label"),
        description=_optional_text(raw, "description"),
    )


def measurement_to_record(m: Measurement) -> Dict[str, Any]:
    """Encode a measurement as the canonical storage/export record."""
    return {
        "id": m.id,
        "parameter": m.parameter,
        "value": m.value,
        "unit": m.unit,
        "measurement_type": m.measurement_type.value if m.measurement_type else None,
        "timestamp": m.timestamp.isoformat(),
        "latitude": m.latitude,
        "longitude": m.longitude,
        "label": m.label,
        "description": m.description,
    }


def parse_severity(val: Any) -> Severity:
    """
    Map a severity label ("Warning", "warning", "WARNING") onto :class:`Severity`.

    Raises
    ------
    ValueError
        If the label names no severity.
    """
    if isinstance(val, Severity):
        return val
    text = str(val).strip()
    for member in Severity:
        if text.lower() == member.value.lower():
            return member
    raise ValueError(f"Unknown severity: {text!r}")
