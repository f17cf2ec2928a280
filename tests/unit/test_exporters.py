"""
Unit tests for ecomoni.export.exporters.

These tests check the export shapes:
- measurement CSV/JSON with an overall status column
- alert CSV/JSON with one row per alert
- Excel workbooks for both
- download file naming
"""

from __future__ import annotations

import csv
import io
import json
from datetime import date, datetime, timezone

from openpyxl import load_workbook

from ecomoni.core.alerts.alert_deriver import AlertDeriver
from ecomoni.core.standards.defaults import default_catalog
from ecomoni.domain.models import Measurement, MeasurementType
from ecomoni.export.exporters import (
    ALERT_COLUMNS,
    MEASUREMENT_COLUMNS,
    alerts_to_csv,
    alerts_to_json,
    alerts_to_xlsx,
    export_filename,
    measurements_to_csv,
    measurements_to_json,
    measurements_to_xlsx,
)

T0 = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)


def _mk_measurement(mid: str, parameter: str, value: float) -> Measurement:
    """Create a Measurement."""
    return Measurement(
        id=mid, parameter=parameter, value=value, unit="u", latitude=12.5, longitude=-12.1,
        timestamp=T0, measurement_type=MeasurementType.WATER,
    )


def _deriver() -> AlertDeriver:
    return AlertDeriver.from_catalog(default_catalog())


def test_measurements_csv_has_status_column() -> None:
    """Each row carries the worst severity of its measurement."""
    ms = [_mk_measurement("a", "Arsenic", 0.05), _mk_measurement("b", "Arsenic", 0.001)]
    rows = list(csv.DictReader(io.StringIO(measurements_to_csv(ms, _deriver()))))

    assert list(rows[0].keys()) == MEASUREMENT_COLUMNS
    assert [(r["id"], r["status"]) for r in rows] == [("a", "Critical"), ("b", "Compliant")]
    assert rows[0]["measurement_type"] == "Water"
    assert rows[0]["label"] == ""


def test_measurements_json() -> None:
    """JSON export is a list of records with status."""
    data = json.loads(measurements_to_json([_mk_measurement("a", "PM2.5", 40.0)], _deriver()))
    assert data[0]["id"] == "a"
    assert data[0]["status"] == "Warning"


def test_alerts_csv_and_json() -> None:
    """One row per (measurement, source) alert."""
    alerts = _deriver().derive_all([_mk_measurement("a", "Arsenic", 0.05)])

    rows = list(csv.DictReader(io.StringIO(alerts_to_csv(alerts))))
    assert list(rows[0].keys()) == ALERT_COLUMNS
    assert [r["source"] for r in rows] == ["WHO", "AFC", "Senegal"]

    data = json.loads(alerts_to_json(alerts))
    assert {d["severity"] for d in data} == {"Critical"}
    assert data[0]["timestamp"] == "2026-01-01T09:00:00+00:00"


def test_empty_exports() -> None:
    """Empty inputs still produce a header / an empty list."""
    assert alerts_to_csv([]).splitlines() == [",".join(ALERT_COLUMNS)]
    assert json.loads(alerts_to_json([])) == []


def test_export_filename() -> None:
    """kind_date.fmt."""
    assert export_filename("alerts", "csv", today=date(2026, 2, 3)) == "alerts_2026-02-03.csv"


def test_measurements_xlsx_sheet() -> None:
    """Header row plus one row per measurement, shaded by status."""
    ms = [_mk_measurement("a", "Arsenic", 0.05), _mk_measurement("b", "Arsenic", 0.001)]
    wb = load_workbook(io.BytesIO(measurements_to_xlsx(ms, _deriver())))
    ws = wb["Measurements"]

    rows = list(ws.iter_rows(values_only=True))
    assert list(rows[0]) == MEASUREMENT_COLUMNS
    assert [r[0] for r in rows[1:]] == ["a", "b"]
    status = MEASUREMENT_COLUMNS.index("status")
    assert [r[status] for r in rows[1:]] == ["Critical", "Compliant"]
    assert ws["A2"].fill.fgColor.rgb.endswith("F8D7DA")


def test_alerts_xlsx_sheet() -> None:
    """One row per alert with numeric cells kept numeric."""
    alerts = _deriver().derive_all([_mk_measurement("m", "Mercury", 0.011)])
    ws = load_workbook(io.BytesIO(alerts_to_xlsx(alerts)))["Alerts"]

    rows = list(ws.iter_rows(values_only=True))
    assert list(rows[0]) == ALERT_COLUMNS
    assert len(rows) == 4
    assert rows[1][ALERT_COLUMNS.index("limit")] == 0.006
    assert {r[ALERT_COLUMNS.index("severity")] for r in rows[1:]} == {"Warning", "Critical"}
