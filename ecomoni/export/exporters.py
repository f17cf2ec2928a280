"""
Tabular exports of measurements and alerts.

Exports are read-only views: they take a measurement snapshot and a deriver
and never feed anything back into the store. CSV and JSON are returned as
text, Excel workbooks (openpyxl) as bytes.
"""

from __future__ import annotations

import csv
import io
import json
from datetime import date
from typing import Any, Dict, List, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from ecomoni.core.alerts.alert_deriver import AlertDeriver
from ecomoni.domain.models import Alert, Measurement, Severity
from ecomoni.domain.parsing import measurement_to_record

MEASUREMENT_COLUMNS = [
    "id",
    "parameter",
    "value",
    "unit",
    "measurement_type",
    "timestamp",
    "latitude",
    "longitude",
    "label",
    "description",
    "status",
]

ALERT_COLUMNS = [
    "measurement_id",
    "parameter",
    "value",
    "unit",
    "source",
    "limit",
    "ratio",
    "severity",
    "timestamp",
    "latitude",
    "longitude",
]


def alert_to_record(a: Alert) -> Dict[str, Any]:
    return {
        "measurement_id": a.measurement_id,
        "parameter": a.parameter,
        "value": a.value,
        "unit": a.unit,
        "source": a.source,
        "limit": a.limit,
        "ratio": a.ratio,
        "severity": a.severity.value,
        "timestamp": a.timestamp.isoformat(),
        "latitude": a.latitude,
        "longitude": a.longitude,
    }


def measurement_rows(measurements: Sequence[Measurement], deriver: AlertDeriver) -> List[Dict[str, Any]]:
    """Measurement records with their overall ``status`` column."""
    rows = []
    for m in measurements:
        rec = measurement_to_record(m)
        rec["status"] = deriver.measurement_status(m).value
        rows.append(rec)
    return rows


def _to_csv(rows: List[Dict[str, Any]], columns: List[str]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=columns, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({k: ("" if row.get(k) is None else row.get(k)) for k in columns})
    return buf.getvalue()


def measurements_to_csv(measurements: Sequence[Measurement], deriver: AlertDeriver) -> str:
    return _to_csv(measurement_rows(measurements, deriver), MEASUREMENT_COLUMNS)


def measurements_to_json(measurements: Sequence[Measurement], deriver: AlertDeriver) -> str:
    return json.dumps(measurement_rows(measurements, deriver), ensure_ascii=False, indent=2)


def alerts_to_csv(alerts: Sequence[Alert]) -> str:
    return _to_csv([alert_to_record(a) for a in alerts], ALERT_COLUMNS)


def alerts_to_json(alerts: Sequence[Alert]) -> str:
    return json.dumps([alert_to_record(a) for a in alerts], ensure_ascii=False, indent=2)


def export_filename(kind: str, fmt: str, today: date | None = None) -> str:
    """Download file name, e.g. ``alerts_2026-01-31.csv``."""
    d = today or date.today()
    return f"{kind}_{d.isoformat()}.{fmt}"


XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_HEADER_FILL = PatternFill("solid", fgColor="1E3C72")
_HEADER_FONT = Font(bold=True, color="FFFFFF")
_SEVERITY_FILLS = {
    Severity.COMPLIANT.value: PatternFill("solid", fgColor="D4EDDA"),
    Severity.WARNING.value: PatternFill("solid", fgColor="FFF3CD"),
    Severity.CRITICAL.value: PatternFill("solid", fgColor="F8D7DA"),
}


def _to_xlsx(rows: List[Dict[str, Any]], columns: List[str], title: str, band_column: str) -> bytes:
    """
    One-sheet workbook with a styled header row.

    Each data row is shaded by the severity found in ``band_column``.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = title
    ws.append(columns)
    for cell in ws[1]:
        cell.fill = _HEADER_FILL
        cell.font = _HEADER_FONT
    ws.freeze_panes = "A2"

    for row in rows:
        ws.append([row.get(k) for k in columns])
        fill = _SEVERITY_FILLS.get(row.get(band_column))
        if fill is not None:
            for cell in ws[ws.max_row]:
                cell.fill = fill

    for i, col in enumerate(columns, start=1):
        width = max([len(col)] + [len(str(r.get(col) or "")) for r in rows])
        ws.column_dimensions[get_column_letter(i)].width = min(width + 2, 40)

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def measurements_to_xlsx(measurements: Sequence[Measurement], deriver: AlertDeriver) -> bytes:
    return _to_xlsx(measurement_rows(measurements, deriver), MEASUREMENT_COLUMNS, "Measurements", "status")


def alerts_to_xlsx(alerts: Sequence[Alert]) -> bytes:
    return _to_xlsx([alert_to_record(a) for a in alerts], ALERT_COLUMNS, "Alerts", "severity")
