from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Any, Dict, Sequence

from ecomoni.domain.models import Alert


def _iso(ts: datetime) -> str:
    """ISO-8601 string with second precision."""
    return ts.isoformat(timespec="seconds")


def build_alert_webhook_payload(alert: Alert, current_alerts: Sequence[Alert]) -> Dict[str, Any]:
    """
    Build a webhook payload for a newly raised alert plus current totals.

    The payload includes:
    - "alert": the fields a recipient needs to act on the alert
    - "totals": counts over the current derived alert set

    Parameters
    ----------
    alert
        Alert that triggered the notification.
    current_alerts
        Alert set derived from the store when the payload is built.

    Returns
    -------
    dict
        Payload with keys "type", "alert" and "totals".
    """
    by_severity = Counter(a.severity.value for a in current_alerts)
    by_source = Counter(a.source for a in current_alerts)
    by_parameter = Counter(a.parameter for a in current_alerts)

    alert_payload = {
        "measurement_id": alert.measurement_id,
        "parameter": alert.parameter,
        "value": alert.value,
        "unit": alert.unit,
        "source": alert.source,
        "limit": alert.limit,
        "ratio": round(alert.ratio, 4),
        "severity": alert.severity.value,
        "timestamp": _iso(alert.timestamp),
        "latitude": alert.latitude,
        "longitude": alert.longitude,
        "message": (
            f"{alert.parameter} {alert.value} {alert.unit} exceeds {alert.source} "
            f"limit {alert.limit} {alert.unit} (x{alert.ratio:.2f})"
        ),
    }

    totals_payload = {
        "alerts_total": len(current_alerts),
        "measurements_with_alerts": len({a.measurement_id for a in current_alerts}),
        "counts_by_severity": dict(by_severity),
        "counts_by_source": dict(by_source),
        "counts_by_parameter": dict(by_parameter),
    }

    return {
        "type": "alert_raised",
        "alert": alert_payload,
        "totals": totals_payload,
    }
