from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Dict, Optional

from flask import Flask, Response, jsonify, request

from ecomoni.domain.errors import DuplicateMeasurement, MalformedMeasurement, StoreError
from ecomoni.domain.models import ExceedanceResult
from ecomoni.domain.parsing import (
    canonical_parameter,
    measurement_to_record,
    parse_measurement,
    parse_measurement_type,
    parse_severity,
    parse_timestamp,
)
from ecomoni.export.exporters import (
    XLSX_MIMETYPE,
    alert_to_record,
    alerts_to_csv,
    alerts_to_json,
    alerts_to_xlsx,
    export_filename,
    measurements_to_csv,
    measurements_to_json,
    measurements_to_xlsx,
)
from ecomoni.services.controller import MonitoringController

logger = logging.getLogger(__name__)

EXPORT_KINDS = ("measurements", "alerts")
EXPORT_FORMATS = {"csv": "text/csv", "json": "application/json", "xlsx": XLSX_MIMETYPE}


def _result_to_dict(r: ExceedanceResult) -> Dict[str, Any]:
    return {
        "limit": r.limit,
        "exceeded": r.exceeded,
        "ratio": r.ratio,
        "severity": r.severity.value,
    }


def _error(message: str, status: int, **extra: Any):
    body: Dict[str, Any] = {"error": message}
    body.update(extra)
    return jsonify(body), status


def create_app(controller: MonitoringController, api_token: Optional[str] = None) -> Flask:
    """
    Build the records API around a controller.

    Parameters
    ----------
    controller
        Wired monitoring controller.
    api_token
        Bearer token required for writes. None leaves writes open, which is
        only meant for local development.

    Returns
    -------
    Flask
        Application ready for ``run()`` or the Flask test client.
    """
    app = Flask(__name__)
    app.json.sort_keys = False

    def require_bearer(fn):
        """Write endpoints: require ``Authorization: Bearer <token>`` when a token is configured."""
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if api_token is None:
                return fn(*args, **kwargs)

            auth = request.headers.get("Authorization", "")
            if auth.startswith("Bearer "):
                token = auth.removeprefix("Bearer ").strip()
                if token == api_token:
                    return fn(*args, **kwargs)
                return _error("invalid token", 403)

            return _error("unauthorized", 401)
        return wrapper

    @app.errorhandler(StoreError)
    def store_error(e: StoreError):
        logger.error("Store failure: %s", e)
        return _error(f"store unavailable: {e}", 502)

    @app.get("/api/github-db")
    def list_records():
        return jsonify({"data": [measurement_to_record(m) for m in controller.measurements()]}), 200

    @app.post("/api/github-db")
    @require_bearer
    def add_records():
        data = request.get_json(silent=True)
        if isinstance(data, dict) and isinstance(data.get("data"), list):
            data = data["data"]

        if isinstance(data, list):
            report = controller.import_records(data)
            status = 201 if report.added else 400
            return jsonify({
                "total": report.total,
                "added": report.added,
                "failed": report.failed,
                "errors": report.errors,
            }), status

        if not isinstance(data, dict):
            return _error("body must be a JSON object or array", 400)

        try:
            m = parse_measurement(data, catalog=controller.deriver.evaluator.catalog)
            alerts = controller.add_measurement(m)
        except MalformedMeasurement as e:
            return _error(e.reason, 400, field=e.field)
        except DuplicateMeasurement as e:
            return _error(str(e), 409)

        return jsonify({
            "measurement": measurement_to_record(m),
            "alerts": [alert_to_record(a) for a in alerts],
        }), 201

    def _parameter_arg():
        p = request.args.get("parameter")
        return canonical_parameter(p, controller.deriver.evaluator.catalog) if p else None

    def _filtered_measurements():
        """Measurements matching the ``type``/``parameter``/``start``/``end`` query args."""
        args = request.args
        mtype = parse_measurement_type(args["type"]) if args.get("type") else None
        start = parse_timestamp(args["start"]) if args.get("start") else None
        end = parse_timestamp(args["end"]) if args.get("end") else None
        return controller.filter_measurements(
            measurement_type=mtype,
            parameter=_parameter_arg(),
            start=start,
            end=end,
        )

    @app.get("/api/measurements")
    def list_measurements():
        try:
            found = _filtered_measurements()
        except MalformedMeasurement as e:
            return _error(e.reason, 400, field=e.field)

        deriver = controller.deriver
        return jsonify({
            "count": len(found),
            "data": [
                dict(measurement_to_record(m), status=deriver.measurement_status(m).value)
                for m in found
            ],
        }), 200

    @app.get("/api/stats")
    def stats():
        try:
            found = _filtered_measurements() if request.args else None
        except MalformedMeasurement as e:
            return _error(e.reason, 400, field=e.field)

        s = controller.statistics(found)
        return jsonify({
            "measurements": s.measurements,
            "critical_alerts": s.critical_alerts,
            "zones": s.zones,
            "days_since_last": s.days_since_last,
        }), 200

    @app.get("/api/alerts")
    def list_alerts():
        args = request.args
        try:
            severity = parse_severity(args["severity"]) if args.get("severity") else None
        except ValueError as e:
            return _error(str(e), 400)

        alerts = controller.filter_alerts(
            parameter=_parameter_arg(),
            severity=severity,
            source=args.get("source") or None,
        )
        return jsonify({"count": len(alerts), "alerts": [alert_to_record(a) for a in alerts]}), 200

    @app.get("/api/measurements/<measurement_id>/compare")
    def compare(measurement_id: str):
        m = controller.get(measurement_id)
        if m is None:
            return _error(f"unknown measurement {measurement_id!r}", 404)

        results = controller.compare(m)
        return jsonify({
            "measurement": measurement_to_record(m),
            "status": controller.deriver.measurement_status(m).value,
            "results": {source: _result_to_dict(r) for source, r in results.items()},
        }), 200

    @app.get("/api/export/<filename>")
    def export(filename: str):
        kind, _, fmt = filename.rpartition(".")
        if kind not in EXPORT_KINDS or fmt not in EXPORT_FORMATS:
            return _error(f"unknown export {filename!r}", 404)

        if kind == "measurements":
            measurements = controller.measurements()
            body = {
                "csv": measurements_to_csv,
                "json": measurements_to_json,
                "xlsx": measurements_to_xlsx,
            }[fmt](measurements, controller.deriver)
        else:
            body = {"csv": alerts_to_csv, "json": alerts_to_json, "xlsx": alerts_to_xlsx}[fmt](controller.alerts())

        return Response(
            body,
            mimetype=EXPORT_FORMATS[fmt],
            headers={"Content-Disposition": f'attachment; filename="{export_filename(kind, fmt)}"'},
        )

    @app.get("/health")
    def health():
        return jsonify({"status": "ok", "measurements": len(controller.measurements())}), 200

    return app
