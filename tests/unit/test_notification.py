"""
Unit tests for ecomoni.notification (payload, webhook notifier, worker thread).

These tests validate:
- the webhook payload shape and totals
- request parameters, alert id / severity headers and Authorization handling
- transient HTTP errors vs permanent refusals
- worker retries, giving up, and one notification per alert id

No real network requests are made.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, cast
from unittest.mock import MagicMock

import pytest
import requests

from ecomoni.core.alerts.alert_deriver import AlertDeriver
from ecomoni.core.standards.defaults import default_catalog
from ecomoni.core.state_store import MonitoringStore
from ecomoni.domain.models import AlertId, Measurement
from ecomoni.notification.base import NotificationEvent, PermanentDeliveryError
from ecomoni.notification.notification_thread import AlertNotificationWorker, NotificationThreadConfig
from ecomoni.notification.payload import build_alert_webhook_payload
from ecomoni.notification.webhook_notifier import ALERT_ID_HEADER, SEVERITY_HEADER, WebhookConfig, WebhookNotifier
from ecomoni.runtime.event_bus import EventBus
from ecomoni.runtime.notification_adapter_thread import NotificationAdapterThread

T0 = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)


def _mk_measurement(mid: str, parameter: str, value: float) -> Measurement:
    """Create a Measurement."""
    return Measurement(id=mid, parameter=parameter, value=value, unit="mg/L", latitude=12.5, longitude=-12.1, timestamp=T0)


def _mk_event(source: str = "WHO") -> NotificationEvent:
    """Create a minimal NotificationEvent for measurement m1."""
    return NotificationEvent(
        type="alert_raised",
        payload={"k": "v"},
        alert_id=AlertId("m1", source),
        severity="Critical",
        ts="2026-01-01T09:00:00+00:00",
    )


def _wait_until(cond: Callable[[], bool], timeout: float = 2.0) -> bool:
    end = time.time() + timeout
    while time.time() < end:
        if cond():
            return True
        time.sleep(0.01)
    return cond()


def test_payload_contains_alert_and_totals() -> None:
    """Totals count the whole current alert set."""
    d = AlertDeriver.from_catalog(default_catalog())
    current = d.derive_all([_mk_measurement("a", "Arsenic", 0.05), _mk_measurement("m", "Mercury", 0.011)])

    payload = build_alert_webhook_payload(current[0], current)

    assert payload["type"] == "alert_raised"
    assert payload["alert"]["measurement_id"] == "a"
    assert payload["alert"]["source"] == "WHO"
    assert payload["alert"]["severity"] == "Critical"
    assert payload["alert"]["timestamp"] == "2026-01-01T09:00:00+00:00"
    assert "Arsenic" in payload["alert"]["message"]

    totals = payload["totals"]
    assert totals["alerts_total"] == 6
    assert totals["measurements_with_alerts"] == 2
    assert totals["counts_by_severity"] == {"Critical": 4, "Warning": 2}
    assert totals["counts_by_parameter"] == {"Arsenic": 3, "Mercury": 3}
    assert totals["counts_by_source"]["AFC"] == 2


@dataclass
class FakeSession:
    """Stands in for requests.Session; answers every POST with `status`."""

    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    posts: List[Dict[str, Any]] = field(default_factory=list)

    def post(self, url: str, json: Dict[str, Any], headers: Dict[str, str], timeout: float, verify: bool):
        self.posts.append(dict(url=url, json=json, headers=headers, timeout=timeout, verify=verify))
        resp = MagicMock()
        resp.status_code = self.status
        if self.status >= 400:
            resp.raise_for_status.side_effect = requests.HTTPError(str(self.status))
        return resp


def test_webhook_notifier_posts_payload_with_alert_headers() -> None:
    """The payload goes out with the alert id and severity headers."""
    session = FakeSession()
    cfg = WebhookConfig(url="http://hook/alert", timeout_s=1.5, verify_tls=False)

    WebhookNotifier(cfg, session=cast(requests.Session, session)).notify(_mk_event())

    sent = session.posts[0]
    assert sent["url"] == "http://hook/alert"
    assert sent["json"] == {"k": "v"}
    assert sent["headers"] == {ALERT_ID_HEADER: "m1/WHO", SEVERITY_HEADER: "Critical"}
    assert sent["timeout"] == 1.5
    assert sent["verify"] is False
    assert session.headers == {"Content-Type": "application/json"}


def test_webhook_notifier_sets_authorization_on_session() -> None:
    """The configured auth header is sent as-is on every request."""
    session = FakeSession()
    WebhookNotifier(WebhookConfig(url="http://hook", auth_header="Bearer t"), session=cast(requests.Session, session))
    assert session.headers["Authorization"] == "Bearer t"


@pytest.mark.parametrize("status", [500, 503, 429, 408])
def test_webhook_notifier_transient_errors_raise_http_error(status: int) -> None:
    """Server errors and throttling are retryable."""
    notifier = WebhookNotifier(WebhookConfig(url="http://hook"), session=cast(requests.Session, FakeSession(status)))
    with pytest.raises(requests.HTTPError):
        notifier.notify(_mk_event())


@pytest.mark.parametrize("status", [400, 401, 404, 410])
def test_webhook_notifier_client_errors_are_permanent(status: int) -> None:
    """A refused request is not worth retrying."""
    notifier = WebhookNotifier(WebhookConfig(url="http://hook"), session=cast(requests.Session, FakeSession(status)))
    with pytest.raises(PermanentDeliveryError):
        notifier.notify(_mk_event())


@dataclass
class FlakyNotifier:
    """Fails the first `failures` calls with `error`, then records events."""

    failures: int = 0
    error: Exception = field(default_factory=lambda: RuntimeError("transient"))
    calls: int = 0
    delivered: List[NotificationEvent] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def notify(self, event: NotificationEvent) -> None:
        with self.lock:
            self.calls += 1
            if self.calls <= self.failures:
                raise self.error
            self.delivered.append(event)


def _worker(notifier: FlakyNotifier, retry_count: int = 2, **cfg: Any) -> AlertNotificationWorker:
    return AlertNotificationWorker(
        [notifier],
        NotificationThreadConfig(retry_count=retry_count, retry_backoff_s=0.0, poll_timeout_s=0.05, **cfg),
    )


def test_worker_retries_then_delivers() -> None:
    """Transient failures are retried."""
    notifier = FlakyNotifier(failures=2)
    worker = _worker(notifier, retry_count=2)
    worker.start()
    try:
        assert worker.emit(_mk_event()) is True
        assert _wait_until(lambda: len(notifier.delivered) == 1)
        assert notifier.calls == 3
    finally:
        worker.stop()


def test_worker_does_not_retry_permanent_refusal() -> None:
    """A permanent error is tried exactly once."""
    notifier = FlakyNotifier(failures=1, error=PermanentDeliveryError("HTTP 404"))
    assert _worker(notifier, retry_count=3).deliver(_mk_event()) is False
    assert notifier.calls == 1


def test_same_alert_is_notified_once() -> None:
    """Re-publishing a queued or delivered alert is ignored; other alerts are not."""
    notifier = FlakyNotifier()
    worker = _worker(notifier)

    assert worker.emit(_mk_event()) is True
    assert worker.emit(_mk_event()) is False
    assert worker.emit(_mk_event(source="AFC")) is True

    worker.start()
    try:
        assert _wait_until(lambda: len(notifier.delivered) == 2)
        assert worker.emit(_mk_event()) is False
    finally:
        worker.stop()
    assert [e.key for e in notifier.delivered] == ["m1/WHO", "m1/AFC"]


def test_failed_alert_can_be_published_again() -> None:
    """When every attempt fails the alert id is released."""
    notifier = FlakyNotifier(failures=2)
    worker = _worker(notifier, retry_count=1)

    assert worker.emit(_mk_event()) is True
    assert worker.deliver(_mk_event()) is False
    assert worker.emit(_mk_event()) is True
    assert worker.deliver(_mk_event()) is True
    assert len(notifier.delivered) == 1


def test_dedupe_window_forgets_oldest() -> None:
    """Only the last `dedupe_window` alert ids are remembered."""
    worker = _worker(FlakyNotifier(), dedupe_window=1, max_queue=10)

    assert worker.emit(_mk_event("WHO")) is True
    assert worker.emit(_mk_event("AFC")) is True
    assert worker.emit(_mk_event("WHO")) is True


def test_adapter_and_worker_skip_republished_alert() -> None:
    """The same derived alert published twice yields one event."""
    d = AlertDeriver.from_catalog(default_catalog())
    store = MonitoringStore()
    m = _mk_measurement("a", "Arsenic", 0.05)
    store.append(m)
    alert = d.derive_for(m)[0]
    adapter = NotificationAdapterThread(EventBus(), store, d, _worker(FlakyNotifier()), threading.Event())

    assert adapter.handle(alert) is True
    assert adapter.handle(alert) is False


def test_worker_drops_when_queue_full() -> None:
    """emit() never blocks or raises, and a dropped alert stays publishable."""
    worker = AlertNotificationWorker([FlakyNotifier()], NotificationThreadConfig(max_queue=1))
    assert worker.emit(_mk_event("WHO")) is True
    assert worker.emit(_mk_event("AFC")) is False

    worker.deliver(worker._q.get_nowait())
    assert worker.emit(_mk_event("AFC")) is True
