"""
Unit tests for ecomoni.runtime (event bus, notification adapter, sync thread).

Unit tests validate:
- publish_alert enqueues alerts and drops when the queue is full
- the adapter filters by minimum severity and emits alert_raised events
- a sync tick refreshes the controller and survives store failures
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from queue import Queue
from typing import List, cast

from ecomoni.core.alerts.alert_deriver import AlertDeriver
from ecomoni.core.standards.defaults import default_catalog
from ecomoni.core.state_store import MonitoringStore
from ecomoni.domain.errors import StoreError
from ecomoni.domain.models import Alert, Measurement, Severity
from ecomoni.notification.base import NotificationEvent
from ecomoni.notification.notification_thread import AlertNotificationWorker
from ecomoni.runtime.event_bus import EventBus
from ecomoni.runtime.notification_adapter_thread import NotificationAdapterThread
from ecomoni.runtime.sync_thread import SyncThread
from ecomoni.services.controller import MonitoringController

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _mk_measurement(mid: str, parameter: str, value: float) -> Measurement:
    """Create a Measurement."""
    return Measurement(id=mid, parameter=parameter, value=value, unit="u", latitude=0.0, longitude=0.0, timestamp=T0)


@dataclass
class FakeWorker:
    """Records emitted notification events."""

    events: List[NotificationEvent] = field(default_factory=list)

    def emit(self, event: NotificationEvent) -> bool:
        self.events.append(event)
        return True


@dataclass
class FakeController:
    """Controller double for the sync thread."""

    fail: bool = False
    calls: int = 0

    def refresh(self) -> int:
        self.calls += 1
        if self.fail:
            raise StoreError("down")
        return 7


def _alerts_for(store: MonitoringStore, deriver: AlertDeriver, m: Measurement) -> List[Alert]:
    store.append(m)
    return deriver.derive_for(m)


def test_event_bus_publish_and_drop() -> None:
    """Alerts are queued until the queue is full, then dropped silently."""
    d = AlertDeriver.from_catalog(default_catalog())
    alerts = d.derive_for(_mk_measurement("a", "Arsenic", 0.05))
    bus = EventBus(alerts_q=Queue(maxsize=2))

    for a in alerts:
        bus.publish_alert(a)

    assert bus.alerts_q.qsize() == 2
    assert bus.alerts_q.get_nowait() == alerts[0]


def test_adapter_emits_for_alerts_at_or_above_min_severity() -> None:
    """Warning threshold: Critical and Warning go out, Compliant does not."""
    store = MonitoringStore()
    d = AlertDeriver.from_catalog(default_catalog())
    worker = FakeWorker()
    adapter = NotificationAdapterThread(
        bus=EventBus(),
        store=store,
        deriver=d,
        notifier=cast(AlertNotificationWorker, worker),
        stop_event=threading.Event(),
        min_severity=Severity.WARNING,
    )

    crit = _alerts_for(store, d, _mk_measurement("a", "Arsenic", 0.05))[0]
    comp = _alerts_for(store, d, _mk_measurement("p", "PM2.5", 35.0))[0]

    assert adapter.handle(crit) is True
    assert adapter.handle(comp) is False

    assert len(worker.events) == 1
    ev = worker.events[0]
    assert ev.type == "alert_raised"
    assert ev.severity == "Critical"
    assert ev.key == "a/WHO"
    assert ev.alert_id == crit.alert_id
    assert ev.payload["totals"]["alerts_total"] == 6


def test_adapter_thread_drains_bus() -> None:
    """The running thread forwards queued alerts."""
    store = MonitoringStore()
    d = AlertDeriver.from_catalog(default_catalog())
    bus = EventBus()
    worker = FakeWorker()
    stop = threading.Event()
    adapter = NotificationAdapterThread(bus, store, d, cast(AlertNotificationWorker, worker), stop, Severity.COMPLIANT)

    for a in _alerts_for(store, d, _mk_measurement("p", "PM2.5", 35.0)):
        bus.publish_alert(a)

    adapter.start()
    try:
        for _ in range(200):
            if len(worker.events) == 3:
                break
            stop.wait(0.01)
    finally:
        adapter.stop()
        adapter.join()

    assert len(worker.events) == 3


def test_sync_once_refreshes_and_survives_errors() -> None:
    """A failing refresh is logged and reported as False."""
    ok = FakeController()
    assert SyncThread(cast(MonitoringController, ok), threading.Event()).sync_once() is True
    assert ok.calls == 1

    bad = FakeController(fail=True)
    assert SyncThread(cast(MonitoringController, bad), threading.Event()).sync_once() is False
