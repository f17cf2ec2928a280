from __future__ import annotations

import logging
import threading
from queue import Empty

from ecomoni.core.alerts.alert_deriver import AlertDeriver
from ecomoni.core.state_store import MonitoringStore
from ecomoni.domain.models import Alert, Severity
from ecomoni.notification.base import NotificationEvent
from ecomoni.notification.notification_thread import AlertNotificationWorker
from ecomoni.notification.payload import build_alert_webhook_payload
from ecomoni.runtime.event_bus import EventBus

logger = logging.getLogger(__name__)


class NotificationAdapterThread:
    """
    Adapter thread that bridges newly raised alerts -> AlertNotificationWorker.

    Responsibilities
    ----------------
    - Consume `EventBus.alerts_q`.
    - Drop alerts below `min_severity`.
    - Build a webhook payload with totals over the current derived alert set.
    - Emit `NotificationEvent` objects into the worker asynchronously.

    Concurrency Model
    -----------------
    - Runs as a daemon thread.
    - Polls the queue with a timeout to remain responsive to stop signals.
    - Any exception during payload building or emit is caught and logged.

    Parameters
    ----------
    bus
        Event bus providing the alert queue.
    store
        Store used to derive the current alert set for payload totals.
    deriver
        Alert deriver bound to the catalog in use.
    notifier
        Notification worker responsible for actual sending.
    stop_event
        Stop signal for the thread.
    min_severity
        Lowest severity that is notified.
    """

    def __init__(
        self,
        bus: EventBus,
        store: MonitoringStore,
        deriver: AlertDeriver,
        notifier: AlertNotificationWorker,
        stop_event: threading.Event,
        min_severity: Severity = Severity.WARNING,
    ):
        self._bus = bus
        self._store = store
        self._deriver = deriver
        self._notifier = notifier
        self._stop = stop_event
        self._min_severity = min_severity
        self._thread = threading.Thread(target=self._run, name="notification-adapter", daemon=True)

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = 2.0) -> None:
        self._thread.join(timeout=timeout)

    def should_notify(self, alert: Alert) -> bool:
        return alert.severity.rank >= self._min_severity.rank

    def handle(self, alert: Alert) -> bool:
        """
        Turn one alert into a notification event.

        Returns
        -------
        bool
            True if an event was queued (False below the threshold or when
            the alert was already notified).
        """
        if not self.should_notify(alert):
            return False
        payload = build_alert_webhook_payload(alert, self._store.alerts(self._deriver))
        return self._notifier.emit(
            NotificationEvent(
                type="alert_raised",
                payload=payload,
                alert_id=alert.alert_id,
                severity=alert.severity.value,
                ts=alert.timestamp.isoformat(timespec="seconds"),
            )
        )

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                alert = self._bus.alerts_q.get(timeout=0.5)
            except Empty:
                continue

            try:
                self.handle(alert)
            except Exception:
                logger.exception("Notification adapter failed for %s/%s", alert.measurement_id, alert.source)
