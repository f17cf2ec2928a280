"""
Asynchronous, deduplicated delivery of alert notifications.

An alert is identified by ``(measurement_id, source)`` and is notified at
most once: re-publishing it (a retried import, a duplicated bus message)
is ignored while it is queued or after it was delivered. If every notifier
fails, the alert is released again so that a later publication can retry.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import List, Optional

from ecomoni.domain.models import AlertId
from ecomoni.notification.base import NotificationEvent, Notifier, PermanentDeliveryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationThreadConfig:
    """
    Parameters
    ----------
    max_queue
        Pending events; further events are dropped.
    retry_count
        Retries per notifier after the first attempt (transient errors only).
    retry_backoff_s
        First retry delay, doubled on every retry.
    poll_timeout_s
        Queue poll interval, bounds the stop latency.
    dedupe_window
        Number of alert ids remembered; the oldest are forgotten first.
    """

    max_queue: int = 2000
    retry_count: int = 3
    retry_backoff_s: float = 0.5
    poll_timeout_s: float = 0.5
    dedupe_window: int = 10_000


class AlertNotificationWorker:
    """
    Background thread sending each alert notification to every notifier.

    Parameters
    ----------
    notifiers
        Delivery channels, tried in order for each event.
    cfg
        Queue, retry and dedupe settings.
    """

    def __init__(self, notifiers: List[Notifier], cfg: NotificationThreadConfig | None = None):
        self._notifiers = notifiers
        self._cfg = cfg or NotificationThreadConfig()
        self._q: "queue.Queue[Optional[NotificationEvent]]" = queue.Queue(maxsize=self._cfg.max_queue)
        self._stop = threading.Event()
        self._seen: "OrderedDict[AlertId, None]" = OrderedDict()
        self._seen_lock = threading.Lock()
        self._thread = threading.Thread(target=self._run, name="alert-notifier", daemon=True)

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        try:
            self._q.put_nowait(None)
        except queue.Full:
            pass
        if self._thread.is_alive():
            self._thread.join(timeout=2.0)

    def _claim(self, alert_id: AlertId) -> bool:
        with self._seen_lock:
            if alert_id in self._seen:
                return False
            self._seen[alert_id] = None
            while len(self._seen) > self._cfg.dedupe_window:
                self._seen.popitem(last=False)
            return True

    def _release(self, alert_id: AlertId) -> None:
        with self._seen_lock:
            self._seen.pop(alert_id, None)

    def emit(self, event: NotificationEvent) -> bool:
        """
        Queue an event unless its alert is already queued or delivered.

        Returns
        -------
        bool
            True if the event was queued. Never blocks.
        """
        if event.alert_id is not None and not self._claim(event.alert_id):
            logger.debug("Alert %s already notified, skipping", event.key)
            return False
        try:
            self._q.put_nowait(event)
        except queue.Full:
            if event.alert_id is not None:
                self._release(event.alert_id)
            logger.warning("Notification queue full, dropping alert %s", event.key)
            return False
        return True

    def deliver(self, event: NotificationEvent) -> bool:
        """
        Send one event to every notifier, synchronously.

        Returns
        -------
        bool
            True if at least one notifier accepted it. Otherwise the alert id
            is released so a later publication is not deduplicated away.
        """
        accepted = False
        for notifier in self._notifiers:
            accepted = self._send(notifier, event) or accepted
        if not accepted and event.alert_id is not None:
            self._release(event.alert_id)
        return accepted

    def _send(self, notifier: Notifier, event: NotificationEvent) -> bool:
        for attempt in range(self._cfg.retry_count + 1):
            try:
                notifier.notify(event)
                return True
            except PermanentDeliveryError as e:
                logger.error("Alert %s refused: %s", event.key, e)
                return False
            except Exception as e:
                if attempt >= self._cfg.retry_count:
                    logger.error("Giving up on alert %s after %d attempts: %r", event.key, attempt + 1, e)
                    return False
                logger.warning("Notifying alert %s failed (attempt %d): %r", event.key, attempt + 1, e)
                if self._stop.wait(self._cfg.retry_backoff_s * (2 ** attempt)):
                    return False
        return False

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                event = self._q.get(timeout=self._cfg.poll_timeout_s)
            except queue.Empty:
                continue
            if event is None:
                break
            self.deliver(event)
