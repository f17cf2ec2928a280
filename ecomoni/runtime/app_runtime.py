from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from ecomoni.core.alerts.alert_deriver import AlertDeriver
from ecomoni.core.state_store import MonitoringStore
from ecomoni.domain.models import Severity
from ecomoni.notification.notification_thread import AlertNotificationWorker
from ecomoni.runtime.event_bus import EventBus
from ecomoni.runtime.notification_adapter_thread import NotificationAdapterThread
from ecomoni.runtime.sync_thread import SyncConfig, SyncThread
from ecomoni.services.controller import MonitoringController

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppRuntimeConfig:
    """
    Runtime configuration for thread orchestration.

    Parameters
    ----------
    sync_interval_s
        Seconds between repository refreshes. ``0`` disables the sync thread.
    notify_min_severity
        Lowest alert severity that is sent to notifiers.
    """

    sync_interval_s: float = 60.0
    notify_min_severity: Severity = Severity.WARNING


class AppRuntime:
    """
    Thread supervisor for the background side of the application.

    Thread Topology
    ---------------
    1) SyncThread (I/O)
       - reloads the measurement collection from the repository on an interval

    2) NotificationAdapterThread (adapter)
       - consumes alerts published by the controller
       - builds webhook payloads with current totals
       - emits NotificationEvent into AlertNotificationWorker

    3) AlertNotificationWorker (I/O)
       - delivers each alert once, with retries

    Request handling (the HTTP server) runs on its own threads and calls the
    controller directly; the runtime only owns background work.

    Notes
    -----
    All threads are daemon threads; `stop()` still joins them for a clean
    shutdown.
    """

    def __init__(
        self,
        cfg: AppRuntimeConfig,
        controller: MonitoringController,
        bus: EventBus,
        store: MonitoringStore,
        deriver: AlertDeriver,
        notifier: Optional[AlertNotificationWorker] = None,
    ):
        self._cfg = cfg
        self._notifier = notifier
        self._stop = threading.Event()

        self._sync: Optional[SyncThread] = None
        if cfg.sync_interval_s > 0 and controller.repository is not None:
            self._sync = SyncThread(controller, self._stop, SyncConfig(interval_s=cfg.sync_interval_s))

        self._notify_adapter: Optional[NotificationAdapterThread] = None
        if notifier is not None:
            self._notify_adapter = NotificationAdapterThread(
                bus=bus,
                store=store,
                deriver=deriver,
                notifier=notifier,
                stop_event=self._stop,
                min_severity=cfg.notify_min_severity,
            )

    def start(self) -> None:
        if self._notifier is not None:
            self._notifier.start()
        if self._notify_adapter is not None:
            self._notify_adapter.start()
        if self._sync is not None:
            self._sync.start()
        logger.info(
            "Runtime started (sync=%s, notifications=%s)",
            self._sync is not None,
            self._notify_adapter is not None,
        )

    def stop(self) -> None:
        self._stop.set()
        if self._sync is not None:
            self._sync.join(timeout=2.0)
        if self._notify_adapter is not None:
            self._notify_adapter.join(timeout=2.0)
        if self._notifier is not None:
            self._notifier.stop()
        logger.info("Runtime stopped")
