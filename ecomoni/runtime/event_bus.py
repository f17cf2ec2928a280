from __future__ import annotations

import logging
from dataclasses import dataclass, field
from queue import Full, Queue

from ecomoni.domain.models import Alert

logger = logging.getLogger(__name__)


@dataclass
class EventBus:
    """
    In-process event bus for newly derived alerts, using a thread-safe queue.

    The bus provides a simple producer/consumer mechanism:
    - Producers publish :class:`~ecomoni.domain.models.Alert` via :meth:`publish_alert`.
    - Consumers (e.g., the notification adapter thread) read from :attr:`alerts_q`.

    Only alerts of measurements added by this process are published; alerts
    re-derived after a remote refresh are not, so a sync never re-notifies.

    Backpressure Policy
    -------------------
    If the queue is full, alerts are dropped and a warning is logged. The
    derived alert set is unaffected; only the notification is lost.

    Attributes
    ----------
    alerts_q
        Bounded queue of alerts. Consumers should drain this queue in a loop.
    """

    alerts_q: "Queue[Alert]" = field(default_factory=lambda: Queue(maxsize=5000))

    def publish_alert(self, alert: Alert) -> None:
        """
        Publish an alert to the queue (non-blocking).

        Parameters
        ----------
        alert
            Newly derived alert.
        """
        try:
            self.alerts_q.put_nowait(alert)
        except Full:
            logger.warning("Event bus full, dropping alert %s/%s", alert.measurement_id, alert.source)
