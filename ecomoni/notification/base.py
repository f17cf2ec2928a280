from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from ecomoni.domain.models import AlertId


@dataclass(frozen=True)
class NotificationEvent:
    """
    Message handed to the notification layer.

    It represents *what should be communicated* about an alert, not *how* it
    is delivered.

    Parameters
    ----------
    type
        Event type identifier, ``"alert_raised"``.
    payload
        JSON-serializable body sent by notifiers.
    alert_id
        Identity of the alert. Delivery is deduplicated on it and webhook
        receivers get it as an idempotency key.
    severity
        Severity label of the alert ("Warning", "Critical", ...).
    ts
        ISO timestamp of the measurement.
    """

    type: str
    payload: Dict[str, Any]
    alert_id: Optional[AlertId] = None
    severity: Optional[str] = None
    ts: Optional[str] = None

    @property
    def key(self) -> Optional[str]:
        """``"<measurement_id>/<source>"``, or None for events without an alert."""
        if self.alert_id is None:
            return None
        return f"{self.alert_id.measurement_id}/{self.alert_id.source}"


class PermanentDeliveryError(Exception):
    """The receiver refused the notification; sending it again cannot succeed."""


class Notifier(Protocol):
    """
    Protocol interface for notification delivery.

    ``notify`` raises on failure. :class:`PermanentDeliveryError` stops
    retries, any other exception is treated as transient.
    """

    def notify(self, event: NotificationEvent) -> None:
        ...
