from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import requests

from ecomoni.notification.base import NotificationEvent, PermanentDeliveryError

logger = logging.getLogger(__name__)

ALERT_ID_HEADER = "X-Ecomoni-Alert-Id"
SEVERITY_HEADER = "X-Ecomoni-Severity"

# 4xx answers worth retrying: timeouts and rate limiting.
_RETRYABLE_CLIENT_STATUS = {408, 425, 429}


@dataclass(frozen=True)
class WebhookConfig:
    """
    Alert webhook endpoint.

    Parameters
    ----------
    url
        Target webhook URL.
    timeout_s
        HTTP request timeout in seconds.
    verify_tls
        Whether to verify TLS certificates.
    auth_header
        Optional Authorization header value (e.g., Bearer token).
    """

    url: str
    timeout_s: float = 3.0
    verify_tls: bool = True
    auth_header: Optional[str] = None


class WebhookNotifier:
    """
    POST alert notifications to one webhook over a reused HTTP session.

    Every request carries the alert identity in ``X-Ecomoni-Alert-Id`` so the
    receiver can drop a notification it has already processed, and the
    severity in ``X-Ecomoni-Severity`` for routing without parsing the body.

    Server errors, timeouts and 408/425/429 answers raise
    ``requests.RequestException`` (transient). Any other 4xx raises
    :class:`PermanentDeliveryError`.
    """

    def __init__(self, cfg: WebhookConfig, session: Optional[requests.Session] = None):
        self._cfg = cfg
        self._session = session or requests.Session()
        self._session.headers.update(self._base_headers())

    def _base_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._cfg.auth_header:
            headers["Authorization"] = self._cfg.auth_header
        return headers

    def notify(self, event: NotificationEvent) -> None:
        headers: Dict[str, str] = {}
        if event.key is not None:
            headers[ALERT_ID_HEADER] = event.key
        if event.severity is not None:
            headers[SEVERITY_HEADER] = event.severity

        r = self._session.post(
            self._cfg.url,
            json=event.payload,
            headers=headers,
            timeout=self._cfg.timeout_s,
            verify=self._cfg.verify_tls,
        )
        if 400 <= r.status_code < 500 and r.status_code not in _RETRYABLE_CLIENT_STATUS:
            raise PermanentDeliveryError(f"webhook refused alert {event.key}: HTTP {r.status_code}")
        r.raise_for_status()
        logger.debug("Webhook accepted alert %s", event.key)

    def close(self) -> None:
        self._session.close()
