from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from ecomoni.domain.errors import StoreError
from ecomoni.services.controller import MonitoringController

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncConfig:
    """
    Parameters
    ----------
    interval_s
        Seconds between two refreshes from the repository.
    """

    interval_s: float = 60.0


class SyncThread:
    """
    Periodically reload the measurement collection from the repository.

    Other writers commit to the same remote file, so the local store is
    replaced with the remote content on every tick. Alerts are re-derived
    lazily on the next read; nothing is published to the event bus.

    A failing refresh is logged and the previous content is kept.
    """

    def __init__(self, controller: MonitoringController, stop_event: threading.Event, cfg: SyncConfig | None = None):
        self._controller = controller
        self._stop = stop_event
        self._cfg = cfg or SyncConfig()
        self._thread = threading.Thread(target=self._run, name="repository-sync", daemon=True)

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = 2.0) -> None:
        self._thread.join(timeout=timeout)

    def sync_once(self) -> bool:
        """
        Run one refresh.

        Returns
        -------
        bool
            True if the store was refreshed.
        """
        try:
            count = self._controller.refresh()
        except StoreError as e:
            logger.warning("Repository sync failed, keeping current data: %s", e)
            return False
        except Exception:
            logger.exception("Repository sync crashed")
            return False
        logger.debug("Repository sync done (%d measurements)", count)
        return True

    def _run(self) -> None:
        # Event.wait doubles as the sleep so stop() interrupts it.
        while not self._stop.wait(self._cfg.interval_s):
            self.sync_once()
