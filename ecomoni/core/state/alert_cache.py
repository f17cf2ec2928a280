from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from ecomoni.domain.models import Alert


@dataclass
class DerivedAlertCache:
    """
    Cache of the last full alert derivation.

    The cache is a convenience, never a source of truth: an entry is only
    served when it was computed from the measurement log version currently
    in the store. Any write to the log bumps that version, which makes the
    entry stale.

    Notes
    -----
    - Not thread-safe; the enclosing `MonitoringStore` synchronizes access.
    - Stored alerts are kept as a tuple so readers cannot mutate them.
    """

    _version: Optional[int] = None
    _alerts: Tuple[Alert, ...] = ()

    def get(self, version: int) -> Optional[List[Alert]]:
        """
        Return the cached alerts if they were derived at ``version``.

        Parameters
        ----------
        version
            Current measurement log version.

        Returns
        -------
        list of Alert or None
            A fresh list copy, or None on a miss.
        """
        if self._version is None or self._version != version:
            return None
        return list(self._alerts)

    def put(self, version: int, alerts: List[Alert]) -> None:
        """Store a derivation computed from log ``version``."""
        self._version = version
        self._alerts = tuple(alerts)

    def invalidate(self) -> None:
        """Drop the cached derivation."""
        self._version = None
        self._alerts = ()

    @property
    def version(self) -> Optional[int]:
        return self._version
