from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from ecomoni.domain.errors import StoreError

logger = logging.getLogger(__name__)


class LocalCache:
    """
    Local JSON copy of the measurement file.

    Used to start quickly and to keep serving data while the remote store
    is unreachable. It is refreshed after every successful remote read or
    write and is never written ahead of the remote.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[List[Dict[str, Any]]]:
        """
        Read the cached records.

        Returns
        -------
        list of dict or None
            Records, or None when there is no usable cache.
        """
        if not self._path.exists():
            return None
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable cache %s: %s", self._path, e)
            return None
        if not isinstance(data, list):
            logger.warning("Ignoring cache %s: not a JSON array", self._path)
            return None
        return [d for d in data if isinstance(d, dict)]

    def save(self, records: List[Dict[str, Any]]) -> None:
        """
        Write records atomically (temp file + rename).

        Raises
        ------
        StoreError
            If the file cannot be written.
        """
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(records, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self._path)
        except OSError as e:
            raise StoreError(f"Cannot write cache {self._path}: {e}") from e
