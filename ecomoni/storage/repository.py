from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Set, Tuple

from ecomoni.core.standards.catalog import StandardsCatalog
from ecomoni.domain.errors import MalformedMeasurement, StoreError
from ecomoni.domain.models import Measurement
from ecomoni.domain.parsing import measurement_to_record, parse_measurement
from ecomoni.storage.local_cache import LocalCache

logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    """
    Protocol for the remote measurement file.

    `GithubFileStore` implements it; tests use in-memory fakes.
    """

    def fetch(self) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        ...

    def commit(self, records: List[Dict[str, Any]], sha: Optional[str]) -> str:
        ...


def decode_stored_records(
    records: Iterable[Dict[str, Any]],
    catalog: Optional[StandardsCatalog] = None,
) -> List[Measurement]:
    """
    Decode stored records, skipping the ones that cannot be used.

    The stored file may contain records written by older clients. Malformed
    records and repeated ids are logged and skipped rather than failing the
    whole load.
    """
    out: List[Measurement] = []
    seen: Set[str] = set()
    for i, rec in enumerate(records):
        try:
            m = parse_measurement(rec, catalog=catalog)
        except MalformedMeasurement as e:
            logger.warning("Skipping stored record #%d: %s", i, e.reason)
            continue
        if m.id in seen:
            logger.warning("Skipping stored record #%d: duplicate id %s", i, m.id)
            continue
        seen.add(m.id)
        out.append(m)
    return out


class MeasurementRepository:
    """
    Persistence for the measurement collection.

    The remote file is the single source of truth; the local cache is a
    read fallback.

    Write policy
    ------------
    - The remote commit happens first. The cache is refreshed only after it
      succeeds.
    - With ``require_remote=True`` a failed or unconfigured remote raises
      `StoreError` and nothing is written anywhere.
    - With ``require_remote=False`` the cache alone is written when the
      remote is unavailable.

    Parameters
    ----------
    remote
        Remote record store, or None when not configured.
    cache
        Local cache, or None.
    catalog
        Catalog used to fill missing measurement types on decode.
    require_remote
        Refuse writes that cannot reach the remote store.
    """

    def __init__(
        self,
        remote: Optional[RecordStore],
        cache: Optional[LocalCache] = None,
        catalog: Optional[StandardsCatalog] = None,
        require_remote: bool = True,
    ):
        self._remote = remote
        self._cache = cache
        self._catalog = catalog
        self._require_remote = require_remote
        self._sha: Optional[str] = None

    def load(self) -> List[Measurement]:
        """
        Load the collection, remote first.

        Returns
        -------
        list of Measurement
            Decoded measurements.

        Raises
        ------
        StoreError
            If the remote is unavailable and no cache can stand in.
        """
        if self._remote is not None:
            try:
                records, sha = self._remote.fetch()
            except StoreError as e:
                cached = self._cache.load() if self._cache is not None else None
                if cached is None:
                    raise
                logger.warning("Remote read failed, serving %d cached records: %s", len(cached), e)
                return decode_stored_records(cached, self._catalog)

            self._sha = sha
            self._refresh_cache(records)
            return decode_stored_records(records, self._catalog)

        if self._require_remote:
            raise StoreError("Remote store is not configured")

        cached = self._cache.load() if self._cache is not None else None
        return decode_stored_records(cached or [], self._catalog)

    def save(self, measurements: Sequence[Measurement]) -> None:
        """
        Persist the full collection.

        Parameters
        ----------
        measurements
            Complete collection, in order.

        Raises
        ------
        StoreError
            When the write policy forbids falling back to the cache.
        """
        records = [measurement_to_record(m) for m in measurements]

        if self._remote is None:
            if self._require_remote:
                raise StoreError("Remote store is not configured")
            self._write_cache(records)
            return

        try:
            self._sha = self._remote.commit(records, self._sha)
        except StoreError:
            if self._require_remote:
                raise
            logger.warning("Remote write failed, keeping %d records in the local cache only", len(records))
            self._write_cache(records)
            return

        self._refresh_cache(records)

    def _write_cache(self, records: List[Dict[str, Any]]) -> None:
        if self._cache is None:
            raise StoreError("No remote store and no local cache configured")
        self._cache.save(records)

    def _refresh_cache(self, records: List[Dict[str, Any]]) -> None:
        if self._cache is None:
            return
        try:
            self._cache.save(records)
        except StoreError as e:
            logger.warning("Cache refresh failed: %s", e)
