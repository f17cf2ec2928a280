from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Iterable, List, Optional

from ecomoni.domain.models import MeasurementType, StandardEntry

logger = logging.getLogger(__name__)


class StandardsCatalog:
    """
    Read-only table of regulatory limits, keyed by parameter name.

    The catalog is built once at process start (from the built-in table or
    from the YAML config) and then handed to the evaluator and deriver.
    There are no mutation operations; a different table means a different
    catalog object.

    Notes
    -----
    - Lookup is a dict access.
    - A missing parameter is not an error: callers treat ``None`` as "no
      applicable standards".
    - Duplicate parameters and negative limits are rejected at construction.
      A zero limit is accepted (and logged) because the evaluator isolates it
      per source.
    """

    def __init__(self, entries: Iterable[StandardEntry] = ()):
        """
        Parameters
        ----------
        entries
            Standard entries. Their order is kept for listing operations.

        Raises
        ------
        ValueError
            On a duplicate parameter or a negative limit.
        """
        ordered: dict[str, StandardEntry] = {}
        for entry in entries:
            if entry.parameter in ordered:
                raise ValueError(f"Duplicate standard entry for parameter {entry.parameter!r}")
            for source, limit in entry.thresholds.items():
                if limit < 0:
                    raise ValueError(f"Negative limit for {entry.parameter!r} from {source!r}: {limit}")
                if limit == 0:
                    logger.warning("Zero limit for %r from %r; this source will be skipped", entry.parameter, source)
            ordered[entry.parameter] = entry

        self._by_parameter = MappingProxyType(ordered)

    def lookup(self, parameter: str) -> Optional[StandardEntry]:
        """
        Retrieve the standard entry for a parameter.

        Parameters
        ----------
        parameter
            Parameter name, matched exactly.

        Returns
        -------
        StandardEntry or None
            The entry, or None if the parameter has no standards.
        """
        return self._by_parameter.get(parameter)

    def __contains__(self, parameter: object) -> bool:
        return parameter in self._by_parameter

    def __len__(self) -> int:
        return len(self._by_parameter)

    def __repr__(self) -> str:
        return f"StandardsCatalog({len(self)} parameters)"

    def entries(self) -> List[StandardEntry]:
        """Return all entries in table order."""
        return list(self._by_parameter.values())

    def parameters(self) -> List[str]:
        """Return all parameter names in table order."""
        return list(self._by_parameter)

    def by_type(self, measurement_type: MeasurementType) -> List[StandardEntry]:
        """Return the entries of one physical category."""
        return [e for e in self._by_parameter.values() if e.measurement_type == measurement_type]

    def types(self) -> List[MeasurementType]:
        """Return the categories present, in first-seen order."""
        seen: List[MeasurementType] = []
        for e in self._by_parameter.values():
            if e.measurement_type not in seen:
                seen.append(e.measurement_type)
        return seen

    def sources(self) -> List[str]:
        """Return every standard-source name, in first-seen order."""
        seen: List[str] = []
        for e in self._by_parameter.values():
            for source in e.thresholds:
                if source not in seen:
                    seen.append(source)
        return seen
