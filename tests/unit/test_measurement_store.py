"""
Unit tests for ecomoni.core.state.measurement_store.MeasurementLog and
ecomoni.core.state.alert_cache.DerivedAlertCache.

These tests cover:
- append-only ordering and the version counter
- duplicate id rejection (append and replace_all)
- snapshot immutability
- cache hits only for the version a derivation was computed at
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from ecomoni.core.state.alert_cache import DerivedAlertCache
from ecomoni.core.state.measurement_store import MeasurementLog
from ecomoni.domain.errors import DuplicateMeasurement
from ecomoni.domain.models import Alert, Measurement, Severity

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _mk_measurement(mid: str, value: float = 1.0) -> Measurement:
    """Create a Measurement."""
    return Measurement(id=mid, parameter="SO2", value=value, unit="u", latitude=0.0, longitude=0.0, timestamp=T0)


def _mk_alert(mid: str) -> Alert:
    """Create an Alert."""
    return Alert(
        measurement_id=mid, parameter="SO2", value=50.0, unit="u", latitude=0.0, longitude=0.0,
        timestamp=T0, source="WHO", limit=20.0, ratio=2.5, severity=Severity.CRITICAL,
    )


def test_append_keeps_order_and_bumps_version() -> None:
    """Each append increments the version."""
    log = MeasurementLog()
    log.append(_mk_measurement("a"))
    log.append(_mk_measurement("b"))

    assert [m.id for m in log.snapshot()] == ["a", "b"]
    assert log.version == 2
    assert len(log) == 2


def test_append_rejects_duplicate_id() -> None:
    """A second measurement with the same id is refused and nothing changes."""
    log = MeasurementLog()
    log.append(_mk_measurement("a"))

    with pytest.raises(DuplicateMeasurement) as exc:
        log.append(_mk_measurement("a", value=2.0))

    assert exc.value.measurement_id == "a"
    assert log.version == 1
    assert log.get("a").value == 1.0


def test_replace_all_swaps_content_atomically() -> None:
    """replace_all replaces everything, or nothing on duplicates."""
    log = MeasurementLog()
    log.append(_mk_measurement("a"))

    log.replace_all([_mk_measurement("x"), _mk_measurement("y")])
    assert [m.id for m in log.snapshot()] == ["x", "y"]
    assert log.get("a") is None
    assert log.version == 2

    with pytest.raises(DuplicateMeasurement):
        log.replace_all([_mk_measurement("z"), _mk_measurement("z")])
    assert [m.id for m in log.snapshot()] == ["x", "y"]
    assert log.version == 2


def test_snapshot_is_an_immutable_copy() -> None:
    """Later writes do not show up in an earlier snapshot."""
    log = MeasurementLog()
    log.append(_mk_measurement("a"))
    snap = log.snapshot()

    log.append(_mk_measurement("b"))

    assert isinstance(snap, tuple)
    assert len(snap) == 1


def test_cache_hits_only_matching_version() -> None:
    """A derivation is served only for the version it was computed at."""
    cache = DerivedAlertCache()
    assert cache.get(0) is None

    cache.put(3, [_mk_alert("a")])

    assert cache.get(3) == [_mk_alert("a")]
    assert cache.get(4) is None
    assert cache.version == 3


def test_cache_returns_copies_and_invalidates() -> None:
    """Callers cannot mutate the cached set; invalidate drops it."""
    cache = DerivedAlertCache()
    cache.put(1, [_mk_alert("a")])

    got = cache.get(1)
    got.clear()
    assert cache.get(1) == [_mk_alert("a")]

    cache.invalidate()
    assert cache.get(1) is None
    assert cache.version is None
