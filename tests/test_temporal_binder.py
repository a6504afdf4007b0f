"""Tests for the temporal binder: extent reset, step fallback and stale binds."""
import logging
from datetime import datetime

import pytest

from becidashboard.app.state import EventBus
from becidashboard.controller.temporal_binder import TemporalBinder
from becidashboard.model.registry import LayerRole, LayerSpec, TimeAwareLayer
from becidashboard.model.temporal import (
    ROLE_STEP_DEFAULTS, UNBOUND, StepInterval, TemporalMetadata, TimeExtent, TimeUnit, resolve_step,
)

from conftest import METADATA, ManualSurface


@pytest.fixture
def manual():
    return ManualSurface()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def binder(registry, manual, bus):
    return TemporalBinder(registry, manual, bus)


# ── Model ─────────────────────────────────────────────────────────

class TestTimeExtent:

    def test_rejects_inverted_extent(self):
        with pytest.raises(ValueError):
            TimeExtent(datetime(2020, 1, 1), datetime(2019, 1, 1))

    def test_clamp(self):
        full = TimeExtent(datetime(2000, 1, 1), datetime(2010, 1, 1))
        inside = full.clamp(TimeExtent(datetime(1990, 1, 1), datetime(2005, 1, 1)))
        assert inside == TimeExtent(datetime(2000, 1, 1), datetime(2005, 1, 1))
        assert full.contains(inside)
        assert full.clamp(TimeExtent(datetime(2011, 1, 1), datetime(2012, 1, 1))) is None


class TestStepResolution:

    @pytest.mark.parametrize("role, expected", [
        (LayerRole.ANNUAL, StepInterval(TimeUnit.YEARS, 1)),
        (LayerRole.MONTHLY, StepInterval(TimeUnit.MONTHS, 1)),
        (LayerRole.DAILY, StepInterval(TimeUnit.DAYS, 1)),
    ])
    def test_role_fallback(self, role, expected):
        layer = LayerSpec("x", "X", TimeAwareLayer(role))
        assert resolve_step(layer, None) == expected
        assert ROLE_STEP_DEFAULTS[role] == expected

    def test_declared_step_wins(self):
        layer = LayerSpec("x", "X", TimeAwareLayer(LayerRole.MONTHLY))
        declared = StepInterval(TimeUnit.DAYS, 8)
        assert resolve_step(layer, declared) == declared

    def test_step_must_be_positive(self):
        with pytest.raises(ValueError):
            StepInterval(TimeUnit.MONTHS, 0)


# ── Binder ────────────────────────────────────────────────────────

class TestBindTo:

    def test_bind_sets_extent_step_and_full_window(self, binder, manual):
        binder.bind_to("sstMonthly")
        assert binder.binding.is_pending
        manual.resolve("sstMonthly")

        extent = METADATA["sstMonthly"].full_extent
        assert binder.binding.active_layer == "sstMonthly"
        assert binder.binding.full_extent == extent
        assert binder.binding.window == extent
        assert binder.binding.step == StepInterval(TimeUnit.MONTHS, 1)
        assert manual.time_window == extent

    def test_declared_step_is_kept(self, binder, manual):
        binder.bind_to("chlAnnual")
        manual.resolve("chlAnnual")
        assert binder.binding.step == StepInterval(TimeUnit.YEARS, 5)

    def test_rebinding_resets_window_to_new_extent(self, binder, manual):
        binder.bind_to("sstAnnual")
        manual.resolve("sstAnnual")
        binder.set_window((datetime(1990, 1, 1), datetime(1995, 1, 1)))

        binder.bind_to("sstMonthly")
        assert manual.time_window is None
        manual.resolve("sstMonthly")
        assert binder.binding.window == METADATA["sstMonthly"].full_extent
        assert manual.time_window == METADATA["sstMonthly"].full_extent

    def test_extent_reset_for_every_pair(self, binder, manual):
        layers = list(METADATA)
        for a in layers:
            for b in layers:
                if METADATA[a].full_extent == METADATA[b].full_extent:
                    continue
                binder.bind_to(a)
                manual.resolve(a)
                binder.bind_to(b)
                manual.resolve(b)
                assert binder.binding.window == METADATA[b].full_extent

    def test_bind_none_clears(self, binder, manual, bus):
        events = []
        bus.binding_changed.connect(events.append)
        binder.bind_to("sstAnnual")
        manual.resolve("sstAnnual")

        binder.bind_to(None)
        assert binder.binding == UNBOUND
        assert manual.time_window is None
        binder.bind_to(None)
        assert binder.binding == UNBOUND
        assert events[-1] == UNBOUND

    def test_static_layer_is_not_bound(self, binder, manual):
        binder.bind_to("eez")
        assert binder.binding == UNBOUND
        assert manual.metadata_requests == []


class TestStaleBinds:

    def test_later_bind_wins_when_earlier_resolves_last(self, binder, manual):
        binder.bind_to("sstAnnual")
        binder.bind_to("sstMonthly")
        manual.resolve("sstMonthly")
        manual.resolve("sstAnnual")
        assert binder.binding.active_layer == "sstMonthly"
        assert binder.binding.window == METADATA["sstMonthly"].full_extent

    def test_later_bind_wins_when_earlier_resolves_first(self, binder, manual):
        binder.bind_to("sstAnnual")
        binder.bind_to("sstMonthly")
        manual.resolve("sstAnnual")
        assert binder.binding.active_layer == "sstMonthly"
        assert binder.binding.is_pending
        manual.resolve("sstMonthly")
        assert binder.binding.window == METADATA["sstMonthly"].full_extent

    def test_same_layer_rebound_uses_latest_request(self, binder, manual):
        binder.bind_to("sstAnnual")
        binder.bind_to("sstAnnual")
        other = TemporalMetadata(TimeExtent(datetime(2000, 1, 1), datetime(2001, 1, 1)))
        manual.resolve("sstAnnual", index=1)
        manual.resolve("sstAnnual", metadata=other, index=0)
        assert binder.binding.full_extent == METADATA["sstAnnual"].full_extent

    def test_clear_discards_pending_bind(self, binder, manual):
        binder.bind_to("sstAnnual")
        binder.bind_to(None)
        manual.resolve("sstAnnual")
        assert binder.binding == UNBOUND
        assert manual.time_window is None

    def test_generation_increases(self, binder):
        first = binder.bind_to(None)
        second = binder.bind_to("sstAnnual")
        assert second > first == 1


class TestMetadataUnavailable:

    def test_none_leaves_binder_unbound(self, binder, manual, caplog):
        binder.bind_to("sstAnnual")
        manual.resolve("sstAnnual", metadata=None)
        assert binder.binding == UNBOUND
        assert "unavailable" in caplog.text

    def test_failed_fetch_leaves_binder_unbound(self, binder, manual, caplog):
        binder.bind_to("sstAnnual")
        manual.fail("sstAnnual", ConnectionError("portal down"))
        assert binder.binding == UNBOUND
        assert "portal down" in caplog.text

    def test_stale_failure_is_ignored(self, binder, manual):
        binder.bind_to("sstAnnual")
        binder.bind_to("sstMonthly")
        manual.resolve("sstMonthly")
        manual.fail("sstAnnual", ConnectionError("late"))
        assert binder.binding.active_layer == "sstMonthly"


class TestSetWindow:

    def test_window_is_pushed_without_extent_change(self, binder, manual, bus):
        windows = []
        bus.time_window_changed.connect(windows.append)
        binder.bind_to("sstAnnual")
        manual.resolve("sstAnnual")

        window = TimeExtent(datetime(1990, 1, 1), datetime(2000, 1, 1))
        assert binder.set_window(window) == window
        assert manual.time_window == window
        assert binder.binding.full_extent == METADATA["sstAnnual"].full_extent
        assert windows[-1] == window

    def test_window_is_clamped_to_extent(self, binder, manual):
        binder.bind_to("sstMonthly")
        manual.resolve("sstMonthly")
        clamped = binder.set_window((datetime(1990, 1, 1), datetime(2005, 1, 1)))
        assert clamped == TimeExtent(datetime(2000, 1, 1), datetime(2005, 1, 1))
        assert binder.binding.full_extent.contains(binder.binding.window)

    def test_window_outside_extent_is_ignored(self, binder, manual):
        binder.bind_to("sstMonthly")
        manual.resolve("sstMonthly")
        assert binder.set_window((datetime(1950, 1, 1), datetime(1960, 1, 1))) is None
        assert binder.binding.window == METADATA["sstMonthly"].full_extent

    def test_ignored_while_unbound(self, binder, manual):
        assert binder.set_window((datetime(2000, 1, 1), datetime(2001, 1, 1))) is None
        binder.bind_to("sstAnnual")
        assert binder.set_window((datetime(2000, 1, 1), datetime(2001, 1, 1))) is None
        assert manual.time_window is None

    def test_invalid_window_is_ignored(self, binder, manual, caplog):
        binder.bind_to("sstAnnual")
        manual.resolve("sstAnnual")
        with caplog.at_level(logging.WARNING):
            assert binder.set_window((datetime(2001, 1, 1), datetime(2000, 1, 1))) is None
        assert "invalid time window" in caplog.text
