"""
View State Controller
=====================
Turns user interactions into a reconciled view.

Why is this file needed?
------------------------
1. Routing: It receives theme selections, control changes and time-window
   changes, runs the pure reducers from ``model.state`` and keeps the result.
2. Side effects: After every transition it assigns visibility to EVERY layer
   and panel on the rendering surface (not only the ones that changed),
   reapplies the compound filter predicate, rebinds the time selector and
   writes a session snapshot.
3. Recovery: Unknown themes, unknown controls and failed async loads are
   logged and ignored. Nothing here raises into the UI.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Optional

from PySide6.QtCore import QObject, Signal

from becidashboard.app.state import EventBus
from becidashboard.controller.temporal_binder import TemporalBinder, WindowLike
from becidashboard.model.errors import UnknownThemeError
from becidashboard.model.filters import CompoundPredicate, EntityIndex, FilterComposer, FilterCriterion
from becidashboard.model.io import SessionPersistence
from becidashboard.model.registry import ControlKind, EntityRegistry, PanelId, Theme
from becidashboard.model import state as transitions
from becidashboard.model.state import AppState
from becidashboard.model.temporal import TimeExtent
from becidashboard.surface import RenderingSurface

logger = logging.getLogger(__name__)


class ViewStateController(QObject):
    # (generation, EntityIndex | Exception | None)
    _index_resolved = Signal(int, object)

    def __init__(
        self,
        registry: EntityRegistry,
        surface: RenderingSurface,
        bus: Optional[EventBus] = None,
        persistence: Optional[SessionPersistence] = None,
    ) -> None:
        super().__init__()
        self.registry = registry
        self.surface = surface
        self.bus = bus if bus is not None else EventBus()
        self.persistence = persistence
        self.binder = TemporalBinder(registry, surface, self.bus)

        self.state: AppState = transitions.initial_state(registry)
        self.composer: Optional[FilterComposer] = None
        self.predicate: Optional[CompoundPredicate] = None
        self._index_generation = 0
        # multiselect ids, most recently changed first
        self._filter_recency: list[str] = []

        self._index_resolved.connect(self._install_index)
        self.bus.binding_changed.connect(self._on_binding_changed)

    # --- lifecycle ---
    def start(self) -> AppState:
        """Seed the state from the session snapshot (or defaults) and reconcile once."""
        restored = self.persistence.restore() if self.persistence else None
        if restored is not None:
            self.state = transitions.normalize_radios(restored.to_app_state(), self.registry)
            logger.info(f"Session restored: theme '{self.state.theme_id}', sub-theme '{self.state.sub_theme_id}'.")
        else:
            self.state = transitions.initial_state(self.registry)
            logger.info(f"Starting with default theme '{self.state.theme_id}'.")
        self.state = self._compose(self.state)
        self._reconcile(rebind=True)
        self.bus.theme_changed.emit(self.state.theme_id, self.state.sub_theme_id)
        return self.state

    @property
    def theme(self) -> Theme:
        return self.registry.effective_theme(self.state.theme_id, self.state.sub_theme_id)

    # --- transitions ---
    def select_theme(self, theme_id: str) -> bool:
        try:
            new_state = transitions.select_theme(self.state, self.registry, theme_id)
        except UnknownThemeError as e:
            logger.warning(f"Theme change ignored: {e}")
            return False
        self.state = new_state
        logger.info(f"Theme '{theme_id}' selected.")
        self._reconcile(rebind=True)
        self.bus.theme_changed.emit(self.state.theme_id, self.state.sub_theme_id)
        return True

    def select_sub_theme(self, parent_id: str, sub_id: str) -> bool:
        try:
            new_state = transitions.select_sub_theme(self.state, self.registry, parent_id, sub_id)
        except UnknownThemeError as e:
            logger.warning(f"Sub-theme change ignored: {e}")
            return False
        self.state = new_state
        logger.info(f"Sub-theme '{parent_id}/{sub_id}' selected.")
        self._reconcile(rebind=True)
        self.bus.theme_changed.emit(self.state.theme_id, self.state.sub_theme_id)
        return True

    def on_control_change(self, control_id: str, value: object) -> bool:
        if not self.registry.has_control(control_id):
            logger.warning(f"Control change ignored: unknown control '{control_id}'.")
            return False
        spec = self.registry.control(control_id)
        try:
            new_state = transitions.apply_control(self.state, self.registry, control_id, value)
        except TypeError as e:
            logger.warning(f"Control change ignored: {e}")
            return False
        if spec.kind == ControlKind.MULTISELECT:
            self._filter_recency = [control_id, *(c for c in self._filter_recency if c != control_id)]
            new_state = self._compose(new_state, changed=control_id)
        self.state = new_state
        self._reconcile(rebind=spec.kind == ControlKind.RADIO)
        self.bus.control_changed.emit(control_id, self.state.value(control_id))
        return True

    def on_time_window_changed(self, window: WindowLike) -> Optional[TimeExtent]:
        return self.binder.set_window(window)

    # --- entity index ---
    def load_entity_index(self, future: "Future[EntityIndex]") -> int:
        """Install an entity index once ``future`` resolves. Later loads win."""
        self._index_generation += 1
        generation = self._index_generation

        def done(f: Future, gen: int = generation) -> None:
            try:
                result = f.result()
            except Exception as e:
                result = e
            self._index_resolved.emit(gen, result)

        future.add_done_callback(done)
        return generation

    def _install_index(self, generation: int, result: object) -> None:
        if generation != self._index_generation:
            logger.debug(f"Discarding stale entity index (generation {generation}).")
            return
        if not isinstance(result, EntityIndex):
            logger.warning(f"Entity index unavailable, filters disabled: {result}")
            return
        criteria = {
            c.id: c.entity_kind for c in self.registry.controls_of_kind(ControlKind.MULTISELECT)
        }
        self.composer = FilterComposer(result, criteria)
        self.state = self._compose(self.state)
        self._reconcile(rebind=False)
        self.bus.index_loaded.emit(result)

    # --- reconciliation ---
    def _compose(self, state: AppState, changed: Optional[str] = None) -> AppState:
        if self.composer is None:
            return state
        criteria = self.composer.compose(state.selections(), changed=changed, priority=self._filter_recency)
        return transitions.apply_filter_criteria(state, criteria)

    def _reconcile(self, rebind: bool) -> None:
        visibility = transitions.compute_layer_visibility(self.state, self.registry)
        for layer_id, visible in visibility.items():
            self.surface.set_layer_visible(layer_id, visible)
        for panel, visible in transitions.compute_panel_visibility(self.state, self.registry).items():
            if panel != PanelId.TIME:
                self.surface.set_panel_visible(str(panel), visible)

        self._apply_filters()

        target = transitions.active_time_layer(self.state, self.registry, visibility)
        if rebind or target != self.binder.binding.active_layer:
            self.binder.bind_to(target)
        self._sync_time_panel()

        self._persist()
        self.bus.state_changed.emit(self.state)

    def _apply_filters(self) -> None:
        if self.composer is None:
            return
        criteria = {
            cid: FilterCriterion(cid, kind, self.state.controls[cid].value, self.state.controls[cid].options or frozenset())
            for cid, kind in self.composer.criteria.items()
        }
        self.predicate = self.composer.predicate(criteria)
        for layer in self.registry.org_scoped_layers():
            self.surface.apply_filter_predicate(layer.id, self.predicate.to_where(layer.org_field))
        for cid, criterion in criteria.items():
            self.surface.set_control_options(cid, criterion.allowed_values)

    def _on_binding_changed(self, _binding: object) -> None:
        self._sync_time_panel()
        self._persist()

    def _sync_time_panel(self) -> None:
        # the time selector is only offered while a layer is bound
        declared = PanelId.TIME in self.theme.visible_panels
        self.surface.set_panel_visible(str(PanelId.TIME), declared and self.binder.binding.is_bound)

    def _persist(self) -> None:
        if self.persistence is not None:
            self.persistence.save(self.state, self.binder.binding)
