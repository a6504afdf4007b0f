"""
Temporal Binder
===============
Keeps the one shared time-window selector synchronized with the single
time-aware layer that is currently active.

Metadata retrieval is asynchronous. Every ``bind_to`` call bumps a
generation counter and tags its request with it; a resolution whose
generation is no longer current is discarded (last call wins). Requests are
not cancelled, their results are just ignored.
"""
from __future__ import annotations

import logging
from concurrent.futures import CancelledError, Future
from dataclasses import replace
from typing import Optional, Union

from PySide6.QtCore import QObject, Signal

from becidashboard.app.state import EventBus
from becidashboard.model.errors import MetadataUnavailable
from becidashboard.model.registry import EntityRegistry
from becidashboard.model.temporal import (
    UNBOUND, TemporalBinding, TemporalMetadata, TimeExtent, resolve_step,
)
from becidashboard.surface import RenderingSurface

logger = logging.getLogger(__name__)

WindowLike = Union[TimeExtent, tuple]


class TemporalBinder(QObject):
    # (generation, layer id, TemporalMetadata | None | Exception)
    # Futures may resolve on a worker thread; the signal brings the result
    # back to the thread this object lives in.
    _resolved = Signal(int, str, object)

    def __init__(self, registry: EntityRegistry, surface: RenderingSurface, bus: EventBus) -> None:
        super().__init__()
        self.registry = registry
        self.surface = surface
        self.bus = bus
        self.binding: TemporalBinding = UNBOUND
        self._generation = 0
        self._resolved.connect(self._apply)

    @property
    def generation(self) -> int:
        return self._generation

    def bind_to(self, layer_id: Optional[str]) -> int:
        """
        Bind the selector to ``layer_id`` (or clear it with None).
        Returns the generation id of this bind.
        """
        self._generation += 1
        generation = self._generation

        if layer_id is None:
            if self.binding != UNBOUND:
                logger.debug("Time selector cleared.")
            self._set_binding(UNBOUND)
            self.surface.set_time_window(None)
            return generation

        if not self.registry.layer(layer_id).is_time_aware:
            logger.warning(f"Layer '{layer_id}' is not time-aware; time selector cleared.")
            self._set_binding(UNBOUND)
            self.surface.set_time_window(None)
            return generation

        # Pending: no extent, and no stale window from the previous layer
        self._set_binding(TemporalBinding(active_layer=layer_id))
        self.surface.set_time_window(None)
        logger.debug(f"Binding time selector to '{layer_id}' (generation {generation}).")

        try:
            future = self.surface.get_layer_temporal_metadata(layer_id)
        except Exception as e:
            self._apply(generation, layer_id, e)
            return generation

        future.add_done_callback(
            lambda f, gen=generation, lid=layer_id: self._on_done(gen, lid, f)
        )
        return generation

    def set_window(self, window: WindowLike) -> Optional[TimeExtent]:
        """
        Selector-driven update: push a new window to the surface.
        The window is clamped to the bound layer's full extent.
        """
        if not self.binding.is_bound:
            logger.debug("Time window change ignored: no layer bound.")
            return None
        if not isinstance(window, TimeExtent):
            try:
                window = TimeExtent(*window)
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring invalid time window {window!r}: {e}")
                return None

        clamped = self.binding.full_extent.clamp(window)
        if clamped is None:
            logger.warning(f"Time window {window} lies outside {self.binding.full_extent}; ignored.")
            return None

        self.binding = replace(self.binding, window=clamped)
        self.surface.set_time_window(clamped)
        self.bus.time_window_changed.emit(clamped)
        return clamped

    # --- resolution ---
    def _on_done(self, generation: int, layer_id: str, future: Future) -> None:
        try:
            result = future.result()
        except CancelledError:
            result = None
        except Exception as e:
            result = e
        self._resolved.emit(generation, layer_id, result)

    def _apply(self, generation: int, layer_id: str, result: object) -> None:
        if generation != self._generation:
            logger.debug(
                f"Discarding stale metadata for '{layer_id}' "
                f"(generation {generation}, current {self._generation})."
            )
            return

        if not isinstance(result, TemporalMetadata):
            reason = str(result) if isinstance(result, BaseException) else "no metadata"
            logger.warning(str(MetadataUnavailable(layer_id, reason)))
            self._set_binding(UNBOUND)
            self.surface.set_time_window(None)
            return

        layer = self.registry.layer(layer_id)
        extent = result.full_extent
        step = resolve_step(layer, result.step)
        # Always start from the full extent of the newly bound layer
        self._set_binding(TemporalBinding(layer_id, extent, step, extent))
        self.surface.set_time_window(extent)
        self.bus.time_window_changed.emit(extent)
        logger.info(f"Time selector bound to '{layer_id}': {extent.start} - {extent.end}, step {step}")

    def _set_binding(self, binding: TemporalBinding) -> None:
        changed = binding != self.binding
        self.binding = binding
        if changed:
            self.bus.binding_changed.emit(binding)
