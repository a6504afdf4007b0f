"""
Rendering Surface
=================
The controller never draws anything. Everything visual is delegated to a
rendering surface (the web map, a Qt map widget, a test double) through the
small protocol below.

``RecordingSurface`` keeps the last value of every call in memory. It backs
the headless entry point and is handy for inspecting a session.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Callable, Mapping, Optional, Protocol

from becidashboard.model.temporal import TemporalMetadata, TimeExtent

logger = logging.getLogger(__name__)


class RenderingSurface(Protocol):
    def set_layer_visible(self, layer_id: str, visible: bool) -> None: ...

    def set_panel_visible(self, panel_id: str, visible: bool) -> None: ...

    def get_layer_temporal_metadata(self, layer_id: str) -> "Future[Optional[TemporalMetadata]]": ...

    def apply_filter_predicate(self, layer_id: str, where: str) -> None: ...

    def set_control_options(self, control_id: str, options: frozenset[str]) -> None: ...

    def set_time_window(self, window: Optional[TimeExtent]) -> None: ...


class RecordingSurface:
    """In-memory surface. Metadata comes from a static table or a resolver."""

    def __init__(
        self,
        metadata: Optional[Mapping[str, TemporalMetadata]] = None,
        resolver: Optional[Callable[[str], "Future[Optional[TemporalMetadata]]"]] = None,
    ) -> None:
        self.metadata = dict(metadata or {})
        self.resolver = resolver
        self.layers: dict[str, bool] = {}
        self.panels: dict[str, bool] = {}
        self.predicates: dict[str, str] = {}
        self.options: dict[str, frozenset[str]] = {}
        self.time_window: Optional[TimeExtent] = None
        self.metadata_requests: list[str] = []

    def set_layer_visible(self, layer_id: str, visible: bool) -> None:
        self.layers[layer_id] = visible

    def set_panel_visible(self, panel_id: str, visible: bool) -> None:
        self.panels[str(panel_id)] = visible

    def get_layer_temporal_metadata(self, layer_id: str) -> "Future[Optional[TemporalMetadata]]":
        self.metadata_requests.append(layer_id)
        if self.resolver is not None:
            return self.resolver(layer_id)
        future: Future[Optional[TemporalMetadata]] = Future()
        future.set_result(self.metadata.get(layer_id))
        return future

    def apply_filter_predicate(self, layer_id: str, where: str) -> None:
        logger.debug(f"Filter on '{layer_id}': {where}")
        self.predicates[layer_id] = where

    def set_control_options(self, control_id: str, options: frozenset[str]) -> None:
        self.options[control_id] = options

    def set_time_window(self, window: Optional[TimeExtent]) -> None:
        self.time_window = window

    def visible_layers(self) -> list[str]:
        return [lid for lid, visible in self.layers.items() if visible]
