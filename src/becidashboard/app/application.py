"""
Application Initialization
==========================
This module wires the controller together: registry, event bus, rendering
surface, session persistence and background fetcher.

It acts as the dependency-injection root. Hosts (a web bridge, a Qt map
widget, the headless entry point, tests) hand in their own surface and
storage; everything else is built here.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional

from PySide6.QtCore import QCoreApplication

from becidashboard.app.state import EventBus
from becidashboard.config import DashboardConfig, load_config
from becidashboard.controller.view_state import ViewStateController
from becidashboard.controller.workers import BackgroundFetcher
from becidashboard.model.catalog import build_default_registry
from becidashboard.model.filters import EntityIndex
from becidashboard.model.io import MemorySessionStorage, SessionPersistence, SessionStorage
from becidashboard.model.registry import EntityRegistry
from becidashboard.surface import RecordingSurface, RenderingSurface

logger = logging.getLogger(__name__)

ORG_ID = "pices"
APP_ID = "beci-dashboard"


def create_app() -> QCoreApplication:
    """Return the running Qt application, creating a headless one if needed."""
    app = QCoreApplication.instance()
    if app is None:
        QCoreApplication.setOrganizationName(ORG_ID)
        QCoreApplication.setApplicationName(APP_ID)
        app = QCoreApplication([])
    return app


@dataclass
class DashboardSession:
    config: DashboardConfig
    registry: EntityRegistry
    bus: EventBus
    surface: RenderingSurface
    persistence: SessionPersistence
    controller: ViewStateController
    fetcher: BackgroundFetcher

    def load_organizations(self, fetch_records: Callable[[], Iterable[Mapping[str, Any]]]) -> int:
        """Build the entity index off the UI thread and hand it to the controller."""
        cfg = self.config

        def build() -> EntityIndex:
            return EntityIndex.from_records(
                fetch_records(), cfg.org_field, cfg.entity_fields, cfg.delimiters
            )

        return self.controller.load_entity_index(self.fetcher.submit(build))


def create_session(
    config: Optional[DashboardConfig] = None,
    surface: Optional[RenderingSurface] = None,
    storage: Optional[SessionStorage] = None,
) -> DashboardSession:
    """Build one dashboard session. Each session gets its own storage area."""
    config = config if config is not None else load_config()
    registry = build_default_registry(config.items, config.org_field)
    bus = EventBus()
    surface = surface if surface is not None else RecordingSurface()
    persistence = SessionPersistence(
        registry, storage if storage is not None else MemorySessionStorage(), key=config.storage_key
    )
    controller = ViewStateController(registry, surface, bus, persistence)
    logger.debug(f"Session created with {len(registry.layers())} layers and {len(registry.themes())} themes.")
    return DashboardSession(config, registry, bus, surface, persistence, controller, BackgroundFetcher())
