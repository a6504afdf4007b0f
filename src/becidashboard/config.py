"""
Configuration & Path Management
===============================
This module serves as the central registry for file paths and runtime
configuration of the dashboard.

Why is this file needed?
------------------------
1. Abstraction: Portal item ids, the API key and the map extent live in one
   JSON file instead of being scattered through the catalogue.
2. Deployment: It handles the logic required by PyInstaller (sys._MEIPASS) to
   find assets when the app is frozen into an executable.
3. Secrets: The API key is read from the environment (``BECI_API_KEY``) and
   never needs to be committed.

Exports:
    ASSETS_PATH (str): Absolute path to the assets directory.
    DEFAULT_CONFIG_PATH (str): Absolute path to the bundled configuration.
    DashboardConfig: Parsed configuration.
    load_config: Read configuration from disk with fallbacks.
"""
import json
import logging
import os
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from becidashboard.model.io import STORAGE_KEY
from becidashboard.model.tokenizer import DEFAULT_DELIMITERS

logger = logging.getLogger(__name__)

CONFIG_ENV = "BECI_CONFIG"
API_KEY_ENV = "BECI_API_KEY"


def get_resource_path(relative_path: str) -> str:
    """
    Get absolute path to resource, works for dev and for PyInstaller.
    """
    if hasattr(sys, '_MEIPASS'):
        base_path: str = getattr(sys, '_MEIPASS')
        return os.path.join(base_path, relative_path)

    # config.py is in src/becidashboard/
    project_root: Path = Path(__file__).parent.parent.parent
    return os.path.join(str(project_root), relative_path)


ASSETS_PATH: str = get_resource_path("assets")
DEFAULT_CONFIG_PATH: str = os.path.join(ASSETS_PATH, "dashboard_config.json")


@dataclass(frozen=True)
class BoundingBox:
    xmin: float = -256.921871
    ymin: float = -15.388022
    xmax: float = -100.828121
    ymax: float = 79.534085


@dataclass(frozen=True)
class DashboardConfig:
    api_key: str = ""
    spatial_reference: Optional[int] = None
    basemap_url: Optional[str] = None
    bbox: BoundingBox = field(default_factory=BoundingBox)
    # logical layer id -> portal item id
    items: dict[str, str] = field(default_factory=dict)
    storage_key: str = STORAGE_KEY
    delimiters: str = DEFAULT_DELIMITERS
    # organizations dataset: organization field and entity kind -> field
    org_field: str = "RFMO"
    entity_fields: dict[str, str] = field(default_factory=lambda: {
        "species": "Species",
        "member": "Members",
    })

    @classmethod
    def from_dict(cls, data: dict) -> "DashboardConfig":
        defaults = cls()
        bbox = data.get("bbox")
        return cls(
            api_key=str(data.get("apiKey", "")),
            spatial_reference=(data.get("spatialReference") or {}).get("wkid"),
            basemap_url=data.get("basemapUrl"),
            bbox=BoundingBox(**bbox) if bbox else defaults.bbox,
            items={str(k): str(v) for k, v in (data.get("items") or {}).items()},
            storage_key=data.get("storageKey", defaults.storage_key),
            delimiters=data.get("delimiters", defaults.delimiters),
            org_field=data.get("orgField", defaults.org_field),
            entity_fields=dict(data.get("entityFields") or defaults.entity_fields),
        )

    def item_id(self, layer_id: str) -> Optional[str]:
        return self.items.get(layer_id)


def load_config(path: Optional[str] = None) -> DashboardConfig:
    """
    Load configuration from ``path``, else from $BECI_CONFIG, else from the
    bundled assets. Unreadable files fall back to defaults with a warning.
    """
    path = path or os.environ.get(CONFIG_ENV) or DEFAULT_CONFIG_PATH
    config = DashboardConfig()
    try:
        with open(path, "r", encoding="utf-8") as f:
            config = DashboardConfig.from_dict(json.load(f))
        logger.info(f"Configuration loaded from: {path}")
    except FileNotFoundError:
        logger.warning(f"Configuration not found at {path}; using defaults.")
    except (ValueError, TypeError, AttributeError) as e:
        logger.warning(f"Invalid configuration in {path}: {e}; using defaults.")

    api_key = os.environ.get(API_KEY_ENV)
    if api_key:
        config = replace(config, api_key=api_key)

    if config.spatial_reference and not config.basemap_url:
        logger.warning("A custom spatial reference was given without a basemap URL.")
    if config.basemap_url and not config.spatial_reference:
        logger.warning("A custom basemap URL was given without a spatial reference.")
    return config
