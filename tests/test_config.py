"""Tests for configuration loading."""
import json

import pytest

from becidashboard import config as cfg
from becidashboard.config import DashboardConfig, load_config
from becidashboard.model.io import STORAGE_KEY


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv(cfg.CONFIG_ENV, raising=False)
    monkeypatch.delenv(cfg.API_KEY_ENV, raising=False)


def write(tmp_path, data):
    path = tmp_path / "dashboard_config.json"
    path.write_text(json.dumps(data) if not isinstance(data, str) else data, encoding="utf-8")
    return str(path)


def test_missing_file_uses_defaults(tmp_path, caplog):
    config = load_config(str(tmp_path / "absent.json"))
    assert config == DashboardConfig()
    assert config.storage_key == STORAGE_KEY
    assert "using defaults" in caplog.text


def test_bundled_config_loads():
    config = load_config()
    assert config.item_id("sstMonthly")
    assert config.org_field == "RFMO"


def test_values_are_read(tmp_path):
    path = write(tmp_path, {
        "apiKey": "abc",
        "items": {"sstMonthly": "item-1"},
        "orgField": "Org",
        "entityFields": {"species": "Taxa"},
        "bbox": {"xmin": 1, "ymin": 2, "xmax": 3, "ymax": 4},
    })
    config = load_config(path)
    assert config.api_key == "abc"
    assert config.item_id("sstMonthly") == "item-1"
    assert config.item_id("eez") is None
    assert config.org_field == "Org"
    assert config.entity_fields == {"species": "Taxa"}
    assert config.bbox.xmax == 3


def test_env_selects_file_and_key(tmp_path, monkeypatch):
    monkeypatch.setenv(cfg.CONFIG_ENV, write(tmp_path, {"apiKey": "from-file", "orgField": "Org"}))
    monkeypatch.setenv(cfg.API_KEY_ENV, "from-env")
    config = load_config()
    assert config.org_field == "Org"
    assert config.api_key == "from-env"


@pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"bbox": {"left": 0}}'])
def test_invalid_file_uses_defaults(tmp_path, caplog, content):
    assert load_config(write(tmp_path, content)) == DashboardConfig()
    assert "Invalid configuration" in caplog.text


def test_half_custom_projection_warns(tmp_path, caplog):
    load_config(write(tmp_path, {"spatialReference": {"wkid": 3832}}))
    assert "without a basemap URL" in caplog.text
