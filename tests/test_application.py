"""End-to-end tests of a wired session."""
import logging
import time

import pytest
from PySide6.QtCore import QCoreApplication

from becidashboard import __main__ as entry
from becidashboard.app.application import create_session
from becidashboard.config import DashboardConfig
from becidashboard.logging_config import setup_logging
from becidashboard.model.io import MemorySessionStorage
from becidashboard.surface import RecordingSurface

from conftest import METADATA, RECORDS


def wait_for(condition, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not condition() and time.monotonic() < deadline:
        QCoreApplication.processEvents()
        time.sleep(0.01)
    return condition()


def test_session_loads_organizations_in_background():
    surface = RecordingSurface(METADATA)
    session = create_session(DashboardConfig(), surface, MemorySessionStorage())
    session.controller.start()
    session.controller.select_theme("governance")

    session.load_organizations(lambda: RECORDS)
    session.fetcher.wait_all()
    assert wait_for(lambda: session.controller.composer is not None)

    session.controller.on_control_change("speciesFilter", ["Salmon"])
    assert surface.predicates["rfmo"] == "RFMO IN ('OrgA', 'OrgC')"
    assert surface.options["organizationFilter"] == {"OrgA", "OrgC"}


def test_sessions_are_isolated():
    a = create_session(DashboardConfig(), RecordingSurface(METADATA), MemorySessionStorage())
    b = create_session(DashboardConfig(), RecordingSurface(METADATA), MemorySessionStorage())
    a.controller.start()
    b.controller.start()
    a.controller.select_theme("governance")
    assert b.controller.state.theme_id == "orientation"
    assert b.persistence.restore().active_theme_id == "orientation"


def test_entry_point(tmp_path):
    log_file = tmp_path / "run.log"
    try:
        assert entry.main(["--theme", "governance", "--log-file", str(log_file)]) == 0
        assert entry.main(["--theme", "deep-space"]) == 1
    finally:
        logger = logging.getLogger("becidashboard")
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)
    text = log_file.read_text(encoding="utf-8")
    assert "Visible layers: ['eez', 'rfmo']" in text
    assert "Management Jurisdictions (governance / None)" in text
    assert "Active layer controls: ['EEZ boundaries', 'RFMO areas']" in text


def test_setup_logging_accepts_level_names(tmp_path):
    logger = setup_logging("debug", str(tmp_path / "debug.log"))
    try:
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 2
        setup_logging(logging.WARNING)
        assert len(logger.handlers) == 1
        with pytest.raises(ValueError):
            setup_logging("chatty")
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)
