"""Shared fixtures: Qt core application, catalogue, metadata and fake surfaces."""
from concurrent.futures import Future
from datetime import datetime

import pytest
from PySide6.QtCore import QCoreApplication

from becidashboard.app.state import EventBus
from becidashboard.controller.view_state import ViewStateController
from becidashboard.model.catalog import build_default_registry
from becidashboard.model.filters import EntityIndex
from becidashboard.model.io import MemorySessionStorage, SessionPersistence
from becidashboard.model.temporal import StepInterval, TemporalMetadata, TimeExtent, TimeUnit
from becidashboard.surface import RecordingSurface


@pytest.fixture(scope="session", autouse=True)
def qapp():
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app


METADATA = {
    "sstMonthly": TemporalMetadata(TimeExtent(datetime(2000, 1, 1), datetime(2020, 12, 1))),
    "sstAnnual": TemporalMetadata(TimeExtent(datetime(1982, 1, 1), datetime(2023, 1, 1))),
    "chlMonthly": TemporalMetadata(TimeExtent(datetime(2003, 1, 1), datetime(2022, 6, 1))),
    "chlAnnual": TemporalMetadata(
        TimeExtent(datetime(1998, 1, 1), datetime(2021, 1, 1)),
        step=StepInterval(TimeUnit.YEARS, 5),
    ),
    "mhwMonthly": TemporalMetadata(TimeExtent(datetime(2014, 1, 1), datetime(2016, 12, 1))),
}

RECORDS = [
    {"RFMO": "OrgA", "Species": "Salmon, Tuna (Albacore, Skipjack)", "Members": "Canada, USA"},
    {"RFMO": "OrgB", "Species": "Tuna (Albacore, Skipjack); Pollock", "Members": "Japan, Korea"},
    {"RFMO": "OrgC", "Species": "Salmon", "Members": "Russia, Japan"},
    {"RFMO": "OrgD", "Members": "China"},
]

ORG_FIELD = "RFMO"
KIND_FIELDS = {"species": "Species", "member": "Members"}
CRITERIA = {
    "speciesFilter": "species",
    "memberFilter": "member",
    "organizationFilter": "organization",
}


class ManualSurface(RecordingSurface):
    """Surface whose metadata futures are resolved by the test."""

    def __init__(self):
        super().__init__(resolver=self._new_future)
        self.pending: dict[str, list[Future]] = {}

    def _new_future(self, layer_id):
        future = Future()
        self.pending.setdefault(layer_id, []).append(future)
        return future

    def resolve(self, layer_id, metadata="default", index=-1):
        if metadata == "default":
            metadata = METADATA[layer_id]
        self.pending[layer_id][index].set_result(metadata)

    def fail(self, layer_id, error, index=-1):
        self.pending[layer_id][index].set_exception(error)


def done_future(value):
    future = Future()
    future.set_result(value)
    return future


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def index():
    return EntityIndex.from_records(RECORDS, ORG_FIELD, KIND_FIELDS)


@pytest.fixture
def surface():
    return RecordingSurface(metadata=METADATA)


@pytest.fixture
def storage():
    return MemorySessionStorage()


@pytest.fixture
def persistence(registry, storage):
    return SessionPersistence(registry, storage)


@pytest.fixture
def controller(registry, surface, persistence):
    ctrl = ViewStateController(registry, surface, EventBus(), persistence)
    ctrl.start()
    return ctrl
