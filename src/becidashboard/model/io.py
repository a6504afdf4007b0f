"""
Session Persistence
Saves and restores the reconcilable UI state to session-scoped storage.

The snapshot lives under a single namespaced key, JSON encoded. The key name
carries the schema version: a schema change uses a new key, so old snapshots
are simply absent rather than misparsed. Nothing is ever written to a URL.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from becidashboard.model.errors import MalformedSnapshot, UnknownThemeError
from becidashboard.model.registry import ControlKind, EntityRegistry
from becidashboard.model.state import AppState, ControlState
from becidashboard.model.temporal import TemporalBinding

logger = logging.getLogger(__name__)

STORAGE_KEY = "beci.dashboard.state.v1"

_FIELDS = {"activeThemeId", "activeSubThemeId", "controlStates", "activeLayerId"}


class SessionStorage(Protocol):
    """Key/value storage whose lifetime is one browsing session."""
    def get_item(self, key: str) -> Optional[str]: ...
    def set_item(self, key: str, value: str) -> None: ...
    def remove_item(self, key: str) -> None: ...


class MemorySessionStorage:
    """One storage area per dashboard session (window or embedded frame)."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __len__(self) -> int:
        return len(self._items)


@dataclass(frozen=True)
class PersistedState:
    active_theme_id: str
    active_sub_theme_id: Optional[str]
    # (control id, kind, value) in registry order
    control_states: tuple[tuple[str, ControlKind, object], ...]
    active_layer_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        controls = []
        for cid, kind, value in self.control_states:
            if kind == ControlKind.MULTISELECT:
                value = sorted(value)
            controls.append({"id": cid, "kind": str(kind), "value": value})
        return {
            "activeThemeId": self.active_theme_id,
            "activeSubThemeId": self.active_sub_theme_id,
            "controlStates": controls,
            "activeLayerId": self.active_layer_id,
        }

    def to_app_state(self) -> AppState:
        controls = {
            cid: ControlState(cid, kind, value)
            for cid, kind, value in self.control_states
        }
        return AppState(self.active_theme_id, self.active_sub_theme_id, controls)


class SessionPersistence:
    def __init__(self, registry: EntityRegistry, storage: SessionStorage, key: str = STORAGE_KEY) -> None:
        self.registry = registry
        self.storage = storage
        self.key = key

    @staticmethod
    def snapshot(state: AppState, binding: Optional[TemporalBinding] = None) -> Optional[PersistedState]:
        """Pure snapshot of the state. Returns None instead of raising."""
        try:
            controls = tuple(
                (c.id, ControlKind(c.kind), frozenset(c.value) if c.kind == ControlKind.MULTISELECT else bool(c.value))
                for c in state.controls.values()
            )
            return PersistedState(
                active_theme_id=state.theme_id,
                active_sub_theme_id=state.sub_theme_id,
                control_states=controls,
                active_layer_id=binding.active_layer if binding else None,
            )
        except Exception as e:
            logger.warning(f"Could not snapshot state, nothing will be persisted: {e}")
            return None

    def save(self, state: AppState, binding: Optional[TemporalBinding] = None) -> bool:
        snap = self.snapshot(state, binding)
        if snap is None:
            return False
        try:
            self.storage.set_item(self.key, json.dumps(snap.to_dict()))
        except Exception as e:
            logger.warning(f"Could not write session snapshot: {e}")
            return False
        logger.debug(f"Session snapshot written under '{self.key}'.")
        return True

    def restore(self) -> Optional[PersistedState]:
        """The stored snapshot, or None when missing, corrupt or schema-mismatched."""
        try:
            raw = self.storage.get_item(self.key)
        except Exception as e:
            logger.warning(f"Could not read session storage: {e}")
            return None
        if raw is None:
            logger.debug("No session snapshot found.")
            return None
        try:
            return self._parse(raw)
        except MalformedSnapshot as e:
            logger.warning(f"Discarding session snapshot: {e}")
            return None

    def clear(self) -> None:
        self.storage.remove_item(self.key)

    # --- validation ---
    def _parse(self, raw: str) -> PersistedState:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise MalformedSnapshot(f"not valid JSON ({e})") from e
        if not isinstance(data, dict) or set(data) != _FIELDS:
            raise MalformedSnapshot("unexpected top-level structure")

        theme_id = data["activeThemeId"]
        sub_id = data["activeSubThemeId"]
        if not isinstance(theme_id, str) or not (sub_id is None or isinstance(sub_id, str)):
            raise MalformedSnapshot("theme ids must be strings")
        try:
            theme = self.registry.theme(theme_id)
            if sub_id is not None:
                theme.sub_theme(sub_id)
        except UnknownThemeError as e:
            raise MalformedSnapshot(str(e)) from e
        if sub_id is None and theme.sub_themes:
            raise MalformedSnapshot(f"theme '{theme_id}' requires a sub-theme")

        layer_id = data["activeLayerId"]
        if layer_id is not None and (not isinstance(layer_id, str) or not self.registry.has_layer(layer_id)):
            raise MalformedSnapshot(f"unknown active layer {layer_id!r}")

        entries = data["controlStates"]
        if not isinstance(entries, list):
            raise MalformedSnapshot("controlStates must be a list")
        values: dict[str, object] = {}
        for entry in entries:
            cid, value = self._parse_control(entry)
            if cid in values:
                raise MalformedSnapshot(f"duplicate control '{cid}'")
            values[cid] = value

        expected = [spec.id for spec in self.registry.controls()]
        if set(values) != set(expected):
            raise MalformedSnapshot("control set does not match the registry")

        selected_groups: set[str] = set()
        for spec in self.registry.controls_of_kind(ControlKind.RADIO):
            if values[spec.id]:
                if spec.group in selected_groups:
                    raise MalformedSnapshot(f"several radios selected in group '{spec.group}'")
                selected_groups.add(spec.group)

        controls = tuple(
            (cid, self.registry.control(cid).kind, values[cid]) for cid in expected
        )
        return PersistedState(theme_id, sub_id, controls, layer_id)

    def _parse_control(self, entry: Any) -> tuple[str, object]:
        if not isinstance(entry, dict) or set(entry) != {"id", "kind", "value"}:
            raise MalformedSnapshot(f"bad control entry {entry!r}")
        cid = entry["id"]
        if not isinstance(cid, str) or not self.registry.has_control(cid):
            raise MalformedSnapshot(f"unknown control {cid!r}")
        spec = self.registry.control(cid)
        if entry["kind"] != str(spec.kind):
            raise MalformedSnapshot(f"control '{cid}' kind changed to {entry['kind']!r}")

        value = entry["value"]
        if spec.kind == ControlKind.MULTISELECT:
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise MalformedSnapshot(f"control '{cid}' expects a list of strings")
            return cid, frozenset(value)
        if not isinstance(value, bool):
            raise MalformedSnapshot(f"control '{cid}' expects a boolean")
        return cid, value
