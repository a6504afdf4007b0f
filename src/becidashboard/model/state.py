"""
Application State (Data Model)
==============================
This module defines the reconcilable state of the dashboard and the pure
transition functions that move it from one consistent state to the next.

Why is this file needed?
------------------------
1. State Management: ``AppState`` holds the active theme, sub-theme and every
   control value in one immutable place. There is no ambient global state.
2. Transitions: ``select_theme``, ``select_sub_theme`` and ``apply_control``
   are reducers; they return a new state and never touch the rendering surface.
3. Derivation: layer and panel visibility, and the layer the time selector
   should follow, are computed from the state rather than stored.

Classes:
    ControlState: One control's kind, value and (for multiselects) options.
    AppState: The main container class.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
from typing import Mapping, Optional

from becidashboard.model.filters import FilterCriterion
from becidashboard.model.registry import (
    ControlKind, EntityRegistry, PanelId, VisibilityRule,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ControlState:
    id: str
    kind: ControlKind
    # bool for checkbox/radio, frozenset[str] for multiselect
    value: object
    # Allowed options of a multiselect; None until an entity index is loaded
    options: Optional[frozenset[str]] = None


@dataclass(frozen=True)
class AppState:
    theme_id: str
    sub_theme_id: Optional[str] = None
    controls: Mapping[str, ControlState] = field(default_factory=dict)

    def value(self, control_id: str) -> object:
        return self.controls[control_id].value

    def selections(self) -> dict[str, frozenset[str]]:
        """Selected values of every multiselect control."""
        return {
            cid: c.value for cid, c in self.controls.items()
            if c.kind == ControlKind.MULTISELECT
        }

    def with_control(self, control: ControlState) -> "AppState":
        controls = dict(self.controls)
        controls[control.id] = control
        return replace(self, controls=controls)


# ------------------------------------------------------------------------------
# Construction
# ------------------------------------------------------------------------------
def initial_state(registry: EntityRegistry) -> AppState:
    """Built-in defaults: the default theme and every control's default value."""
    theme = registry.theme(registry.default_theme_id)
    controls = {
        spec.id: ControlState(spec.id, spec.kind, spec.default_value())
        for spec in registry.controls()
    }
    state = AppState(theme.id, theme.default_sub_theme, controls)
    return normalize_radios(state, registry)


def normalize_radios(state: AppState, registry: EntityRegistry) -> AppState:
    """
    Exactly one selected radio per exclusive group: the first selected one
    wins, and a group with none falls back to its default radio (or its
    first member).
    """
    controls = dict(state.controls)
    radios = registry.controls_of_kind(ControlKind.RADIO)
    seen_groups: set[str] = set()
    for spec in radios:
        current = controls.get(spec.id)
        if current is None or not current.value:
            continue
        if spec.group in seen_groups:
            logger.debug(f"Radio '{spec.id}' deselected: group '{spec.group}' already has a selection")
            controls[spec.id] = replace(current, value=False)
        else:
            seen_groups.add(spec.group)

    for group in dict.fromkeys(spec.group for spec in radios):
        if group in seen_groups:
            continue
        members = [spec for spec in radios if spec.group == group]
        fallback = next((spec for spec in members if spec.default_value()), members[0])
        logger.debug(f"Group '{group}' has no selected radio, selecting '{fallback.id}'")
        controls[fallback.id] = ControlState(fallback.id, fallback.kind, True)
    return replace(state, controls=controls)


# ------------------------------------------------------------------------------
# Transitions
# ------------------------------------------------------------------------------
def select_theme(state: AppState, registry: EntityRegistry, theme_id: str) -> AppState:
    """Switch to a theme (and its default sub-theme). Raises UnknownThemeError."""
    theme = registry.theme(theme_id)
    return replace(state, theme_id=theme.id, sub_theme_id=theme.default_sub_theme)


def select_sub_theme(state: AppState, registry: EntityRegistry, parent_id: str, sub_id: str) -> AppState:
    """Switch to a sub-theme of ``parent_id``. Raises UnknownThemeError."""
    sub = registry.theme(parent_id).sub_theme(sub_id)
    return replace(state, theme_id=parent_id, sub_theme_id=sub.id)


def apply_control(state: AppState, registry: EntityRegistry, control_id: str, value: object) -> AppState:
    """
    Apply one control change. Radios select their layer and deselect the
    group siblings; checkboxes toggle only themselves; multiselects store the
    raw selection (narrowing happens in the filter composer).
    Raises KeyError for unknown controls and TypeError for a multiselect
    value that is not a string or an iterable of strings.
    """
    spec = registry.control(control_id)

    if spec.kind == ControlKind.RADIO:
        if not value:
            # A radio is only deselected by selecting a sibling
            return state
        controls = dict(state.controls)
        for sibling in registry.controls_of_kind(ControlKind.RADIO):
            if sibling.group == spec.group:
                controls[sibling.id] = ControlState(sibling.id, sibling.kind, sibling.id == spec.id)
        return replace(state, controls=controls)

    if spec.kind == ControlKind.CHECKBOX:
        return state.with_control(ControlState(spec.id, spec.kind, bool(value)))

    if isinstance(value, str):
        selection = frozenset([value]) if value else frozenset()
    else:
        try:
            selection = frozenset(value or ())
        except TypeError:
            raise TypeError(f"Multiselect '{spec.id}' expects a string or strings, got {value!r}") from None
        if not all(isinstance(v, str) for v in selection):
            raise TypeError(f"Multiselect '{spec.id}' expects a string or strings, got {value!r}")
    previous = state.controls.get(spec.id)
    options = previous.options if previous else None
    return state.with_control(ControlState(spec.id, spec.kind, selection, options))


def apply_filter_criteria(state: AppState, criteria: Mapping[str, FilterCriterion]) -> AppState:
    """Store the narrowed selections and allowed options of every filter."""
    controls = dict(state.controls)
    for cid, criterion in criteria.items():
        controls[cid] = ControlState(
            cid, ControlKind.MULTISELECT, criterion.selected_values, criterion.allowed_values
        )
    return replace(state, controls=controls)


# ------------------------------------------------------------------------------
# Derivations
# ------------------------------------------------------------------------------
def compute_layer_visibility(state: AppState, registry: EntityRegistry) -> dict[str, bool]:
    """
    Target visibility of every registered layer (total assignment).
    At most one member of each exclusive group is visible.
    """
    theme = registry.effective_theme(state.theme_id, state.sub_theme_id)
    visible: dict[str, bool] = {}
    for layer in registry.layers():
        rule = theme.rule_for(layer.id)
        if rule == VisibilityRule.SHOWN:
            visible[layer.id] = True
        elif rule == VisibilityRule.BY_CONTROL:
            control = registry.control_for_layer(layer.id)
            current = state.controls.get(control.id) if control else None
            visible[layer.id] = bool(current and current.value)
        else:
            visible[layer.id] = False

    for group in registry.exclusive_groups():
        members = [m.id for m in registry.group_members(group) if visible[m.id]]
        if len(members) <= 1:
            continue
        selected = [m for m in members if _radio_selected(state, registry, m)]
        keep = selected[0] if selected else members[0]
        for m in members:
            visible[m] = m == keep
    return visible


def _radio_selected(state: AppState, registry: EntityRegistry, layer_id: str) -> bool:
    control = registry.control_for_layer(layer_id)
    if control is None or control.kind != ControlKind.RADIO:
        return False
    current = state.controls.get(control.id)
    return bool(current and current.value)


def compute_panel_visibility(state: AppState, registry: EntityRegistry) -> dict[PanelId, bool]:
    theme = registry.effective_theme(state.theme_id, state.sub_theme_id)
    return {panel: panel in theme.visible_panels for panel in registry.panels()}


def active_time_layer(
    state: AppState,
    registry: EntityRegistry,
    visibility: Optional[Mapping[str, bool]] = None,
) -> Optional[str]:
    """
    The layer the shared time selector should follow: the visible time-aware
    member of an exclusive group, else the theme's default layer if visible.
    """
    theme = registry.effective_theme(state.theme_id, state.sub_theme_id)
    if not theme.time_aware:
        return None
    if visibility is None:
        visibility = compute_layer_visibility(state, registry)

    for group in registry.exclusive_groups():
        for member in registry.group_members(group):
            if member.is_time_aware and visibility.get(member.id):
                return member.id

    default = theme.default_layer
    if default and visibility.get(default) and registry.layer(default).is_time_aware:
        return default
    return None

