"""
Entity Registry
===============
Static description of every layer, panel, control and theme the dashboard
knows about. Built once at startup and read-only afterwards.

Layers are tagged at registration time as either ``TimeAwareLayer`` (with a
role that drives the step heuristic) or ``StaticLayer``, so the transition
logic never has to probe a layer object for optional time information.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Iterable, Mapping, Optional, Union

from becidashboard.model.errors import UnknownThemeError


# ------------------------------------------------------------------------------
# Enums
# ------------------------------------------------------------------------------
class LayerRole(StrEnum):
    """Temporal cadence of a layer's data."""
    ANNUAL = "annual"
    MONTHLY = "monthly"
    DAILY = "daily"
    STATIC = "static"


class PanelId(StrEnum):
    LAYERS = "layerPanel"
    TIME = "timePanel"
    FILTERS = "filterPanel"
    LEGEND = "legendPanel"


class ControlKind(StrEnum):
    CHECKBOX = "checkbox"
    RADIO = "radio"
    MULTISELECT = "multiselect"


class VisibilityRule(StrEnum):
    """How a theme treats one layer."""
    SHOWN = "shown"            # always visible while the theme is active
    HIDDEN = "hidden"          # never visible while the theme is active
    BY_CONTROL = "by_control"  # visible when its radio/checkbox says so


# ------------------------------------------------------------------------------
# Layers
# ------------------------------------------------------------------------------
@dataclass(frozen=True)
class TimeAwareLayer:
    role: LayerRole


@dataclass(frozen=True)
class StaticLayer:
    role: LayerRole = LayerRole.STATIC


LayerKind = Union[TimeAwareLayer, StaticLayer]


@dataclass(frozen=True)
class LayerSpec:
    id: str
    title: str
    kind: LayerKind = field(default_factory=StaticLayer)
    # Exclusive group name, None for independent overlays
    group: Optional[str] = None
    # Portal item backing the layer (opaque to the controller)
    item_id: Optional[str] = None
    # Attribute holding the organization id, for layers narrowed by filters
    org_field: Optional[str] = None

    @property
    def is_time_aware(self) -> bool:
        return isinstance(self.kind, TimeAwareLayer)

    @property
    def role(self) -> LayerRole:
        return self.kind.role


@dataclass(frozen=True)
class ControlSpec:
    """
    A UI control. Radios and checkboxes carry the id of the layer they drive;
    multiselects carry the entity kind they filter on.
    """
    id: str
    kind: ControlKind
    layer: Optional[str] = None
    group: Optional[str] = None
    entity_kind: Optional[str] = None
    label: str = ""
    default: object = None

    def default_value(self) -> object:
        if self.kind == ControlKind.MULTISELECT:
            return frozenset(self.default or ())
        return bool(self.default)


# ------------------------------------------------------------------------------
# Themes
# ------------------------------------------------------------------------------
@dataclass(frozen=True)
class Theme:
    id: str
    title: str
    visible_panels: frozenset[PanelId] = frozenset()
    time_aware: bool = False
    layer_policy: Mapping[str, VisibilityRule] = field(default_factory=dict)
    # Layer bound to the time selector when no exclusive-group member is selected
    default_layer: Optional[str] = None
    content: str = ""
    sub_themes: tuple["Theme", ...] = ()
    default_sub_theme: Optional[str] = None

    def rule_for(self, layer_id: str) -> VisibilityRule:
        return self.layer_policy.get(layer_id, VisibilityRule.HIDDEN)

    def sub_theme(self, sub_id: str) -> "Theme":
        for sub in self.sub_themes:
            if sub.id == sub_id:
                return sub
        raise UnknownThemeError(sub_id, parent_id=self.id)


class EntityRegistry:
    """Lookup tables for layers, controls and themes."""

    def __init__(self) -> None:
        self._layers: dict[str, LayerSpec] = {}
        self._controls: dict[str, ControlSpec] = {}
        self._themes: dict[str, Theme] = {}
        self._default_theme: Optional[str] = None

    # --- registration ---
    def register_layer(self, spec: LayerSpec) -> LayerSpec:
        if spec.id in self._layers:
            raise ValueError(f"Layer '{spec.id}' is already registered")
        self._layers[spec.id] = spec
        return spec

    def register_control(self, spec: ControlSpec) -> ControlSpec:
        if spec.id in self._controls:
            raise ValueError(f"Control '{spec.id}' is already registered")
        if spec.kind in (ControlKind.CHECKBOX, ControlKind.RADIO):
            if spec.layer not in self._layers:
                raise ValueError(f"Control '{spec.id}' drives unknown layer '{spec.layer}'")
        if spec.kind == ControlKind.RADIO:
            layer_group = self._layers[spec.layer].group
            if not layer_group or layer_group != spec.group:
                raise ValueError(f"Radio '{spec.id}' must belong to the group of layer '{spec.layer}'")
        if spec.kind == ControlKind.MULTISELECT and not spec.entity_kind:
            raise ValueError(f"Multiselect '{spec.id}' must name an entity kind")
        self._controls[spec.id] = spec
        return spec

    def register_theme(self, theme: Theme, default: bool = False) -> Theme:
        if theme.id in self._themes:
            raise ValueError(f"Theme '{theme.id}' is already registered")
        for t in (theme, *theme.sub_themes):
            referenced = [*t.layer_policy, *([t.default_layer] if t.default_layer else [])]
            unknown = [lid for lid in referenced if lid not in self._layers]
            if unknown:
                raise ValueError(f"Theme '{t.id}' references unknown layers: {unknown}")
        if theme.default_sub_theme:
            theme.sub_theme(theme.default_sub_theme)
        self._themes[theme.id] = theme
        if default or self._default_theme is None:
            self._default_theme = theme.id
        return theme

    # --- layers ---
    def layer(self, layer_id: str) -> LayerSpec:
        return self._layers[layer_id]

    def has_layer(self, layer_id: str) -> bool:
        return layer_id in self._layers

    def layers(self) -> list[LayerSpec]:
        return list(self._layers.values())

    def group_members(self, group: str) -> list[LayerSpec]:
        return [spec for spec in self._layers.values() if spec.group == group]

    def exclusive_groups(self) -> list[str]:
        groups: list[str] = []
        for spec in self._layers.values():
            if spec.group and spec.group not in groups:
                groups.append(spec.group)
        return groups

    def org_scoped_layers(self) -> list[LayerSpec]:
        return [spec for spec in self._layers.values() if spec.org_field]

    # --- controls ---
    def control(self, control_id: str) -> ControlSpec:
        return self._controls[control_id]

    def has_control(self, control_id: str) -> bool:
        return control_id in self._controls

    def controls(self) -> list[ControlSpec]:
        return list(self._controls.values())

    def controls_of_kind(self, kind: ControlKind) -> list[ControlSpec]:
        return [c for c in self._controls.values() if c.kind == kind]

    def control_for_layer(self, layer_id: str) -> Optional[ControlSpec]:
        for c in self._controls.values():
            if c.layer == layer_id:
                return c
        return None

    # --- themes ---
    @property
    def default_theme_id(self) -> str:
        if self._default_theme is None:
            raise UnknownThemeError("<none registered>")
        return self._default_theme

    def theme(self, theme_id: str) -> Theme:
        try:
            return self._themes[theme_id]
        except KeyError:
            raise UnknownThemeError(theme_id) from None

    def has_theme(self, theme_id: str) -> bool:
        return theme_id in self._themes

    def themes(self) -> list[Theme]:
        return list(self._themes.values())

    def effective_theme(self, theme_id: str, sub_id: Optional[str] = None) -> Theme:
        """
        Resolve the theme that actually governs the view.
        A sub-theme shares its parent's panels but brings its own layer policy.
        """
        parent = self.theme(theme_id)
        if sub_id is None:
            return parent
        sub = parent.sub_theme(sub_id)
        return replace(
            sub,
            visible_panels=parent.visible_panels | sub.visible_panels,
            default_layer=sub.default_layer or parent.default_layer,
        )

    def panels(self) -> Iterable[PanelId]:
        return list(PanelId)
