"""BECI catalogue: the layers, controls and themes of the dashboard."""
from __future__ import annotations

from typing import Optional

from becidashboard.model.registry import (
    ControlKind, ControlSpec, EntityRegistry, LayerRole, LayerSpec, PanelId,
    StaticLayer, Theme, TimeAwareLayer, VisibilityRule,
)

OCEAN_CONDITIONS = "ocean-conditions"
EXTREME_EVENTS = "extreme-events"

SHOWN = VisibilityRule.SHOWN
BY_CONTROL = VisibilityRule.BY_CONTROL

DEFAULT_ORG_FIELD = "RFMO"


def _layers(items: dict[str, str], org_field: str) -> list[LayerSpec]:
    monthly = TimeAwareLayer(LayerRole.MONTHLY)
    annual = TimeAwareLayer(LayerRole.ANNUAL)
    specs = [
        ("sstMonthly", "SST (Monthly)", monthly, OCEAN_CONDITIONS, None),
        ("sstAnnual", "SST (Annual)", annual, OCEAN_CONDITIONS, None),
        ("chlMonthly", "Chlorophyll (Monthly)", monthly, OCEAN_CONDITIONS, None),
        ("chlAnnual", "Chlorophyll (Annual)", annual, OCEAN_CONDITIONS, None),
        ("mhwMonthly", "Marine Heatwaves (Monthly)", monthly, EXTREME_EVENTS, None),
        ("lme", "Large Marine Ecosystems", StaticLayer(), None, None),
        ("lmeHealth", "LME Health", StaticLayer(), None, None),
        ("eez", "Exclusive Economic Zones", StaticLayer(), None, None),
        ("rfmo", "RFMO Convention Areas", StaticLayer(), None, org_field),
        ("speciesCollection", "Species Distributions", StaticLayer(), None, None),
        ("impactMap", "Fishing Impacts", StaticLayer(), None, None),
        ("stockStatus", "Stock Status", StaticLayer(), None, org_field),
    ]
    return [
        LayerSpec(id=lid, title=title, kind=kind, group=group, item_id=items.get(lid), org_field=field)
        for lid, title, kind, group, field in specs
    ]


def _controls() -> list[ControlSpec]:
    radios = [
        ControlSpec("sstMonthly", ControlKind.RADIO, layer="sstMonthly", group=OCEAN_CONDITIONS,
                    label="Sea Surface Temperature (Monthly)"),
        ControlSpec("sstAnnual", ControlKind.RADIO, layer="sstAnnual", group=OCEAN_CONDITIONS,
                    label="Sea Surface Temperature (Annual)", default=True),
        ControlSpec("chlMonthly", ControlKind.RADIO, layer="chlMonthly", group=OCEAN_CONDITIONS,
                    label="Chlorophyll-a (Monthly)"),
        ControlSpec("chlAnnual", ControlKind.RADIO, layer="chlAnnual", group=OCEAN_CONDITIONS,
                    label="Chlorophyll-a (Annual)"),
        ControlSpec("mhwMonthly", ControlKind.RADIO, layer="mhwMonthly", group=EXTREME_EVENTS,
                    label="Marine Heatwaves (Monthly)", default=True),
    ]
    checkboxes = [
        ControlSpec("lmeHealth", ControlKind.CHECKBOX, layer="lmeHealth", label="LME health", default=True),
        ControlSpec("eez", ControlKind.CHECKBOX, layer="eez", label="EEZ boundaries", default=True),
        ControlSpec("rfmo", ControlKind.CHECKBOX, layer="rfmo", label="RFMO areas", default=True),
        ControlSpec("speciesCollection", ControlKind.CHECKBOX, layer="speciesCollection", label="Species ranges"),
        ControlSpec("impactMap", ControlKind.CHECKBOX, layer="impactMap", label="Fishing impacts", default=True),
        ControlSpec("stockStatus", ControlKind.CHECKBOX, layer="stockStatus", label="Stock status"),
    ]
    filters = [
        ControlSpec("speciesFilter", ControlKind.MULTISELECT, entity_kind="species", label="Species"),
        ControlSpec("memberFilter", ControlKind.MULTISELECT, entity_kind="member", label="Member nation"),
        ControlSpec("organizationFilter", ControlKind.MULTISELECT, entity_kind="organization", label="Organization"),
    ]
    return radios + checkboxes + filters


def _themes() -> list[Theme]:
    ocean = Theme(
        id="ocean",
        title="Ocean Conditions",
        time_aware=True,
        layer_policy={
            "sstMonthly": BY_CONTROL, "sstAnnual": BY_CONTROL,
            "chlMonthly": BY_CONTROL, "chlAnnual": BY_CONTROL,
        },
        default_layer="sstAnnual",
        content="Toggle annual vs monthly sea surface temperature and chlorophyll and use the time slider.",
    )
    extremes = Theme(
        id="extreme-events",
        title="Extreme Events",
        time_aware=True,
        layer_policy={"mhwMonthly": SHOWN},
        default_layer="mhwMonthly",
        content="Marine heatwave occurrence by month.",
    )
    return [
        Theme(
            id="orientation",
            title="Introduction",
            visible_panels=frozenset({PanelId.LEGEND}),
            content="The Basin Events to Coastal Impacts (BECI) dashboard aggregates ocean "
                    "and fisheries intelligence to support decision makers.",
        ),
        Theme(
            id="ocean-state",
            title="Environmental Conditions",
            visible_panels=frozenset({PanelId.LAYERS, PanelId.TIME, PanelId.LEGEND}),
            time_aware=True,
            sub_themes=(ocean, extremes),
            default_sub_theme="ocean",
        ),
        Theme(
            id="ecosystem-status",
            title="Ecosystem Status",
            visible_panels=frozenset({PanelId.LAYERS, PanelId.LEGEND}),
            layer_policy={"lme": SHOWN, "lmeHealth": BY_CONTROL},
            content="Health status of Large Marine Ecosystems.",
        ),
        Theme(
            id="governance",
            title="Management Jurisdictions",
            visible_panels=frozenset({PanelId.LAYERS, PanelId.FILTERS, PanelId.LEGEND}),
            layer_policy={"eez": BY_CONTROL, "rfmo": BY_CONTROL},
            content="Visualise management jurisdictions, maritime boundaries, and EEZs.",
        ),
        Theme(
            id="fish-impacts",
            title="Fish Impacts",
            visible_panels=frozenset({PanelId.LAYERS, PanelId.FILTERS, PanelId.LEGEND}),
            layer_policy={
                "impactMap": BY_CONTROL, "stockStatus": BY_CONTROL,
                "speciesCollection": BY_CONTROL, "rfmo": BY_CONTROL,
            },
            content="Stock assessments and fishing impacts by management body.",
        ),
    ]


def build_default_registry(
    items: Optional[dict[str, str]] = None,
    org_field: str = DEFAULT_ORG_FIELD,
) -> EntityRegistry:
    """Register the full BECI catalogue. ``items`` maps layer ids to portal items."""
    registry = EntityRegistry()
    for spec in _layers(items or {}, org_field):
        registry.register_layer(spec)
    for control in _controls():
        registry.register_control(control)
    for theme in _themes():
        registry.register_theme(theme, default=theme.id == "orientation")
    return registry
