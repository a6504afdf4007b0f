"""
Filter Composer
===============
Keeps several multi-select filters (species, member nation, organization)
consistent with each other. All of them narrow the same set of managing
organizations, so each filter's available options depend on what the others
have selected.

Classes:
    EntityIndex: value -> organizations lookup, built once from queried records.
    FilterCriterion: one filter's selection and its currently allowed options.
    CompoundPredicate: AND across filters of OR-groups over selected values.
    FilterComposer: narrowing and predicate construction.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Sequence

from becidashboard.model.tokenizer import DEFAULT_DELIMITERS, split_grouped

logger = logging.getLogger(__name__)

ORGANIZATION_KIND = "organization"


def _freeze(table: dict[str, dict[str, set[str]]]) -> Mapping[str, Mapping[str, frozenset[str]]]:
    return MappingProxyType({
        kind: MappingProxyType({key: frozenset(vals) for key, vals in entries.items()})
        for kind, entries in table.items()
    })


@dataclass(frozen=True)
class EntityIndex:
    """
    Read-only index: for every entity kind, ``value -> organizations`` and the
    reverse ``organization -> values``.
    """
    organizations: frozenset[str]
    by_value: Mapping[str, Mapping[str, frozenset[str]]]
    by_org: Mapping[str, Mapping[str, frozenset[str]]]

    @classmethod
    def empty(cls) -> "EntityIndex":
        return cls(frozenset(), MappingProxyType({}), MappingProxyType({}))

    @classmethod
    def from_records(
        cls,
        records: Iterable[Mapping[str, Any]],
        org_field: str,
        kind_fields: Mapping[str, str],
        delimiters: str = DEFAULT_DELIMITERS,
    ) -> "EntityIndex":
        """
        Build the index from attribute records of the organizations dataset.

        ``kind_fields`` maps an entity kind (e.g. ``"species"``) to the record
        field holding its delimited values. Missing fields contribute nothing;
        malformed tokens are skipped by the tokenizer.
        """
        by_value: dict[str, dict[str, set[str]]] = {ORGANIZATION_KIND: {}}
        by_org: dict[str, dict[str, set[str]]] = {ORGANIZATION_KIND: {}}
        for kind in kind_fields:
            by_value.setdefault(kind, {})
            by_org.setdefault(kind, {})

        orgs: set[str] = set()
        skipped = 0
        for record in records:
            raw_org = record.get(org_field)
            org = str(raw_org).strip() if raw_org is not None else ""
            if not org:
                skipped += 1
                continue
            orgs.add(org)
            by_value[ORGANIZATION_KIND].setdefault(org, set()).add(org)
            by_org[ORGANIZATION_KIND].setdefault(org, set()).add(org)

            for kind, field_name in kind_fields.items():
                raw = record.get(field_name)
                if raw is None:
                    continue
                for value in split_grouped(str(raw), delimiters):
                    by_value[kind].setdefault(value, set()).add(org)
                    by_org[kind].setdefault(org, set()).add(value)

        if skipped:
            logger.warning(f"Skipped {skipped} records without '{org_field}'.")
        logger.info(f"Entity index built: {len(orgs)} organizations, kinds={sorted(by_value)}")
        return cls(frozenset(orgs), _freeze(by_value), _freeze(by_org))

    def domain(self, kind: str) -> frozenset[str]:
        """All values known for ``kind``."""
        return frozenset(self.by_value.get(kind, {}))

    def orgs_for(self, kind: str, value: str) -> frozenset[str]:
        return self.by_value.get(kind, {}).get(value, frozenset())

    def values_of(self, kind: str, org: str) -> frozenset[str]:
        return self.by_org.get(kind, {}).get(org, frozenset())

    def project(self, kind: str, orgs: Iterable[str]) -> frozenset[str]:
        """Values of ``kind`` held by any of ``orgs``."""
        values: set[str] = set()
        for org in orgs:
            values |= self.values_of(kind, org)
        return frozenset(values)


@dataclass(frozen=True)
class FilterCriterion:
    id: str
    entity_kind: str
    selected_values: frozenset[str] = frozenset()
    allowed_values: frozenset[str] = frozenset()


@dataclass(frozen=True)
class CompoundPredicate:
    """AND over criteria, OR within each criterion's selected values."""
    groups: tuple[tuple[str, frozenset[str]], ...]
    index: EntityIndex = field(compare=False, repr=False)

    @property
    def is_unconstrained(self) -> bool:
        return not self.groups

    def matches(self, org: str) -> bool:
        return all(self.index.values_of(kind, org) & values for kind, values in self.groups)

    def matching_orgs(self) -> frozenset[str]:
        return frozenset(org for org in self.index.organizations if self.matches(org))

    def to_where(self, org_field: str) -> str:
        """Render as a declarative where-clause over an organization field."""
        if self.is_unconstrained:
            return "1=1"
        orgs = sorted(self.matching_orgs())
        if not orgs:
            return "1=0"
        quoted = ", ".join("'" + org.replace("'", "''") + "'" for org in orgs)
        return f"{org_field} IN ({quoted})"


class FilterComposer:
    """
    Computes allowed options and the compound predicate for a fixed set of
    filters over one ``EntityIndex``.

    An empty selection means "no constraint" for that filter.
    """

    def __init__(self, index: EntityIndex, criteria: Mapping[str, str]) -> None:
        # criteria: filter id -> entity kind
        self.index = index
        self.criteria = dict(criteria)

    def matching_orgs(
        self,
        selections: Mapping[str, frozenset[str]],
        exclude: Optional[str] = None,
    ) -> frozenset[str]:
        orgs = set(self.index.organizations)
        for cid, kind in self.criteria.items():
            if cid == exclude:
                continue
            selected = selections.get(cid) or frozenset()
            if not selected:
                continue
            hit: set[str] = set()
            for value in selected:
                hit |= self.index.orgs_for(kind, value)
            orgs &= hit
        return frozenset(orgs)

    def allowed_values(self, selections: Mapping[str, frozenset[str]], criterion_id: str) -> frozenset[str]:
        """Options of one filter given every other filter's selection."""
        kind = self.criteria[criterion_id]
        return self.index.project(kind, self.matching_orgs(selections, exclude=criterion_id))

    def compose(
        self,
        selections: Mapping[str, Iterable[str]],
        changed: Optional[str] = None,
        priority: Sequence[str] = (),
    ) -> dict[str, FilterCriterion]:
        """
        Narrow every filter against the others' selections and recompute the
        allowed options from what remains selected.

        Filters are ranked ``changed`` first, then ``priority``, then in
        registration order. While some selection holds values outside its
        allowed options, the lowest-ranked such filter drops them and the
        options are recomputed. On return every selection is a subset of its
        options. Dropped values are never re-added.
        """
        sel: dict[str, frozenset[str]] = {}
        for cid, kind in self.criteria.items():
            requested = frozenset(selections.get(cid) or ())
            known = requested & self.index.domain(kind)
            if known != requested:
                logger.debug(f"Filter '{cid}': dropping unknown values {sorted(requested - known)}")
            sel[cid] = known

        ranked = list(dict.fromkeys(
            cid for cid in (changed, *priority, *self.criteria) if cid in self.criteria
        ))
        while True:
            allowed = {cid: self.allowed_values(sel, cid) for cid in self.criteria}
            stale = [cid for cid in ranked if not sel[cid] <= allowed[cid]]
            if not stale:
                break
            cid = stale[-1]
            kept = sel[cid] & allowed[cid]
            logger.debug(f"Filter '{cid}': narrowed out {sorted(sel[cid] - kept)}")
            sel[cid] = kept

        return {
            cid: FilterCriterion(cid, kind, sel[cid], allowed[cid])
            for cid, kind in self.criteria.items()
        }

    def predicate(self, criteria: Mapping[str, FilterCriterion]) -> CompoundPredicate:
        groups = tuple(
            (c.entity_kind, c.selected_values)
            for c in criteria.values()
            if c.selected_values
        )
        return CompoundPredicate(groups=groups, index=self.index)
