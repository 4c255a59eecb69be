"""Relationship aggregator: a member's raw edges -> canonical display list.

Pipeline (each step a pure function on RelationshipView lists):

    process_relationships            one record per counter-party
    combine_parent_relationships     two "I am their son/daughter" edges -> one "parents" unit
    sort_relationships_by_priority   fixed display order
    group_relationships_by_category  parents / spouses / children / ...

No DB, no I/O.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Protocol

from familyvine.graph.records import ParentRef, RelationshipView
from familyvine.graph.types import (
    Category,
    Direction,
    RelationshipType,
    category_for,
    priority_for,
)

logger = logging.getLogger("familyvine.graph.aggregator")

_CHILD_TYPES = (RelationshipType.SON.value, RelationshipType.DAUGHTER.value)


def process_relationships(views: list[RelationshipView]) -> list[RelationshipView]:
    """Keep one record per counter-party, preferring the subject's own (outgoing) edge.

    Order-sensitive: within a counter-party the first outgoing edge wins,
    otherwise the first incoming one. Counter-parties keep first-seen order.
    """
    by_person: dict[int, list[RelationshipView]] = {}
    for view in views:
        by_person.setdefault(view.related_id, []).append(view)

    result: list[RelationshipView] = []
    for group in by_person.values():
        outgoing = next((v for v in group if v.direction is Direction.OUTGOING), None)
        result.append(outgoing if outgoing is not None else group[0])
    return result


# ---------------------------------------------------------------------------
# Parent combination
# ---------------------------------------------------------------------------

def parent_edges(views: list[RelationshipView]) -> list[RelationshipView]:
    """Outgoing son/daughter edges: the subject is the child, the other end a parent."""
    return [
        v for v in views
        if v.direction is Direction.OUTGOING and v.relationship_type in _CHILD_TYPES
    ]


def _parent_ref(view: RelationshipView) -> ParentRef:
    return ParentRef(
        id=view.related_id,
        name=view.related_name,
        photo=view.related_photo_url,
        type=view.relationship_type,
    )


def merge_parents(parents: list[RelationshipView]) -> RelationshipView:
    """Build the synthetic `parents` unit from one or more parent edges."""
    first = parents[0]
    return replace(
        first,
        id=f"combined-parents-{'-'.join(str(p.id) for p in parents)}",
        relationship_type=RelationshipType.PARENTS.value,
        related_first_name=" & ".join(p.related_first_name for p in parents),
        related_last_name=first.related_last_name,
        is_combined=True,
        parents=[_parent_ref(p) for p in parents],
    )


class ParentCombinationPolicy(Protocol):
    def should_combine(self, parents: list[RelationshipView]) -> bool: ...


class ExactlyTwoParents:
    """Combine only when exactly two parent edges exist; 0, 1 or >2 pass through."""

    name = "exact_two"

    def should_combine(self, parents: list[RelationshipView]) -> bool:
        return len(parents) == 2


class AnyParents:
    """Combine whenever at least one parent edge exists."""

    name = "any"

    def should_combine(self, parents: list[RelationshipView]) -> bool:
        return len(parents) >= 1


PARENT_POLICIES: dict[str, type] = {
    ExactlyTwoParents.name: ExactlyTwoParents,
    AnyParents.name: AnyParents,
}


def parent_policy(name: str | None) -> ParentCombinationPolicy:
    policy_cls = PARENT_POLICIES.get((name or "").strip().lower(), ExactlyTwoParents)
    return policy_cls()


def combine_parent_relationships(
    views: list[RelationshipView],
    policy: ParentCombinationPolicy | None = None,
) -> list[RelationshipView]:
    policy = policy or ExactlyTwoParents()
    parents = parent_edges(views)
    if not parents or not policy.should_combine(parents):
        return views

    combined = merge_parents(parents)
    consumed = {id(p) for p in parents}
    rest = [v for v in views if id(v) not in consumed]
    logger.debug("Combined %d parent edges into %s", len(parents), combined.id)
    return [combined, *rest]


# ---------------------------------------------------------------------------
# Grouping + ordering
# ---------------------------------------------------------------------------

def group_relationships_by_category(
    views: list[RelationshipView],
) -> dict[Category, list[RelationshipView]]:
    """Partition into the fixed buckets; every bucket is present, possibly empty."""
    grouped: dict[Category, list[RelationshipView]] = {c: [] for c in Category}
    for view in views:
        grouped[category_for(view.relationship_type)].append(view)
    return grouped


def sort_relationships_by_priority(views: list[RelationshipView]) -> list[RelationshipView]:
    # sorted() is stable: equal ranks keep input order.
    return sorted(views, key=lambda v: priority_for(v.relationship_type))


@dataclass
class RelationshipPanel:
    relationships: list[RelationshipView] = field(default_factory=list)
    categories: dict[Category, list[RelationshipView]] = field(default_factory=dict)


def build_relationship_panel(
    views: list[RelationshipView],
    policy: ParentCombinationPolicy | None = None,
) -> RelationshipPanel:
    unique = process_relationships(views)
    combined = combine_parent_relationships(unique, policy)
    ordered = sort_relationships_by_priority(combined)
    return RelationshipPanel(
        relationships=ordered,
        categories=group_relationships_by_category(ordered),
    )
