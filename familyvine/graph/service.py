"""Write-path helpers and the member relationship panel.

Mirrored writes: when a caller wants both directions stored, the reciprocal
row is an independent second write. It is never rolled back with, nor does
it roll back, the primary write; a failure is logged and reported back so
the caller can retry or reconcile.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from familyvine.graph.aggregator import (
    ParentCombinationPolicy,
    RelationshipPanel,
    build_relationship_panel,
)
from familyvine.graph.errors import GraphError
from familyvine.graph.records import Relationship
from familyvine.graph.resolver import GenderFallback, reciprocal
from familyvine.graph.store import GraphStore
from familyvine.graph.types import STORABLE_TYPES, RelationshipType

logger = logging.getLogger("familyvine.graph.service")


@dataclass
class WriteResult:
    relationship: Relationship
    reciprocal: Relationship | None = None
    reciprocal_error: str | None = None


async def reciprocal_type_for(
    store: GraphStore,
    rel: Relationship,
    fallback: GenderFallback = GenderFallback.FEMALE,
) -> RelationshipType | None:
    """Type member2 holds toward member1, by member2's gender."""
    other = await store.get_member(rel.member2_id)
    if other is None:
        return None
    inverse = reciprocal(rel.relationship_type, other.gender, fallback)
    if isinstance(inverse, RelationshipType) and inverse in STORABLE_TYPES:
        return inverse
    return None


async def create_relationship(
    store: GraphStore,
    member1_id: int,
    member2_id: int,
    rel_type: RelationshipType | str,
    mirror: bool = False,
    fallback: GenderFallback = GenderFallback.FEMALE,
) -> WriteResult:
    rel = await store.create_relationship(member1_id, member2_id, rel_type)
    result = WriteResult(relationship=rel)
    if not mirror:
        return result

    try:
        inverse = await reciprocal_type_for(store, rel, fallback)
        if inverse is None:
            return result
        existing = await store.find_relationship(member2_id, member1_id, inverse)
        result.reciprocal = existing or await store.create_relationship(
            member2_id, member1_id, inverse
        )
    except GraphError as exc:
        logger.warning(
            "Reciprocal write for relationship %d failed: %s", rel.id, exc.message
        )
        result.reciprocal_error = exc.message
    return result


async def delete_relationship(
    store: GraphStore,
    rel_id: int,
    mirror: bool = False,
    fallback: GenderFallback = GenderFallback.FEMALE,
) -> WriteResult:
    rel = await store.delete_relationship(rel_id)
    result = WriteResult(relationship=rel)
    if not mirror:
        return result

    try:
        inverse = await reciprocal_type_for(store, rel, fallback)
        if inverse is None:
            return result
        existing = await store.find_relationship(rel.member2_id, rel.member1_id, inverse)
        if existing is not None:
            result.reciprocal = await store.delete_relationship(existing.id)
    except GraphError as exc:
        logger.warning(
            "Reciprocal delete for relationship %d failed: %s", rel.id, exc.message
        )
        result.reciprocal_error = exc.message
    return result


async def member_relationship_panel(
    store: GraphStore,
    member_id: int,
    policy: ParentCombinationPolicy | None = None,
) -> RelationshipPanel:
    views = await store.list_relationships(member_id)
    return build_relationship_panel(views, policy)
