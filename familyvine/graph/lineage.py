"""Descendant projector: generations of unions below a starting union.

Generation 1 is the starting union with its children. Each following
generation holds the unions of the previous generation's children, primary
union first. A union or a partner is only ever shown once, so remarriages
inside the family and cycles cannot repeat a branch. The walk stops early
when a generation comes out empty.
"""

from __future__ import annotations

import logging

from familyvine.graph.errors import NotFoundError, ValidationError
from familyvine.graph.records import ChildEntry, Descendants, Generation, Union, UnionFamily
from familyvine.graph.store import GraphStore, UnionSnapshot

logger = logging.getLogger("familyvine.graph.lineage")

DEFAULT_GENERATIONS = 4


def union_family(snapshot: UnionSnapshot, union: Union) -> UnionFamily | None:
    """Resolve partners and children of one union; None if partner1 is gone."""
    partner1 = snapshot.members.get(union.partner1_id)
    if partner1 is None:
        return None
    partner2 = snapshot.members.get(union.partner2_id) if union.partner2_id is not None else None
    family = UnionFamily(union=union, partner1=partner1, partner2=partner2)
    for link in snapshot.children_of(union.id):
        child = snapshot.members.get(link.child_id)
        if child is None:
            continue
        family.children.append(ChildEntry(
            member=child,
            birth_order=link.birth_order,
            has_unions=bool(snapshot.unions_of(child.id)),
        ))
    return family


def project_descendants(
    snapshot: UnionSnapshot, union_id: int, max_generations: int = DEFAULT_GENERATIONS
) -> Descendants:
    root = snapshot.unions.get(union_id)
    if root is None:
        raise NotFoundError("Union", union_id)
    if max_generations < 1:
        raise ValidationError(f"max_generations must be >= 1, got {max_generations}")

    result = Descendants(root_union_id=union_id, max_generations=max_generations)
    seen_unions: set[int] = set()
    seen_members: set[int] = set()

    def take(union: Union) -> UnionFamily | None:
        family = union_family(snapshot, union)
        if family is None:
            return None
        seen_unions.add(union.id)
        seen_members.add(union.partner1_id)
        if union.partner2_id is not None:
            seen_members.add(union.partner2_id)
        return family

    first = take(root)
    if first is None:
        raise NotFoundError("Union", union_id)
    result.generations.append(Generation(number=1, unions=[first]))

    for number in range(2, max_generations + 1):
        current = Generation(number=number)
        for family in result.generations[-1].unions:
            for entry in family.children:
                if not entry.has_unions or entry.member.id in seen_members:
                    continue
                for union in snapshot.unions_of(entry.member.id):
                    if union.id in seen_unions:
                        continue
                    taken = take(union)
                    if taken is not None:
                        current.unions.append(taken)
        if not current.unions:
            break
        result.generations.append(current)

    result.total_members = len(seen_members)
    result.total_unions = len(seen_unions)
    return result


async def aproject_descendants(
    store: GraphStore, union_id: int, max_generations: int = DEFAULT_GENERATIONS
) -> Descendants:
    snapshot = await store.union_snapshot()
    result = project_descendants(snapshot, union_id, max_generations)
    logger.debug(
        "Projected descendants of union %d: %d generations, %d unions, %d members",
        union_id, len(result.generations), result.total_unions, result.total_members,
    )
    return result
