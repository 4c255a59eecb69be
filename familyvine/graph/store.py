"""GraphStore: source of truth for members, relationship edges and unions.

Only one direction of a relationship is ever required to be stored; read
paths derive the other endpoint's label with the resolver. Both storage
conventions (single row, or explicit reciprocal rows written by the caller)
are tolerated: `list_relationships(member_id)` simply returns every edge
touching the member, tagged with its direction.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from types import MappingProxyType
from typing import Mapping

from familyvine.graph.errors import (
    DuplicateRelationshipError,
    InvalidTypeError,
    NotFoundError,
    SelfRelationshipError,
    UnknownMemberError,
    ValidationError,
)
from familyvine.graph.records import Member, Relationship, RelationshipView, Union, UnionChild
from familyvine.graph.types import STORABLE_TYPES, Gender, RelationshipType, UnionType

logger = logging.getLogger("familyvine.graph.store")

# Sentinel for "field not supplied" in partial union updates.
UNSET = object()

UNION_FIELDS = {"partner1_id", "partner2_id", "union_type", "is_primary", "union_date", "notes"}

# Union columns that may be changed but never cleared.
REQUIRED_UNION_FIELDS = ("partner1_id", "is_primary")


# ---------------------------------------------------------------------------
# Validation shared by every backend
# ---------------------------------------------------------------------------

def parse_relationship_type(value: RelationshipType | str) -> RelationshipType:
    parsed = RelationshipType.parse(value)
    if parsed is None or parsed not in STORABLE_TYPES:
        raise InvalidTypeError(value)
    return parsed


def parse_union_type(value: UnionType | str | None) -> UnionType | None:
    if value is None or isinstance(value, UnionType):
        return value
    try:
        return UnionType(value)
    except ValueError:
        raise InvalidTypeError(value, kind="union") from None


def check_relationship_ids(member1_id: int, member2_id: int) -> None:
    if member1_id == member2_id:
        raise SelfRelationshipError(member1_id)


def check_union_partners(partner1_id: int, partner2_id: int | None) -> None:
    if partner2_id is not None and partner1_id == partner2_id:
        raise SelfRelationshipError(partner1_id)


def union_updates(changes: dict) -> dict:
    """Filter a partial union update down to settable, supplied fields.

    Raises ValidationError before anything is written when a required
    column is explicitly set to None.
    """
    updates = {k: v for k, v in changes.items() if k in UNION_FIELDS and v is not UNSET}
    for name in REQUIRED_UNION_FIELDS:
        if name in updates and updates[name] is None:
            raise ValidationError(f"Union field '{name}' cannot be null")
    if "union_type" in updates:
        updates["union_type"] = parse_union_type(updates["union_type"])
    return updates


def check_union_child(union: Union, child_id: int) -> None:
    if child_id in (union.partner1_id, union.partner2_id):
        raise ValidationError(f"Member {child_id} is a partner in union {union.id}")


def order_children(children: list[UnionChild]) -> list[UnionChild]:
    # Unnumbered children sort after numbered ones; ties keep insertion order.
    return sorted(children, key=lambda c: (c.birth_order is None, c.birth_order or 0))


def order_unions(unions: list[Union]) -> list[Union]:
    return sorted(unions, key=lambda u: not u.is_primary)


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GraphSnapshot:
    """Immutable point-in-time view of the graph used by traversals.

    `adjacency` is undirected: every edge is listed under both endpoints,
    while the edge itself keeps its directed type label.
    """
    members: Mapping[int, Member]
    relationships: tuple[Relationship, ...]
    adjacency: Mapping[int, tuple[Relationship, ...]] = field(default_factory=dict)

    @classmethod
    def build(cls, members: list[Member], relationships: list[Relationship]) -> GraphSnapshot:
        adjacency: dict[int, list[Relationship]] = {}
        for rel in relationships:
            adjacency.setdefault(rel.member1_id, []).append(rel)
            adjacency.setdefault(rel.member2_id, []).append(rel)
        return cls(
            members=MappingProxyType({m.id: m for m in members}),
            relationships=tuple(relationships),
            adjacency=MappingProxyType({k: tuple(v) for k, v in adjacency.items()}),
        )

    def edges_of(self, member_id: int) -> tuple[Relationship, ...]:
        return self.adjacency.get(member_id, ())


@dataclass(frozen=True)
class UnionSnapshot:
    """Immutable view of members, unions and union children for lineage walks."""
    members: Mapping[int, Member]
    unions: Mapping[int, Union]
    children: Mapping[int, tuple[UnionChild, ...]] = field(default_factory=dict)
    unions_by_member: Mapping[int, tuple[Union, ...]] = field(default_factory=dict)

    @classmethod
    def build(
        cls, members: list[Member], unions: list[Union], children: list[UnionChild]
    ) -> UnionSnapshot:
        by_union: dict[int, list[UnionChild]] = {}
        for link in children:
            by_union.setdefault(link.union_id, []).append(link)
        by_member: dict[int, list[Union]] = {}
        for union in unions:
            for partner in (union.partner1_id, union.partner2_id):
                if partner is not None:
                    by_member.setdefault(partner, []).append(union)
        return cls(
            members=MappingProxyType({m.id: m for m in members}),
            unions=MappingProxyType({u.id: u for u in unions}),
            children=MappingProxyType({k: tuple(order_children(v)) for k, v in by_union.items()}),
            unions_by_member=MappingProxyType(
                {k: tuple(order_unions(v)) for k, v in by_member.items()}
            ),
        )

    def children_of(self, union_id: int) -> tuple[UnionChild, ...]:
        return self.children.get(union_id, ())

    def unions_of(self, member_id: int) -> tuple[Union, ...]:
        return self.unions_by_member.get(member_id, ())



# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------

class GraphStore(ABC):
    """Async storage interface. Every write is atomic per row."""

    backend: str = "abstract"

    # -- members (upstream collaborator; minimal surface) -------------------

    @abstractmethod
    async def add_member(
        self,
        first_name: str,
        last_name: str = "",
        gender: Gender | str | None = None,
        is_alive: bool = True,
        birth_date: date | None = None,
        death_date: date | None = None,
        photo_url: str | None = None,
    ) -> Member: ...

    @abstractmethod
    async def get_member(self, member_id: int) -> Member | None: ...

    @abstractmethod
    async def list_members(self) -> list[Member]: ...

    @abstractmethod
    async def delete_member(self, member_id: int) -> Member: ...

    async def require_member(self, member_id: int) -> Member:
        member = await self.get_member(member_id)
        if member is None:
            raise UnknownMemberError(member_id)
        return member

    # -- relationships -------------------------------------------------------

    @abstractmethod
    async def create_relationship(
        self, member1_id: int, member2_id: int, rel_type: RelationshipType | str
    ) -> Relationship: ...

    @abstractmethod
    async def get_relationship(self, rel_id: int) -> Relationship: ...

    @abstractmethod
    async def find_relationship(
        self, member1_id: int, member2_id: int, rel_type: RelationshipType | str
    ) -> Relationship | None: ...

    @abstractmethod
    async def delete_relationship(self, rel_id: int) -> Relationship: ...

    @abstractmethod
    async def list_edges_for_member(self, member_id: int) -> list[Relationship]: ...

    @abstractmethod
    async def list_all_relationships(self) -> list[Relationship]: ...

    async def list_relationships(
        self, member_id: int | None = None
    ) -> list[Relationship] | list[RelationshipView]:
        """All edges, or the edges touching `member_id` tagged with direction."""
        if member_id is None:
            return await self.list_all_relationships()
        await self.require_member(member_id)
        edges = await self.list_edges_for_member(member_id)
        views: list[RelationshipView] = []
        for rel in edges:
            related = await self.get_member(rel.other_end(member_id))
            if related is None:
                # Counter-party removed between the two reads.
                continue
            views.append(RelationshipView.from_edge(rel, member_id, related))
        return views

    # -- unions --------------------------------------------------------------

    @abstractmethod
    async def create_union(
        self,
        partner1_id: int,
        partner2_id: int | None = None,
        union_type: UnionType | str | None = None,
        is_primary: bool = False,
        union_date: date | None = None,
        notes: str | None = None,
    ) -> Union: ...

    @abstractmethod
    async def get_union(self, union_id: int) -> Union: ...

    @abstractmethod
    async def update_union(self, union_id: int, **changes) -> Union: ...

    @abstractmethod
    async def delete_union(self, union_id: int) -> Union: ...

    @abstractmethod
    async def list_unions(self, member_id: int | None = None) -> list[Union]: ...

    # -- union children ------------------------------------------------------

    @abstractmethod
    async def add_union_child(
        self, union_id: int, child_id: int, birth_order: int | None = None
    ) -> UnionChild:
        """Link a child to a union. Re-adding returns the existing link,
        updating its birth order when one is given."""

    @abstractmethod
    async def remove_union_child(self, union_id: int, child_id: int) -> UnionChild: ...

    @abstractmethod
    async def list_union_children(self, union_id: int) -> list[UnionChild]: ...

    # -- reads for projection / metrics ---------------------------------------

    @abstractmethod
    async def snapshot(self, root_id: int | None = None, max_depth: int | None = None) -> GraphSnapshot:
        """Consistent view of members and relationships.

        With `root_id` and `max_depth` a backend may return only the members
        within `max_depth` hops of the root plus the edges between them.
        Without them the whole graph is returned.
        """

    @abstractmethod
    async def union_snapshot(self) -> UnionSnapshot: ...

    @abstractmethod
    async def stats(self) -> dict: ...

    async def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------

def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryGraphStore(GraphStore):
    """Process-local store. Writes serialise on an asyncio.Lock; reads copy."""

    backend = "memory"

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._members: dict[int, Member] = {}
        self._relationships: dict[int, Relationship] = {}
        self._unions: dict[int, Union] = {}
        self._union_children: dict[tuple[int, int], UnionChild] = {}
        self._member_ids = itertools.count(1)
        self._rel_ids = itertools.count(1)
        self._union_ids = itertools.count(1)

    # -- members -------------------------------------------------------------

    async def add_member(
        self,
        first_name: str,
        last_name: str = "",
        gender: Gender | str | None = None,
        is_alive: bool = True,
        birth_date: date | None = None,
        death_date: date | None = None,
        photo_url: str | None = None,
    ) -> Member:
        async with self._lock:
            member = Member(
                id=next(self._member_ids),
                first_name=first_name,
                last_name=last_name or "",
                gender=Gender.coerce(gender),
                is_alive=is_alive,
                birth_date=birth_date,
                death_date=death_date,
                photo_url=photo_url,
                created_at=_now(),
            )
            self._members[member.id] = member
        logger.info("Added member %d (%s)", member.id, member.name)
        return member

    async def get_member(self, member_id: int) -> Member | None:
        return self._members.get(member_id)

    async def list_members(self) -> list[Member]:
        return list(self._members.values())

    async def delete_member(self, member_id: int) -> Member:
        async with self._lock:
            member = self._members.pop(member_id, None)
            if member is None:
                raise UnknownMemberError(member_id)
            dropped = [
                rid for rid, r in self._relationships.items()
                if member_id in (r.member1_id, r.member2_id)
            ]
            for rid in dropped:
                del self._relationships[rid]
            unions = [
                uid for uid, u in self._unions.items()
                if member_id in (u.partner1_id, u.partner2_id)
            ]
            for uid in unions:
                del self._unions[uid]
            self._drop_children(lambda link: link.child_id == member_id or link.union_id in unions)
        logger.info(
            "Deleted member %d with %d relationships and %d unions",
            member_id, len(dropped), len(unions),
        )
        return member

    def _require_members(self, *member_ids: int | None) -> None:
        for mid in member_ids:
            if mid is not None and mid not in self._members:
                raise UnknownMemberError(mid)

    def _drop_children(self, predicate) -> int:
        keys = [key for key, link in self._union_children.items() if predicate(link)]
        for key in keys:
            del self._union_children[key]
        return len(keys)

    # -- relationships -------------------------------------------------------

    async def create_relationship(
        self, member1_id: int, member2_id: int, rel_type: RelationshipType | str
    ) -> Relationship:
        check_relationship_ids(member1_id, member2_id)
        parsed = parse_relationship_type(rel_type)
        async with self._lock:
            self._require_members(member1_id, member2_id)
            if self._find(member1_id, member2_id, parsed) is not None:
                raise DuplicateRelationshipError(member1_id, member2_id, parsed.value)
            rel = Relationship(
                id=next(self._rel_ids),
                member1_id=member1_id,
                member2_id=member2_id,
                relationship_type=parsed,
                created_at=_now(),
            )
            self._relationships[rel.id] = rel
        logger.info(
            "Created relationship %d: %d is %s of %d",
            rel.id, member1_id, parsed.value, member2_id,
        )
        return rel

    def _find(self, member1_id: int, member2_id: int, rel_type: RelationshipType) -> Relationship | None:
        for rel in self._relationships.values():
            if (
                rel.member1_id == member1_id
                and rel.member2_id == member2_id
                and rel.relationship_type is rel_type
            ):
                return rel
        return None

    async def get_relationship(self, rel_id: int) -> Relationship:
        rel = self._relationships.get(rel_id)
        if rel is None:
            raise NotFoundError("Relationship", rel_id)
        return rel

    async def find_relationship(
        self, member1_id: int, member2_id: int, rel_type: RelationshipType | str
    ) -> Relationship | None:
        parsed = RelationshipType.parse(rel_type)
        if parsed is None:
            return None
        return self._find(member1_id, member2_id, parsed)

    async def delete_relationship(self, rel_id: int) -> Relationship:
        async with self._lock:
            rel = self._relationships.pop(rel_id, None)
        if rel is None:
            raise NotFoundError("Relationship", rel_id)
        logger.info("Deleted relationship %d", rel_id)
        return rel

    async def list_edges_for_member(self, member_id: int) -> list[Relationship]:
        return [
            r for r in list(self._relationships.values())
            if member_id in (r.member1_id, r.member2_id)
        ]

    async def list_all_relationships(self) -> list[Relationship]:
        return list(self._relationships.values())

    # -- unions --------------------------------------------------------------

    async def create_union(
        self,
        partner1_id: int,
        partner2_id: int | None = None,
        union_type: UnionType | str | None = None,
        is_primary: bool = False,
        union_date: date | None = None,
        notes: str | None = None,
    ) -> Union:
        check_union_partners(partner1_id, partner2_id)
        parsed = parse_union_type(union_type)
        async with self._lock:
            self._require_members(partner1_id, partner2_id)
            union = Union(
                id=next(self._union_ids),
                partner1_id=partner1_id,
                partner2_id=partner2_id,
                union_type=parsed,
                is_primary=is_primary,
                union_date=union_date,
                notes=notes,
                created_at=_now(),
            )
            self._unions[union.id] = union
        logger.info("Created union %d between %s and %s", union.id, partner1_id, partner2_id)
        return union

    async def get_union(self, union_id: int) -> Union:
        union = self._unions.get(union_id)
        if union is None:
            raise NotFoundError("Union", union_id)
        return union

    async def update_union(self, union_id: int, **changes) -> Union:
        updates = union_updates(changes)
        async with self._lock:
            current = self._unions.get(union_id)
            if current is None:
                raise NotFoundError("Union", union_id)
            updated = replace(current, **updates)
            check_union_partners(updated.partner1_id, updated.partner2_id)
            self._require_members(updated.partner1_id, updated.partner2_id)
            self._unions[union_id] = updated
        return updated

    async def delete_union(self, union_id: int) -> Union:
        async with self._lock:
            union = self._unions.pop(union_id, None)
            if union is not None:
                self._drop_children(lambda link: link.union_id == union_id)
        if union is None:
            raise NotFoundError("Union", union_id)
        logger.info("Deleted union %d", union_id)
        return union

    async def list_unions(self, member_id: int | None = None) -> list[Union]:
        unions = list(self._unions.values())
        if member_id is None:
            return unions
        if member_id not in self._members:
            raise UnknownMemberError(member_id)
        mine = [u for u in unions if member_id in (u.partner1_id, u.partner2_id)]
        # Primary first; sort is stable so insertion order holds otherwise.
        return order_unions(mine)

    # -- union children ------------------------------------------------------

    async def add_union_child(
        self, union_id: int, child_id: int, birth_order: int | None = None
    ) -> UnionChild:
        async with self._lock:
            union = self._unions.get(union_id)
            if union is None:
                raise NotFoundError("Union", union_id)
            self._require_members(child_id)
            check_union_child(union, child_id)
            existing = self._union_children.get((union_id, child_id))
            if existing is not None:
                if birth_order is not None:
                    existing = replace(existing, birth_order=birth_order)
                    self._union_children[(union_id, child_id)] = existing
                return existing
            link = UnionChild(
                union_id=union_id, child_id=child_id, birth_order=birth_order, created_at=_now()
            )
            self._union_children[(union_id, child_id)] = link
        logger.info("Added child %d to union %d", child_id, union_id)
        return link

    async def remove_union_child(self, union_id: int, child_id: int) -> UnionChild:
        async with self._lock:
            link = self._union_children.pop((union_id, child_id), None)
        if link is None:
            raise NotFoundError("Union child", child_id)
        logger.info("Removed child %d from union %d", child_id, union_id)
        return link

    async def list_union_children(self, union_id: int) -> list[UnionChild]:
        if union_id not in self._unions:
            raise NotFoundError("Union", union_id)
        return order_children(
            [link for link in list(self._union_children.values()) if link.union_id == union_id]
        )

    # -- reads ---------------------------------------------------------------

    async def snapshot(self, root_id: int | None = None, max_depth: int | None = None) -> GraphSnapshot:
        # The whole graph is already in memory; the bounds are a backend hint.
        async with self._lock:
            members = list(self._members.values())
            relationships = list(self._relationships.values())
        return GraphSnapshot.build(members, relationships)

    async def union_snapshot(self) -> UnionSnapshot:
        async with self._lock:
            members = list(self._members.values())
            unions = list(self._unions.values())
            children = list(self._union_children.values())
        return UnionSnapshot.build(members, unions, children)

    async def stats(self) -> dict:
        return {
            "members": len(self._members),
            "relationships": len(self._relationships),
            "unions": len(self._unions),
            "union_children": len(self._union_children),
        }
