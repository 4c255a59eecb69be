"""Plain data records for the relationship graph engine.

No DB, no I/O. The stores produce these, the aggregator and the projectors
consume them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from familyvine.graph.types import Direction, Gender, RelationshipType, UnionType


@dataclass
class Member:
    id: int
    first_name: str
    last_name: str = ""
    gender: Gender = Gender.UNKNOWN
    is_alive: bool = True
    birth_date: date | None = None
    death_date: date | None = None
    photo_url: str | None = None
    created_at: datetime | None = None

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class Relationship:
    """Stored edge: member1 is `relationship_type` of member2."""
    id: int
    member1_id: int
    member2_id: int
    relationship_type: RelationshipType
    created_at: datetime

    def other_end(self, member_id: int) -> int:
        return self.member2_id if self.member1_id == member_id else self.member1_id


@dataclass
class Union:
    id: int
    partner1_id: int
    partner2_id: int | None = None
    union_type: UnionType | None = None
    is_primary: bool = False
    union_date: date | None = None
    notes: str | None = None
    created_at: datetime | None = None

    def partner_of(self, member_id: int) -> int | None:
        if self.partner1_id == member_id:
            return self.partner2_id
        return self.partner1_id


@dataclass
class UnionChild:
    """Child born into (or raised within) a union."""
    union_id: int
    child_id: int
    birth_order: int | None = None
    created_at: datetime | None = None


@dataclass
class ParentRef:
    id: int
    name: str
    photo: str | None
    type: str


@dataclass
class RelationshipView:
    """A stored relationship seen from one subject member.

    `direction` is outgoing when the subject is member1. The related_* fields
    cache the counter-party so the panel can be rendered without more lookups.
    """
    id: int | str
    member1_id: int
    member2_id: int
    relationship_type: str
    direction: Direction
    related_id: int
    related_first_name: str
    related_last_name: str = ""
    related_gender: Gender = Gender.UNKNOWN
    related_photo_url: str | None = None
    created_at: datetime | None = None
    is_combined: bool = False
    parents: list[ParentRef] = field(default_factory=list)

    @property
    def related_name(self) -> str:
        return f"{self.related_first_name} {self.related_last_name}".strip()

    @classmethod
    def from_edge(cls, rel: Relationship, subject_id: int, related: Member) -> RelationshipView:
        direction = Direction.OUTGOING if rel.member1_id == subject_id else Direction.INCOMING
        return cls(
            id=rel.id,
            member1_id=rel.member1_id,
            member2_id=rel.member2_id,
            relationship_type=rel.relationship_type.value,
            direction=direction,
            related_id=related.id,
            related_first_name=related.first_name,
            related_last_name=related.last_name,
            related_gender=related.gender,
            related_photo_url=related.photo_url,
            created_at=rel.created_at,
        )


# ---------------------------------------------------------------------------
# Tree projection output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TreeNode:
    id: int
    label: str
    photo_url: str | None = None


@dataclass(frozen=True)
class TreeEdge:
    """`label` is the relationship type as seen from `from_id`."""
    from_id: int
    to_id: int
    label: str


@dataclass
class FamilyTree:
    root_id: int
    depth: int
    nodes: list[TreeNode] = field(default_factory=list)
    edges: list[TreeEdge] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Descendant projection output
# ---------------------------------------------------------------------------

@dataclass
class ChildEntry:
    member: Member
    birth_order: int | None = None
    has_unions: bool = False


@dataclass
class UnionFamily:
    """A union with both partners resolved and its children in birth order."""
    union: Union
    partner1: Member
    partner2: Member | None = None
    children: list[ChildEntry] = field(default_factory=list)


@dataclass
class Generation:
    number: int
    unions: list[UnionFamily] = field(default_factory=list)


@dataclass
class Descendants:
    root_union_id: int
    max_generations: int
    generations: list[Generation] = field(default_factory=list)
    total_members: int = 0
    total_unions: int = 0
