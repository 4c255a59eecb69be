"""Pydantic models for the relationship graph API."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

class CreateMemberIn(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = ""
    gender: str | None = None
    is_alive: bool = True
    birth_date: date | None = None
    death_date: date | None = None
    photo_url: str | None = None


class MemberOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    name: str
    gender: str
    is_alive: bool
    birth_date: date | None = None
    death_date: date | None = None
    photo_url: str | None = None
    created_at: datetime | None = None


# ---------------------------------------------------------------------------
# Relationships
# ---------------------------------------------------------------------------

class CreateRelationshipIn(BaseModel):
    member1_id: int
    member2_id: int
    relationship_type: str


class RelationshipOut(BaseModel):
    id: int
    member1_id: int
    member2_id: int
    relationship_type: str
    created_at: datetime


class RelationshipViewOut(RelationshipOut):
    direction: str
    related_id: int
    related_first_name: str
    related_last_name: str
    related_gender: str
    related_photo_url: str | None = None
    related_role: str
    generic_role: str


class RelationshipWriteOut(RelationshipOut):
    reciprocal: RelationshipOut | None = None
    reciprocal_error: str | None = None


class ParentRefOut(BaseModel):
    id: int
    name: str
    photo: str | None = None
    type: str


class CanonicalRelationshipOut(BaseModel):
    id: int | str
    member1_id: int
    member2_id: int
    relationship_type: str
    direction: str
    related_id: int
    related_name: str
    related_gender: str
    related_photo_url: str | None = None
    related_role: str
    generic_role: str
    is_combined: bool = False
    parents: list[ParentRefOut] = []
    category: str
    created_at: datetime | None = None


class RelationshipPanelOut(BaseModel):
    member_id: int
    relationships: list[CanonicalRelationshipOut]
    categories: dict[str, list[CanonicalRelationshipOut]]


# ---------------------------------------------------------------------------
# Unions
# ---------------------------------------------------------------------------

class CreateUnionIn(BaseModel):
    partner1_id: int
    partner2_id: int | None = None
    union_type: str | None = None
    is_primary: bool = False
    union_date: date | None = None
    notes: str | None = None


class UpdateUnionIn(BaseModel):
    partner1_id: int | None = None
    partner2_id: int | None = None
    union_type: str | None = None
    is_primary: bool | None = None
    union_date: date | None = None
    notes: str | None = None


class UnionOut(BaseModel):
    id: int
    partner1_id: int
    partner2_id: int | None = None
    union_type: str | None = None
    is_primary: bool
    union_date: date | None = None
    notes: str | None = None
    created_at: datetime | None = None


class MemberUnionOut(UnionOut):
    partner: MemberOut | None = None


class MemberUnionsOut(BaseModel):
    member: MemberOut
    unions: list[MemberUnionOut]


class UnionChildIn(BaseModel):
    child_id: int
    birth_order: int | None = Field(default=None, ge=1)


class UnionChildOut(BaseModel):
    union_id: int
    child_id: int
    birth_order: int | None = None
    child: MemberOut | None = None
    created_at: datetime | None = None


# ---------------------------------------------------------------------------
# Tree projection
# ---------------------------------------------------------------------------

class TreeNodeOut(BaseModel):
    id: int
    label: str
    photo_url: str | None = None


class TreeEdgeOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_id: int = Field(alias="from")
    to_id: int = Field(alias="to")
    label: str


class TreeOut(BaseModel):
    root_id: int
    depth: int
    nodes: list[TreeNodeOut]
    edges: list[TreeEdgeOut]


# ---------------------------------------------------------------------------
# Descendant projection
# ---------------------------------------------------------------------------

class ChildEntryOut(MemberOut):
    birth_order: int | None = None
    has_unions: bool = False


class UnionFamilyOut(UnionOut):
    partner1: MemberOut
    partner2: MemberOut | None = None
    children: list[ChildEntryOut] = []


class GenerationOut(BaseModel):
    generation: int
    unions: list[UnionFamilyOut]


class DescendantsOut(BaseModel):
    root_union_id: int
    max_generations: int
    generations: list[GenerationOut]
    total_members: int
    total_unions: int
