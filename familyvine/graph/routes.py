"""Relationship graph API endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Request

from familyvine.graph import service
from familyvine.graph.aggregator import parent_policy
from familyvine.graph.config import GraphConfig
from familyvine.graph.errors import NotFoundError
from familyvine.graph.models import (
    CanonicalRelationshipOut,
    CreateMemberIn,
    CreateRelationshipIn,
    ChildEntryOut,
    CreateUnionIn,
    DescendantsOut,
    GenerationOut,
    MemberOut,
    MemberUnionOut,
    MemberUnionsOut,
    ParentRefOut,
    RelationshipOut,
    RelationshipPanelOut,
    RelationshipViewOut,
    RelationshipWriteOut,
    TreeEdgeOut,
    TreeNodeOut,
    TreeOut,
    UnionChildIn,
    UnionChildOut,
    UnionFamilyOut,
    UnionOut,
    UpdateUnionIn,
)
from familyvine.graph.lineage import aproject_descendants, union_family
from familyvine.graph.projector import aproject_tree
from familyvine.graph.records import Member, Relationship, RelationshipView, Union, UnionChild, UnionFamily
from familyvine.graph.resolver import generic_role, related_role
from familyvine.graph.store import GraphStore
from familyvine.graph.types import STORABLE_TYPES, category_for

logger = logging.getLogger("familyvine.graph.routes")

router = APIRouter(prefix="/api/v1", tags=["graph"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _store(request: Request) -> GraphStore:
    return request.app.state.store


def _config(request: Request) -> GraphConfig:
    return request.app.state.graph_config


def _member_out(m: Member) -> MemberOut:
    return MemberOut(
        id=m.id,
        first_name=m.first_name,
        last_name=m.last_name,
        name=m.name,
        gender=m.gender.value,
        is_alive=m.is_alive,
        birth_date=m.birth_date,
        death_date=m.death_date,
        photo_url=m.photo_url,
        created_at=m.created_at,
    )


def _rel_out(r: Relationship) -> RelationshipOut:
    return RelationshipOut(
        id=r.id,
        member1_id=r.member1_id,
        member2_id=r.member2_id,
        relationship_type=r.relationship_type.value,
        created_at=r.created_at,
    )


def _view_out(v: RelationshipView, config: GraphConfig) -> RelationshipViewOut:
    return RelationshipViewOut(
        id=v.id,
        member1_id=v.member1_id,
        member2_id=v.member2_id,
        relationship_type=v.relationship_type,
        created_at=v.created_at,
        direction=v.direction.value,
        related_id=v.related_id,
        related_first_name=v.related_first_name,
        related_last_name=v.related_last_name,
        related_gender=v.related_gender.value,
        related_photo_url=v.related_photo_url,
        related_role=related_role(v, config.gender_fallback),
        generic_role=generic_role(v),
    )


def _canonical_out(v: RelationshipView, config: GraphConfig) -> CanonicalRelationshipOut:
    return CanonicalRelationshipOut(
        id=v.id,
        member1_id=v.member1_id,
        member2_id=v.member2_id,
        relationship_type=v.relationship_type,
        direction=v.direction.value,
        related_id=v.related_id,
        related_name=v.related_name,
        related_gender=v.related_gender.value,
        related_photo_url=v.related_photo_url,
        related_role=related_role(v, config.gender_fallback),
        generic_role=generic_role(v),
        is_combined=v.is_combined,
        parents=[
            ParentRefOut(id=p.id, name=p.name, photo=p.photo, type=p.type) for p in v.parents
        ],
        category=category_for(v.relationship_type).value,
        created_at=v.created_at,
    )


def _union_out(u: Union) -> UnionOut:
    return UnionOut(
        id=u.id,
        partner1_id=u.partner1_id,
        partner2_id=u.partner2_id,
        union_type=u.union_type.value if u.union_type else None,
        is_primary=u.is_primary,
        union_date=u.union_date,
        notes=u.notes,
        created_at=u.created_at,
    )


def _child_out(link: UnionChild, child: Member | None) -> UnionChildOut:
    return UnionChildOut(
        union_id=link.union_id,
        child_id=link.child_id,
        birth_order=link.birth_order,
        child=_member_out(child) if child else None,
        created_at=link.created_at,
    )


def _family_out(f: UnionFamily) -> UnionFamilyOut:
    return UnionFamilyOut(
        **_union_out(f.union).model_dump(),
        partner1=_member_out(f.partner1),
        partner2=_member_out(f.partner2) if f.partner2 else None,
        children=[
            ChildEntryOut(
                **_member_out(c.member).model_dump(),
                birth_order=c.birth_order,
                has_unions=c.has_unions,
            )
            for c in f.children
        ],
    )


# ---------------------------------------------------------------------------
# Members (thin upstream surface)
# ---------------------------------------------------------------------------

@router.post("/members", status_code=201)
async def create_member(request: Request, body: CreateMemberIn) -> MemberOut:
    """Add a member to the graph."""
    member = await _store(request).add_member(
        first_name=body.first_name,
        last_name=body.last_name,
        gender=body.gender,
        is_alive=body.is_alive,
        birth_date=body.birth_date,
        death_date=body.death_date,
        photo_url=body.photo_url,
    )
    return _member_out(member)


@router.get("/members")
async def list_members(request: Request) -> list[MemberOut]:
    """List all members."""
    return [_member_out(m) for m in await _store(request).list_members()]


@router.get("/members/{member_id}")
async def get_member(request: Request, member_id: int) -> MemberOut:
    """Get a single member."""
    member = await _store(request).get_member(member_id)
    if member is None:
        raise HTTPException(404, f"Member {member_id} not found")
    return _member_out(member)


@router.delete("/members/{member_id}")
async def delete_member(request: Request, member_id: int) -> dict:
    """Delete a member with every relationship and union touching them."""
    await _store(request).delete_member(member_id)
    return {"deleted": True}


@router.get("/members/{member_id}/relationships")
async def get_relationship_panel(request: Request, member_id: int) -> RelationshipPanelOut:
    """Canonical, de-duplicated, grouped and ordered relationships of a member."""
    config = _config(request)
    panel = await service.member_relationship_panel(
        _store(request), member_id, parent_policy(config.parent_combination)
    )
    return RelationshipPanelOut(
        member_id=member_id,
        relationships=[_canonical_out(v, config) for v in panel.relationships],
        categories={
            category.value: [_canonical_out(v, config) for v in views]
            for category, views in panel.categories.items()
        },
    )


@router.get("/members/{member_id}/unions")
async def get_member_unions(request: Request, member_id: int) -> MemberUnionsOut:
    """All unions of a member, primary first, each with the other partner."""
    store = _store(request)
    member = await store.require_member(member_id)
    unions = await store.list_unions(member_id)

    items: list[MemberUnionOut] = []
    for u in unions:
        partner_id = u.partner_of(member_id)
        partner = await store.get_member(partner_id) if partner_id is not None else None
        items.append(MemberUnionOut(
            **_union_out(u).model_dump(),
            partner=_member_out(partner) if partner else None,
        ))
    return MemberUnionsOut(member=_member_out(member), unions=items)


# ---------------------------------------------------------------------------
# Relationships
# ---------------------------------------------------------------------------

@router.get("/relationships/types")
async def list_relationship_types() -> list[str]:
    """All storable relationship types, sorted."""
    return sorted(t.value for t in STORABLE_TYPES)


@router.get("/relationships", response_model=None)
async def list_relationships(
    request: Request,
    member_id: int | None = Query(None, description="Tag each edge with its direction relative to this member"),
) -> list:
    """List relationships, optionally from one member's point of view."""
    store = _store(request)
    if member_id is None:
        return [_rel_out(r) for r in await store.list_relationships()]
    config = _config(request)
    return [_view_out(v, config) for v in await store.list_relationships(member_id)]


@router.post("/relationships", status_code=201)
async def create_relationship(
    request: Request,
    body: CreateRelationshipIn,
    mirror: bool | None = Query(None, description="Also store the reciprocal row"),
) -> RelationshipWriteOut:
    """Add a relationship: member1 is <relationship_type> of member2."""
    config = _config(request)
    result = await service.create_relationship(
        _store(request),
        body.member1_id,
        body.member2_id,
        body.relationship_type,
        mirror=config.mirror_reciprocals if mirror is None else mirror,
        fallback=config.gender_fallback,
    )
    if result.reciprocal_error:
        logger.warning(
            "Relationship %d stored without its reciprocal: %s",
            result.relationship.id, result.reciprocal_error,
        )
    return RelationshipWriteOut(
        **_rel_out(result.relationship).model_dump(),
        reciprocal=_rel_out(result.reciprocal) if result.reciprocal else None,
        reciprocal_error=result.reciprocal_error,
    )


@router.get("/relationships/{rel_id}")
async def get_relationship(request: Request, rel_id: int) -> RelationshipOut:
    """Get a single relationship."""
    return _rel_out(await _store(request).get_relationship(rel_id))


@router.delete("/relationships/{rel_id}")
async def delete_relationship(
    request: Request,
    rel_id: int,
    mirror: bool | None = Query(None, description="Also delete the reciprocal row if stored"),
) -> dict:
    """Delete a relationship."""
    config = _config(request)
    result = await service.delete_relationship(
        _store(request),
        rel_id,
        mirror=config.mirror_reciprocals if mirror is None else mirror,
        fallback=config.gender_fallback,
    )
    out: dict = {"deleted": True}
    if result.reciprocal is not None:
        out["reciprocal_deleted"] = result.reciprocal.id
    if result.reciprocal_error:
        out["reciprocal_error"] = result.reciprocal_error
    return out


# ---------------------------------------------------------------------------
# Unions
# ---------------------------------------------------------------------------

@router.post("/unions", status_code=201)
async def create_union(request: Request, body: CreateUnionIn) -> UnionOut:
    """Record a partnership between two members (second partner optional)."""
    union = await _store(request).create_union(
        partner1_id=body.partner1_id,
        partner2_id=body.partner2_id,
        union_type=body.union_type,
        is_primary=body.is_primary,
        union_date=body.union_date,
        notes=body.notes,
    )
    return _union_out(union)


@router.get("/unions")
async def list_unions(
    request: Request,
    member_id: int | None = Query(None, description="Only unions with this partner"),
) -> list[UnionOut]:
    """List unions."""
    return [_union_out(u) for u in await _store(request).list_unions(member_id)]


@router.get("/unions/{union_id}")
async def get_union(request: Request, union_id: int) -> UnionOut:
    return _union_out(await _store(request).get_union(union_id))


@router.patch("/unions/{union_id}")
async def update_union(request: Request, union_id: int, body: UpdateUnionIn) -> UnionOut:
    """Update the supplied union fields only."""
    changes = body.model_dump(exclude_unset=True)
    union = await _store(request).update_union(union_id, **changes)
    return _union_out(union)


@router.delete("/unions/{union_id}")
async def delete_union(request: Request, union_id: int) -> dict:
    await _store(request).delete_union(union_id)
    return {"deleted": True}


@router.get("/unions/{union_id}/children")
async def list_union_children(request: Request, union_id: int) -> list[UnionChildOut]:
    """Children of a union in birth order."""
    store = _store(request)
    links = await store.list_union_children(union_id)
    return [_child_out(link, await store.get_member(link.child_id)) for link in links]


@router.post("/unions/{union_id}/children", status_code=201)
async def add_union_child(request: Request, union_id: int, body: UnionChildIn) -> UnionChildOut:
    """Link a child to a union; re-adding the same child only updates its birth order."""
    store = _store(request)
    link = await store.add_union_child(union_id, body.child_id, body.birth_order)
    return _child_out(link, await store.get_member(link.child_id))


@router.delete("/unions/{union_id}/children/{child_id}")
async def remove_union_child(request: Request, union_id: int, child_id: int) -> dict:
    await _store(request).remove_union_child(union_id, child_id)
    return {"deleted": True}


# ---------------------------------------------------------------------------
# Tree projection
# ---------------------------------------------------------------------------

@router.get("/tree/{root_id}")
async def get_tree(
    request: Request,
    root_id: int,
    depth: int | None = Query(None, ge=0, description="Maximum hops from the root (default 3)"),
) -> TreeOut:
    """Bounded, de-duplicated node/edge view around a root member."""
    config = _config(request)
    max_depth = config.tree_default_depth if depth is None else depth
    if max_depth > config.tree_max_depth:
        raise HTTPException(422, f"depth must be <= {config.tree_max_depth}")
    tree = await aproject_tree(_store(request), root_id, max_depth)
    return TreeOut(
        root_id=tree.root_id,
        depth=tree.depth,
        nodes=[TreeNodeOut(id=n.id, label=n.label, photo_url=n.photo_url) for n in tree.nodes],
        edges=[TreeEdgeOut(from_id=e.from_id, to_id=e.to_id, label=e.label) for e in tree.edges],
    )


@router.get("/tree/union/{union_id}")
async def get_union_family(request: Request, union_id: int) -> UnionFamilyOut:
    """One union with both partners and its children in birth order."""
    snapshot = await _store(request).union_snapshot()
    union = snapshot.unions.get(union_id)
    family = union_family(snapshot, union) if union else None
    if family is None:
        raise NotFoundError("Union", union_id)
    return _family_out(family)


@router.get("/tree/descendants/{union_id}")
async def get_descendants(
    request: Request,
    union_id: int,
    max_generations: int | None = Query(None, ge=1, description="Generations to include (default 4)"),
) -> DescendantsOut:
    """Generations of unions descending from a starting union."""
    config = _config(request)
    limit = config.descendant_default_generations if max_generations is None else max_generations
    if limit > config.descendant_max_generations:
        raise HTTPException(422, f"max_generations must be <= {config.descendant_max_generations}")
    result = await aproject_descendants(_store(request), union_id, limit)
    return DescendantsOut(
        root_union_id=result.root_union_id,
        max_generations=result.max_generations,
        generations=[
            GenerationOut(generation=g.number, unions=[_family_out(f) for f in g.unions])
            for g in result.generations
        ],
        total_members=result.total_members,
        total_unions=result.total_unions,
    )
