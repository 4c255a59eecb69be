"""Tests for the in-memory GraphStore."""

from __future__ import annotations

import pytest

from familyvine.graph.errors import (
    DuplicateRelationshipError,
    InvalidTypeError,
    NotFoundError,
    SelfRelationshipError,
    UnknownMemberError,
    ValidationError,
)
from familyvine.graph.records import RelationshipView
from familyvine.graph.store import UNSET
from familyvine.graph.types import Direction, Gender, RelationshipType, UnionType


class TestMembers:
    """Tests for the member surface."""

    async def test_add_and_get(self, store):
        member = await store.add_member("Ada", "Byron", "female")
        assert member.id == 1
        assert member.gender is Gender.FEMALE
        assert member.name == "Ada Byron"
        assert await store.get_member(member.id) == member

    async def test_get_missing_returns_none(self, store):
        assert await store.get_member(42) is None

    async def test_require_missing_raises(self, store):
        with pytest.raises(UnknownMemberError):
            await store.require_member(42)

    async def test_delete_cascades(self, family):
        store = family.store
        await store.create_union(family.john.id, family.mary.id, "marriage")
        await store.delete_member(family.tom.id)

        rels = await store.list_relationships()
        assert all(family.tom.id not in (r.member1_id, r.member2_id) for r in rels)
        assert len(rels) == 1
        assert len(await store.list_unions()) == 1

        await store.delete_member(family.john.id)
        assert await store.list_unions() == []

    async def test_delete_missing(self, store):
        with pytest.raises(UnknownMemberError):
            await store.delete_member(9)


class TestCreateRelationship:
    """Tests for create_relationship validation."""

    async def test_create(self, store):
        a = await store.add_member("A")
        b = await store.add_member("B")
        rel = await store.create_relationship(a.id, b.id, "father")
        assert rel.relationship_type is RelationshipType.FATHER
        assert rel.created_at is not None
        assert await store.get_relationship(rel.id) == rel

    async def test_self_relationship_rejected(self, store):
        a = await store.add_member("A")
        with pytest.raises(SelfRelationshipError):
            await store.create_relationship(a.id, a.id, "brother")

    async def test_self_check_precedes_existence_check(self, store):
        with pytest.raises(SelfRelationshipError):
            await store.create_relationship(7, 7, "brother")

    async def test_unknown_member_rejected(self, store):
        a = await store.add_member("A")
        with pytest.raises(UnknownMemberError) as exc_info:
            await store.create_relationship(a.id, 99, "father")
        assert exc_info.value.member_id == 99
        assert await store.list_relationships() == []

    async def test_invalid_type_rejected(self, store):
        a = await store.add_member("A")
        b = await store.add_member("B")
        with pytest.raises(InvalidTypeError):
            await store.create_relationship(a.id, b.id, "godfather")

    async def test_parents_is_not_storable(self, store):
        a = await store.add_member("A")
        b = await store.add_member("B")
        with pytest.raises(InvalidTypeError):
            await store.create_relationship(a.id, b.id, "parents")

    async def test_exact_duplicate_rejected(self, store):
        a = await store.add_member("A")
        b = await store.add_member("B")
        await store.create_relationship(a.id, b.id, "father")
        with pytest.raises(DuplicateRelationshipError):
            await store.create_relationship(a.id, b.id, "father")

    async def test_same_pair_other_type_allowed(self, store):
        a = await store.add_member("A")
        b = await store.add_member("B")
        await store.create_relationship(a.id, b.id, "father")
        await store.create_relationship(b.id, a.id, "son")
        await store.create_relationship(a.id, b.id, "other")
        assert len(await store.list_relationships()) == 3


class TestReadDelete:
    async def test_get_missing(self, store):
        with pytest.raises(NotFoundError):
            await store.get_relationship(1)

    async def test_delete(self, family):
        store = family.store
        rel = await store.delete_relationship(1)
        assert rel.id == 1
        with pytest.raises(NotFoundError):
            await store.get_relationship(1)
        with pytest.raises(NotFoundError):
            await store.delete_relationship(1)

    async def test_find(self, family):
        store = family.store
        found = await store.find_relationship(family.tom.id, family.john.id, "son")
        assert found is not None and found.id == 1
        assert await store.find_relationship(family.john.id, family.tom.id, "son") is None
        assert await store.find_relationship(family.tom.id, family.john.id, "nope") is None


class TestListRelationships:
    """Tests for list_relationships(member_id)."""

    async def test_all(self, family):
        rels = await family.store.list_relationships()
        assert [r.id for r in rels] == [1, 2, 3, 4, 5]

    async def test_views_carry_direction(self, family):
        views = await family.store.list_relationships(family.tom.id)
        assert all(isinstance(v, RelationshipView) for v in views)
        by_id = {v.id: v for v in views}
        assert set(by_id) == {1, 2, 4, 5}

        assert by_id[1].direction is Direction.OUTGOING
        assert by_id[1].related_id == family.john.id
        assert by_id[1].related_first_name == "John"

        assert by_id[4].direction is Direction.INCOMING
        assert by_id[4].related_id == family.ann.id
        assert by_id[4].related_gender is Gender.FEMALE

    async def test_isolated_member(self, store):
        a = await store.add_member("Loner")
        assert await store.list_relationships(a.id) == []

    async def test_unknown_member(self, store):
        with pytest.raises(UnknownMemberError):
            await store.list_relationships(5)

    async def test_both_storage_conventions(self, store):
        """With reciprocal rows stored, both edges come back."""
        a = await store.add_member("A", gender="Male")
        b = await store.add_member("B", gender="Male")
        await store.create_relationship(a.id, b.id, "father")
        await store.create_relationship(b.id, a.id, "son")
        views = await store.list_relationships(a.id)
        assert [(v.relationship_type, v.direction) for v in views] == [
            ("father", Direction.OUTGOING),
            ("son", Direction.INCOMING),
        ]


class TestUnions:
    """Tests for union CRUD."""

    async def test_create_and_get(self, family):
        store = family.store
        union = await store.create_union(family.john.id, family.mary.id, "marriage", is_primary=True)
        assert union.union_type is UnionType.MARRIAGE
        assert await store.get_union(union.id) == union
        assert union.partner_of(family.mary.id) == family.john.id

    async def test_single_partner(self, family):
        union = await family.store.create_union(family.ann.id)
        assert union.partner2_id is None
        assert union.partner_of(family.ann.id) is None

    async def test_self_union_rejected(self, family):
        with pytest.raises(SelfRelationshipError):
            await family.store.create_union(family.ann.id, family.ann.id)

    async def test_unknown_partner(self, family):
        with pytest.raises(UnknownMemberError):
            await family.store.create_union(family.ann.id, 77)

    async def test_invalid_union_type(self, family):
        with pytest.raises(InvalidTypeError):
            await family.store.create_union(family.john.id, family.mary.id, "elopement")

    async def test_update_only_supplied_fields(self, family):
        store = family.store
        union = await store.create_union(family.john.id, family.mary.id, "partnership", notes="met 1990")
        updated = await store.update_union(
            union.id, union_type="marriage", notes=UNSET, bogus="ignored"
        )
        assert updated.union_type is UnionType.MARRIAGE
        assert updated.notes == "met 1990"

        cleared = await store.update_union(union.id, notes=None)
        assert cleared.notes is None

    async def test_update_revalidates(self, family):
        store = family.store
        union = await store.create_union(family.john.id, family.mary.id)
        with pytest.raises(SelfRelationshipError):
            await store.update_union(union.id, partner2_id=family.john.id)
        with pytest.raises(NotFoundError):
            await store.update_union(99, notes="x")

    async def test_update_cannot_null_required_fields(self, family):
        store = family.store
        union = await store.create_union(family.john.id, family.mary.id, is_primary=True)
        with pytest.raises(ValidationError):
            await store.update_union(union.id, is_primary=None)
        with pytest.raises(ValidationError):
            await store.update_union(union.id, partner1_id=None, notes="lost")

        unchanged = await store.get_union(union.id)
        assert unchanged.partner1_id == family.john.id
        assert unchanged.is_primary is True
        assert unchanged.notes is None
        assert [u.id for u in await store.list_unions()] == [union.id]

    async def test_list_for_member_primary_first(self, family):
        store = family.store
        first = await store.create_union(family.john.id, family.ann.id)
        primary = await store.create_union(family.mary.id, family.john.id, is_primary=True)
        await store.create_union(family.tom.id, family.sam.id)

        unions = await store.list_unions(family.john.id)
        assert [u.id for u in unions] == [primary.id, first.id]

    async def test_list_for_unknown_member(self, store):
        with pytest.raises(UnknownMemberError):
            await store.list_unions(3)

    async def test_delete(self, family):
        store = family.store
        union = await store.create_union(family.john.id, family.mary.id)
        await store.delete_union(union.id)
        with pytest.raises(NotFoundError):
            await store.get_union(union.id)


class TestUnionChildren:
    """Tests for linking children to unions."""

    async def _union(self, family):
        return await family.store.create_union(family.john.id, family.mary.id, is_primary=True)

    async def test_add_and_list_in_birth_order(self, family):
        store = family.store
        union = await self._union(family)
        await store.add_union_child(union.id, family.sam.id)
        await store.add_union_child(union.id, family.ann.id, birth_order=2)
        await store.add_union_child(union.id, family.tom.id, birth_order=1)

        children = await store.list_union_children(union.id)
        assert [c.child_id for c in children] == [family.tom.id, family.ann.id, family.sam.id]
        assert children[-1].birth_order is None

    async def test_re_adding_is_idempotent(self, family):
        store = family.store
        union = await self._union(family)
        await store.add_union_child(union.id, family.tom.id, birth_order=1)
        again = await store.add_union_child(union.id, family.tom.id)
        assert again.birth_order == 1
        moved = await store.add_union_child(union.id, family.tom.id, birth_order=3)
        assert moved.birth_order == 3
        assert len(await store.list_union_children(union.id)) == 1

    async def test_validation(self, family):
        store = family.store
        union = await self._union(family)
        with pytest.raises(NotFoundError):
            await store.add_union_child(99, family.tom.id)
        with pytest.raises(UnknownMemberError):
            await store.add_union_child(union.id, 99)
        with pytest.raises(ValidationError):
            await store.add_union_child(union.id, family.mary.id)
        with pytest.raises(NotFoundError):
            await store.list_union_children(99)

    async def test_remove(self, family):
        store = family.store
        union = await self._union(family)
        await store.add_union_child(union.id, family.tom.id)
        removed = await store.remove_union_child(union.id, family.tom.id)
        assert removed.child_id == family.tom.id
        assert await store.list_union_children(union.id) == []
        with pytest.raises(NotFoundError):
            await store.remove_union_child(union.id, family.tom.id)

    async def test_cascades(self, family):
        store = family.store
        union = await self._union(family)
        other = await store.create_union(family.tom.id, family.sam.id)
        await store.add_union_child(union.id, family.tom.id)
        await store.add_union_child(union.id, family.ann.id)
        await store.add_union_child(other.id, family.ann.id)

        await store.delete_member(family.ann.id)
        assert [c.child_id for c in await store.list_union_children(union.id)] == [family.tom.id]
        await store.delete_union(union.id)
        assert (await store.stats())["union_children"] == 0

    async def test_union_snapshot(self, family):
        store = family.store
        first = await store.create_union(family.tom.id, family.sam.id)
        primary = await store.create_union(family.tom.id, family.ann.id, is_primary=True)
        await store.add_union_child(first.id, family.john.id, birth_order=1)

        snap = await store.union_snapshot()
        assert [u.id for u in snap.unions_of(family.tom.id)] == [primary.id, first.id]
        assert [c.child_id for c in snap.children_of(first.id)] == [family.john.id]
        assert snap.children_of(primary.id) == ()


class TestSnapshot:
    async def test_snapshot_is_isolated_from_later_writes(self, family):
        store = family.store
        snap = await store.snapshot()
        await store.create_relationship(family.ann.id, family.john.id, "daughter")
        assert len(snap.relationships) == 5
        assert [r.id for r in snap.edges_of(family.tom.id)] == [1, 2, 4, 5]
        assert snap.edges_of(12345) == ()

    async def test_stats(self, family):
        assert await family.store.stats() == {
            "members": 5, "relationships": 5, "unions": 0, "union_children": 0,
        }
