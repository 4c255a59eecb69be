"""Tests for the descendant projector."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from familyvine.graph.errors import NotFoundError, ValidationError
from familyvine.graph.lineage import aproject_descendants, project_descendants
from familyvine.graph.records import Union
from familyvine.graph.store import InMemoryGraphStore


@dataclass
class Lineage:
    store: InMemoryGraphStore
    root: Union
    tom_eve: Union
    kid_zoe: Union
    ids: dict


@pytest.fixture
async def lineage(store):
    """John + Mary -> Tom, Ann; Tom + Eve -> Kid; Kid + Zoe."""
    ids = {}
    for first, gender in [
        ("John", "Male"), ("Mary", "Female"), ("Tom", "Male"), ("Ann", "Female"),
        ("Eve", "Female"), ("Kid", "Male"), ("Zoe", "Female"),
    ]:
        ids[first] = (await store.add_member(first, "Smith", gender)).id

    root = await store.create_union(ids["John"], ids["Mary"], "marriage", is_primary=True)
    await store.add_union_child(root.id, ids["Ann"], birth_order=2)
    await store.add_union_child(root.id, ids["Tom"], birth_order=1)
    tom_eve = await store.create_union(ids["Tom"], ids["Eve"], "marriage")
    await store.add_union_child(tom_eve.id, ids["Kid"], birth_order=1)
    kid_zoe = await store.create_union(ids["Kid"], ids["Zoe"])
    return Lineage(store=store, root=root, tom_eve=tom_eve, kid_zoe=kid_zoe, ids=ids)


def union_ids(result):
    return [[f.union.id for f in g.unions] for g in result.generations]


class TestProjectDescendants:
    """Tests for project_descendants over a union snapshot."""

    async def test_generations(self, lineage):
        result = project_descendants(await lineage.store.union_snapshot(), lineage.root.id)
        assert union_ids(result) == [[lineage.root.id], [lineage.tom_eve.id], [lineage.kid_zoe.id]]
        assert [g.number for g in result.generations] == [1, 2, 3]
        assert result.total_unions == 3
        assert result.total_members == 6
        assert result.max_generations == 4

    async def test_root_family(self, lineage):
        result = project_descendants(await lineage.store.union_snapshot(), lineage.root.id)
        family = result.generations[0].unions[0]
        assert family.partner1.first_name == "John"
        assert family.partner2.first_name == "Mary"
        assert [(c.member.first_name, c.birth_order, c.has_unions) for c in family.children] == [
            ("Tom", 1, True), ("Ann", 2, False),
        ]

    async def test_generation_limit(self, lineage):
        result = project_descendants(await lineage.store.union_snapshot(), lineage.root.id, 2)
        assert union_ids(result) == [[lineage.root.id], [lineage.tom_eve.id]]
        assert result.total_unions == 2
        assert result.total_members == 4

    async def test_stops_when_a_generation_is_empty(self, lineage):
        result = project_descendants(await lineage.store.union_snapshot(), lineage.root.id, 10)
        assert len(result.generations) == 3
        assert result.max_generations == 10

    async def test_primary_union_first(self, lineage):
        store = lineage.store
        second = await store.create_union(lineage.ids["Tom"], lineage.ids["Zoe"], is_primary=True)
        result = project_descendants(await store.union_snapshot(), lineage.root.id, 2)
        assert union_ids(result)[1] == [second.id, lineage.tom_eve.id]

    async def test_union_inside_family_shown_once(self, lineage):
        store = lineage.store
        both = await store.create_union(lineage.ids["Ann"], lineage.ids["Tom"])
        result = project_descendants(await store.union_snapshot(), lineage.root.id, 2)
        assert union_ids(result)[1] == [lineage.tom_eve.id, both.id]

    async def test_single_partner_union(self, store):
        solo = await store.add_member("Solo")
        child = await store.add_member("Child")
        union = await store.create_union(solo.id)
        await store.add_union_child(union.id, child.id)
        result = project_descendants(await store.union_snapshot(), union.id)
        family = result.generations[0].unions[0]
        assert family.partner2 is None
        assert [c.member.id for c in family.children] == [child.id]
        assert result.total_members == 1

    async def test_unknown_union(self, store):
        with pytest.raises(NotFoundError):
            project_descendants(await store.union_snapshot(), 404)

    async def test_generations_must_be_positive(self, lineage):
        with pytest.raises(ValidationError):
            project_descendants(await lineage.store.union_snapshot(), lineage.root.id, 0)


class TestAsyncProjectDescendants:
    async def test_matches_sync_walk(self, lineage):
        sync_result = project_descendants(await lineage.store.union_snapshot(), lineage.root.id, 3)
        async_result = await aproject_descendants(lineage.store, lineage.root.id, 3)
        assert async_result == sync_result
