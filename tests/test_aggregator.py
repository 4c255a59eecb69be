"""Tests for the relationship aggregation pipeline."""

from __future__ import annotations

from familyvine.graph.aggregator import (
    AnyParents,
    ExactlyTwoParents,
    build_relationship_panel,
    combine_parent_relationships,
    group_relationships_by_category,
    parent_policy,
    process_relationships,
    sort_relationships_by_priority,
)
from familyvine.graph.records import RelationshipView
from familyvine.graph.types import Category, Direction, Gender

OUT = Direction.OUTGOING
IN = Direction.INCOMING


def view(view_id, related_id, rel_type, direction=OUT, first="P", last="Smith", gender=Gender.UNKNOWN):
    """View from subject member 100."""
    subject = 100
    m1, m2 = (subject, related_id) if direction is OUT else (related_id, subject)
    return RelationshipView(
        id=view_id,
        member1_id=m1,
        member2_id=m2,
        relationship_type=rel_type,
        direction=direction,
        related_id=related_id,
        related_first_name=first,
        related_last_name=last,
        related_gender=gender,
        related_photo_url=f"/p/{related_id}.jpg",
    )


class TestProcessRelationships:
    """One record per counter-party."""

    def test_prefers_outgoing(self):
        inc = view(1, 7, "father", IN)
        out = view(2, 7, "son", OUT)
        assert process_relationships([inc, out]) == [out]

    def test_first_outgoing_wins(self):
        a = view(1, 7, "son", OUT)
        b = view(2, 7, "other", OUT)
        assert process_relationships([a, b]) == [a]

    def test_incoming_only_keeps_first(self):
        a = view(1, 7, "father", IN)
        b = view(2, 7, "other", IN)
        assert process_relationships([a, b]) == [a]

    def test_one_per_person_in_first_seen_order(self):
        views = [view(1, 9, "cousin", IN), view(2, 3, "son", OUT), view(3, 9, "cousin", OUT)]
        result = process_relationships(views)
        assert [v.related_id for v in result] == [9, 3]
        assert result[0].id == 3

    def test_idempotent(self):
        views = [view(1, 7, "father", IN), view(2, 7, "son", OUT), view(3, 8, "sister", IN)]
        once = process_relationships(views)
        assert process_relationships(once) == once

    def test_empty(self):
        assert process_relationships([]) == []


class TestCombineParents:
    """Parent combination."""

    def test_two_parents_merge(self):
        dad = view(11, 1, "son", first="John", gender=Gender.MALE)
        mom = view(12, 2, "son", first="Mary", gender=Gender.FEMALE)
        sister = view(13, 3, "sister", IN, first="Ann")
        result = combine_parent_relationships([sister, dad, mom])

        assert len(result) == 2
        combined = result[0]
        assert combined.is_combined
        assert combined.id == "combined-parents-11-12"
        assert combined.relationship_type == "parents"
        assert combined.related_first_name == "John & Mary"
        assert combined.related_name == "John & Mary Smith"
        assert [p.id for p in combined.parents] == [1, 2]
        assert [p.name for p in combined.parents] == ["John Smith", "Mary Smith"]
        assert combined.parents[0].photo == "/p/1.jpg"
        assert result[1] is sister

    def test_single_parent_passes_through(self):
        dad = view(11, 1, "daughter")
        views = [dad, view(13, 3, "sister", IN)]
        assert combine_parent_relationships(views) == views

    def test_three_parents_pass_through(self):
        views = [view(11, 1, "son"), view(12, 2, "son"), view(14, 4, "son")]
        assert combine_parent_relationships(views) == views

    def test_incoming_child_edges_are_not_parents(self):
        """'X is son of me' means X is my child, not my parent."""
        views = [view(11, 1, "son", IN), view(12, 2, "daughter", IN)]
        assert combine_parent_relationships(views) == views

    def test_any_parents_policy(self):
        dad = view(11, 1, "son", first="John")
        result = combine_parent_relationships([dad], AnyParents())
        assert result[0].is_combined
        assert result[0].related_first_name == "John"

        three = [view(11, 1, "son"), view(12, 2, "son"), view(14, 4, "son")]
        assert len(combine_parent_relationships(three, AnyParents())) == 1

    def test_policy_lookup(self):
        assert isinstance(parent_policy("any"), AnyParents)
        assert isinstance(parent_policy("exact_two"), ExactlyTwoParents)
        assert isinstance(parent_policy(None), ExactlyTwoParents)
        assert isinstance(parent_policy("unknown"), ExactlyTwoParents)

    def test_inputs_not_mutated(self):
        dad = view(11, 1, "son", first="John")
        mom = view(12, 2, "son", first="Mary")
        combine_parent_relationships([dad, mom])
        assert dad.relationship_type == "son"
        assert not dad.is_combined
        assert dad.parents == []


class TestGroupAndSort:
    def test_grouping_is_a_partition(self):
        views = [
            view(1, 1, "father", IN), view(2, 2, "wife", IN), view(3, 3, "son", IN),
            view(4, 4, "brother", IN), view(5, 5, "grandson", IN), view(6, 6, "aunt", IN),
            view(7, 7, "other", IN), view(8, 8, "godparent", IN),
        ]
        grouped = group_relationships_by_category(views)
        assert set(grouped) == set(Category)
        flat = [v for bucket in grouped.values() for v in bucket]
        assert sorted(v.id for v in flat) == [v.id for v in views]
        assert [v.id for v in grouped[Category.OTHER]] == [7, 8]
        assert [v.id for v in grouped[Category.GRANDPARENTS]] == [5]

    def test_empty_buckets_present(self):
        grouped = group_relationships_by_category([])
        assert all(grouped[c] == [] for c in Category)

    def test_priority_order(self):
        views = [view(1, 1, "cousin"), view(2, 2, "father"), view(3, 3, "mother")]
        result = sort_relationships_by_priority(views)
        assert [v.relationship_type for v in result] == ["father", "mother", "cousin"]

    def test_sort_is_stable_and_unranked_last(self):
        views = [
            view(1, 1, "other"), view(2, 2, "sister"), view(3, 3, "mystery"),
            view(4, 4, "sister"), view(5, 5, "parents"),
        ]
        result = sort_relationships_by_priority(views)
        assert [v.id for v in result] == [5, 2, 4, 1, 3]


class TestBuildPanel:
    def test_full_pipeline(self):
        views = [
            view(1, 1, "son", OUT, first="John", gender=Gender.MALE),
            view(2, 2, "son", OUT, first="Mary", gender=Gender.FEMALE),
            view(3, 1, "father", IN, first="John", gender=Gender.MALE),
            view(4, 5, "cousin", IN, first="Sam"),
            view(5, 3, "sister", IN, first="Ann"),
        ]
        panel = build_relationship_panel(views)

        assert [v.relationship_type for v in panel.relationships] == ["parents", "sister", "cousin"]
        assert panel.relationships[0].id == "combined-parents-1-2"
        assert [v.id for v in panel.categories[Category.PARENTS]] == ["combined-parents-1-2"]
        assert [v.id for v in panel.categories[Category.SIBLINGS]] == [5]
        assert [v.id for v in panel.categories[Category.EXTENDED]] == [4]
        assert panel.categories[Category.CHILDREN] == []
