"""Pytest fixtures for relationship graph tests."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from familyvine.graph.records import Member
from familyvine.graph.store import InMemoryGraphStore


@dataclass
class Family:
    """A small seeded family: John + Mary, their son Tom, Tom's sister Ann, cousin Sam."""
    store: InMemoryGraphStore
    john: Member
    mary: Member
    tom: Member
    ann: Member
    sam: Member


@pytest.fixture
def store():
    """Empty in-memory graph store."""
    return InMemoryGraphStore()


@pytest.fixture
async def family(store):
    """Store seeded with one row per relationship (no reciprocal rows)."""
    john = await store.add_member("John", "Smith", "Male")
    mary = await store.add_member("Mary", "Smith", "Female")
    tom = await store.add_member("Tom", "Smith", "Male", photo_url="/photos/tom.jpg")
    ann = await store.add_member("Ann", "Smith", "Female")
    sam = await store.add_member("Sam", "Lee", "Other")

    await store.create_relationship(tom.id, john.id, "son")
    await store.create_relationship(tom.id, mary.id, "son")
    await store.create_relationship(john.id, mary.id, "husband")
    await store.create_relationship(ann.id, tom.id, "sister")
    await store.create_relationship(sam.id, tom.id, "cousin")
    return Family(store=store, john=john, mary=mary, tom=tom, ann=ann, sam=sam)
