"""PostgreSQL-backed GraphStore using asyncpg.

Schema lives in `familyvine.db.SCHEMA_SQL`. Each write is a single
statement, so it is atomic at row granularity without explicit locking.
"""

from __future__ import annotations

import logging
from datetime import date

import asyncpg

from familyvine.graph.errors import (
    DuplicateRelationshipError,
    NotFoundError,
    UnknownMemberError,
)
from familyvine.graph.records import Member, Relationship, RelationshipView, Union, UnionChild
from familyvine.graph.store import (
    GraphSnapshot,
    GraphStore,
    UnionSnapshot,
    check_relationship_ids,
    check_union_child,
    check_union_partners,
    parse_relationship_type,
    parse_union_type,
    union_updates,
)
from familyvine.graph.types import Direction, Gender, RelationshipType, UnionType

logger = logging.getLogger("familyvine.graph.pg_store")

_MEMBER_COLS = (
    "id, first_name, last_name, gender, is_alive, birth_date, death_date, photo_url, created_at"
)
_REL_COLS = "id, member1_id, member2_id, relationship_type, created_at"
_UNION_COLS = (
    "id, partner1_id, partner2_id, union_type, is_primary, union_date, notes, created_at"
)
_CHILD_COLS = "union_id, child_id, birth_order, created_at"


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------

def _member(row) -> Member:
    return Member(
        id=row["id"],
        first_name=row["first_name"],
        last_name=row["last_name"] or "",
        gender=Gender.coerce(row["gender"]),
        is_alive=row["is_alive"],
        birth_date=row["birth_date"],
        death_date=row["death_date"],
        photo_url=row["photo_url"],
        created_at=row["created_at"],
    )


def _relationship(row) -> Relationship:
    return Relationship(
        id=row["id"],
        member1_id=row["member1_id"],
        member2_id=row["member2_id"],
        relationship_type=RelationshipType(row["relationship_type"]),
        created_at=row["created_at"],
    )


def _union(row) -> Union:
    return Union(
        id=row["id"],
        partner1_id=row["partner1_id"],
        partner2_id=row["partner2_id"],
        union_type=UnionType(row["union_type"]) if row["union_type"] else None,
        is_primary=row["is_primary"],
        union_date=row["union_date"],
        notes=row["notes"],
        created_at=row["created_at"],
    )


def _union_child(row) -> UnionChild:
    return UnionChild(
        union_id=row["union_id"],
        child_id=row["child_id"],
        birth_order=row["birth_order"],
        created_at=row["created_at"],
    )


class PostgresGraphStore(GraphStore):
    backend = "postgres"

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def _missing_members(self, *member_ids: int | None) -> list[int]:
        wanted = [m for m in member_ids if m is not None]
        rows = await self._pool.fetch("SELECT id FROM members WHERE id = ANY($1::int[])", wanted)
        found = {r["id"] for r in rows}
        return [m for m in wanted if m not in found]

    async def _require_members(self, *member_ids: int | None) -> None:
        missing = await self._missing_members(*member_ids)
        if missing:
            raise UnknownMemberError(missing[0])

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
        row = await self._pool.fetchrow(
            "INSERT INTO members (first_name, last_name, gender, is_alive, birth_date, death_date, photo_url) "
            "VALUES ($1, $2, $3, $4, $5, $6, $7) "
            f"RETURNING {_MEMBER_COLS}",
            first_name, last_name or "", Gender.coerce(gender).value, is_alive,
            birth_date, death_date, photo_url,
        )
        return _member(row)

    async def get_member(self, member_id: int) -> Member | None:
        row = await self._pool.fetchrow(
            f"SELECT {_MEMBER_COLS} FROM members WHERE id = $1", member_id
        )
        return _member(row) if row else None

    async def list_members(self) -> list[Member]:
        rows = await self._pool.fetch(f"SELECT {_MEMBER_COLS} FROM members ORDER BY id")
        return [_member(r) for r in rows]

    async def delete_member(self, member_id: int) -> Member:
        # Relationships and unions go with the member via ON DELETE CASCADE.
        row = await self._pool.fetchrow(
            f"DELETE FROM members WHERE id = $1 RETURNING {_MEMBER_COLS}", member_id
        )
        if row is None:
            raise UnknownMemberError(member_id)
        return _member(row)

    # -- relationships -------------------------------------------------------

    async def create_relationship(
        self, member1_id: int, member2_id: int, rel_type: RelationshipType | str
    ) -> Relationship:
        check_relationship_ids(member1_id, member2_id)
        parsed = parse_relationship_type(rel_type)
        await self._require_members(member1_id, member2_id)
        try:
            row = await self._pool.fetchrow(
                "INSERT INTO relationships (member1_id, member2_id, relationship_type) "
                f"VALUES ($1, $2, $3) RETURNING {_REL_COLS}",
                member1_id, member2_id, parsed.value,
            )
        except asyncpg.UniqueViolationError:
            raise DuplicateRelationshipError(member1_id, member2_id, parsed.value) from None
        except asyncpg.ForeignKeyViolationError:
            # A member was deleted between the existence check and the insert.
            missing = await self._missing_members(member1_id, member2_id)
            raise UnknownMemberError(missing[0] if missing else member1_id) from None
        logger.info(
            "Created relationship %d: %d is %s of %d",
            row["id"], member1_id, parsed.value, member2_id,
        )
        return _relationship(row)

    async def get_relationship(self, rel_id: int) -> Relationship:
        row = await self._pool.fetchrow(
            f"SELECT {_REL_COLS} FROM relationships WHERE id = $1", rel_id
        )
        if row is None:
            raise NotFoundError("Relationship", rel_id)
        return _relationship(row)

    async def find_relationship(
        self, member1_id: int, member2_id: int, rel_type: RelationshipType | str
    ) -> Relationship | None:
        parsed = RelationshipType.parse(rel_type)
        if parsed is None:
            return None
        row = await self._pool.fetchrow(
            f"SELECT {_REL_COLS} FROM relationships "
            "WHERE member1_id = $1 AND member2_id = $2 AND relationship_type = $3",
            member1_id, member2_id, parsed.value,
        )
        return _relationship(row) if row else None

    async def delete_relationship(self, rel_id: int) -> Relationship:
        row = await self._pool.fetchrow(
            f"DELETE FROM relationships WHERE id = $1 RETURNING {_REL_COLS}", rel_id
        )
        if row is None:
            raise NotFoundError("Relationship", rel_id)
        logger.info("Deleted relationship %d", rel_id)
        return _relationship(row)

    async def list_edges_for_member(self, member_id: int) -> list[Relationship]:
        rows = await self._pool.fetch(
            f"SELECT {_REL_COLS} FROM relationships "
            "WHERE member1_id = $1 OR member2_id = $1 ORDER BY id",
            member_id,
        )
        return [_relationship(r) for r in rows]

    async def list_all_relationships(self) -> list[Relationship]:
        rows = await self._pool.fetch(f"SELECT {_REL_COLS} FROM relationships ORDER BY id")
        return [_relationship(r) for r in rows]

    async def list_relationships(
        self, member_id: int | None = None
    ) -> list[Relationship] | list[RelationshipView]:
        if member_id is None:
            return await self.list_all_relationships()
        await self.require_member(member_id)
        rows = await self._pool.fetch(
            "SELECT r.id, r.member1_id, r.member2_id, r.relationship_type, r.created_at, "
            "       m.id AS related_id, m.first_name, m.last_name, m.gender, m.photo_url "
            "FROM relationships r "
            "JOIN members m ON m.id = CASE WHEN r.member1_id = $1 THEN r.member2_id ELSE r.member1_id END "
            "WHERE r.member1_id = $1 OR r.member2_id = $1 "
            "ORDER BY r.id",
            member_id,
        )
        return [
            RelationshipView(
                id=r["id"],
                member1_id=r["member1_id"],
                member2_id=r["member2_id"],
                relationship_type=r["relationship_type"],
                direction=Direction.OUTGOING if r["member1_id"] == member_id else Direction.INCOMING,
                related_id=r["related_id"],
                related_first_name=r["first_name"],
                related_last_name=r["last_name"] or "",
                related_gender=Gender.coerce(r["gender"]),
                related_photo_url=r["photo_url"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

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
        await self._require_members(partner1_id, partner2_id)
        row = await self._pool.fetchrow(
            "INSERT INTO unions (partner1_id, partner2_id, union_type, is_primary, union_date, notes) "
            f"VALUES ($1, $2, $3, $4, $5, $6) RETURNING {_UNION_COLS}",
            partner1_id, partner2_id, parsed.value if parsed else None,
            is_primary, union_date, notes,
        )
        logger.info("Created union %d between %s and %s", row["id"], partner1_id, partner2_id)
        return _union(row)

    async def get_union(self, union_id: int) -> Union:
        row = await self._pool.fetchrow(f"SELECT {_UNION_COLS} FROM unions WHERE id = $1", union_id)
        if row is None:
            raise NotFoundError("Union", union_id)
        return _union(row)

    async def update_union(self, union_id: int, **changes) -> Union:
        updates = union_updates(changes)
        current = await self.get_union(union_id)
        if updates.get("union_type") is not None:
            updates["union_type"] = updates["union_type"].value
        partner1 = updates.get("partner1_id", current.partner1_id)
        partner2 = updates.get("partner2_id", current.partner2_id)
        check_union_partners(partner1, partner2)
        await self._require_members(partner1, partner2)
        if not updates:
            return current

        sets: list[str] = []
        params: list = []
        idx = 1
        for key, val in updates.items():
            sets.append(f"{key} = ${idx}")
            params.append(val)
            idx += 1
        params.append(union_id)
        sql = (
            f"UPDATE unions SET {', '.join(sets)} "
            f"WHERE id = ${idx} "
            f"RETURNING {_UNION_COLS}"
        )
        row = await self._pool.fetchrow(sql, *params)
        if row is None:
            raise NotFoundError("Union", union_id)
        return _union(row)

    async def delete_union(self, union_id: int) -> Union:
        row = await self._pool.fetchrow(
            f"DELETE FROM unions WHERE id = $1 RETURNING {_UNION_COLS}", union_id
        )
        if row is None:
            raise NotFoundError("Union", union_id)
        logger.info("Deleted union %d", union_id)
        return _union(row)

    async def list_unions(self, member_id: int | None = None) -> list[Union]:
        if member_id is None:
            rows = await self._pool.fetch(f"SELECT {_UNION_COLS} FROM unions ORDER BY id")
            return [_union(r) for r in rows]
        await self.require_member(member_id)
        rows = await self._pool.fetch(
            f"SELECT {_UNION_COLS} FROM unions "
            "WHERE partner1_id = $1 OR partner2_id = $1 "
            "ORDER BY is_primary DESC, id",
            member_id,
        )
        return [_union(r) for r in rows]

    # -- union children ------------------------------------------------------

    async def add_union_child(
        self, union_id: int, child_id: int, birth_order: int | None = None
    ) -> UnionChild:
        union = await self.get_union(union_id)
        await self._require_members(child_id)
        check_union_child(union, child_id)
        row = await self._pool.fetchrow(
            "INSERT INTO union_children (union_id, child_id, birth_order) VALUES ($1, $2, $3) "
            "ON CONFLICT (union_id, child_id) DO UPDATE "
            "SET birth_order = COALESCE(EXCLUDED.birth_order, union_children.birth_order) "
            f"RETURNING {_CHILD_COLS}",
            union_id, child_id, birth_order,
        )
        logger.info("Added child %d to union %d", child_id, union_id)
        return _union_child(row)

    async def remove_union_child(self, union_id: int, child_id: int) -> UnionChild:
        row = await self._pool.fetchrow(
            f"DELETE FROM union_children WHERE union_id = $1 AND child_id = $2 RETURNING {_CHILD_COLS}",
            union_id, child_id,
        )
        if row is None:
            raise NotFoundError("Union child", child_id)
        logger.info("Removed child %d from union %d", child_id, union_id)
        return _union_child(row)

    async def list_union_children(self, union_id: int) -> list[UnionChild]:
        await self.get_union(union_id)
        rows = await self._pool.fetch(
            f"SELECT {_CHILD_COLS} FROM union_children WHERE union_id = $1 "
            "ORDER BY birth_order NULLS LAST, id",
            union_id,
        )
        return [_union_child(r) for r in rows]

    # -- reads ---------------------------------------------------------------

    async def snapshot(self, root_id: int | None = None, max_depth: int | None = None) -> GraphSnapshot:
        async with self._pool.acquire() as conn:
            async with conn.transaction(isolation="repeatable_read", readonly=True):
                if root_id is None or max_depth is None or max_depth < 0:
                    members = await conn.fetch(f"SELECT {_MEMBER_COLS} FROM members ORDER BY id")
                    rels = await conn.fetch(f"SELECT {_REL_COLS} FROM relationships ORDER BY id")
                else:
                    members, rels = await self._bounded(conn, root_id, max_depth)
        return GraphSnapshot.build(
            [_member(r) for r in members],
            [_relationship(r) for r in rels],
        )

    async def _bounded(self, conn, root_id: int, max_depth: int):
        # Members within max_depth hops of the root, following edges either way.
        reach = await conn.fetch(
            "WITH RECURSIVE edges AS ("
            "    SELECT member1_id AS a, member2_id AS b FROM relationships"
            "    UNION ALL SELECT member2_id, member1_id FROM relationships"
            "), reach(id, depth) AS ("
            "    SELECT $1::int, 0"
            "    UNION SELECT e.b, r.depth + 1 FROM reach r JOIN edges e ON e.a = r.id"
            "    WHERE r.depth < $2"
            ") SELECT DISTINCT id FROM reach",
            root_id, max_depth,
        )
        ids = [r["id"] for r in reach]
        members = await conn.fetch(
            f"SELECT {_MEMBER_COLS} FROM members WHERE id = ANY($1::int[]) ORDER BY id", ids
        )
        rels = await conn.fetch(
            f"SELECT {_REL_COLS} FROM relationships "
            "WHERE member1_id = ANY($1::int[]) AND member2_id = ANY($1::int[]) ORDER BY id",
            ids,
        )
        return members, rels

    async def union_snapshot(self) -> UnionSnapshot:
        async with self._pool.acquire() as conn:
            async with conn.transaction(isolation="repeatable_read", readonly=True):
                members = await conn.fetch(f"SELECT {_MEMBER_COLS} FROM members ORDER BY id")
                unions = await conn.fetch(f"SELECT {_UNION_COLS} FROM unions ORDER BY id")
                children = await conn.fetch(
                    f"SELECT {_CHILD_COLS} FROM union_children ORDER BY birth_order NULLS LAST, id"
                )
        return UnionSnapshot.build(
            [_member(r) for r in members],
            [_union(r) for r in unions],
            [_union_child(r) for r in children],
        )

    async def stats(self) -> dict:
        row = await self._pool.fetchrow(
            "SELECT (SELECT COUNT(*) FROM members) AS members, "
            "       (SELECT COUNT(*) FROM relationships) AS relationships, "
            "       (SELECT COUNT(*) FROM unions) AS unions, "
            "       (SELECT COUNT(*) FROM union_children) AS union_children"
        )
        return dict(row)
