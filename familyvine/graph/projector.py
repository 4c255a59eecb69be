"""Tree projector: bounded breadth-first walk from a root member.

The walk treats every stored edge as undirected for reachability but emits
each edge with its stored direction and type. A visited set guarantees
termination on cycles and one node per member; edges are deduplicated on
(from, to, type). The emitted edge set is the subgraph induced by the
visited members.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Iterator

from familyvine.graph.errors import UnknownMemberError, ValidationError
from familyvine.graph.records import FamilyTree, Member, TreeEdge, TreeNode
from familyvine.graph.store import GraphSnapshot, GraphStore

logger = logging.getLogger("familyvine.graph.projector")

DEFAULT_DEPTH = 3

# How many node expansions between event-loop yields in the async walk.
_YIELD_EVERY = 64


def _node(member: Member) -> TreeNode:
    return TreeNode(id=member.id, label=member.name, photo_url=member.photo_url)


def _walk(snapshot: GraphSnapshot, root_id: int, max_depth: int, tree: FamilyTree) -> Iterator[None]:
    """Fill `tree` in place, yielding once per expanded member."""
    root = snapshot.members.get(root_id)
    if root is None:
        raise UnknownMemberError(root_id)
    if max_depth < 0:
        raise ValidationError(f"Depth must be >= 0, got {max_depth}")

    depth_of: dict[int, int] = {root_id: 0}
    tree.nodes.append(_node(root))
    seen_edges: set[tuple[int, int, str]] = set()
    queue: deque[int] = deque([root_id])

    while queue:
        current = queue.popleft()
        depth = depth_of[current]
        for rel in snapshot.edges_of(current):
            neighbour = rel.other_end(current)
            if neighbour not in depth_of:
                if depth >= max_depth:
                    continue
                member = snapshot.members.get(neighbour)
                if member is None:
                    continue
                depth_of[neighbour] = depth + 1
                tree.nodes.append(_node(member))
                queue.append(neighbour)

            key = (rel.member1_id, rel.member2_id, rel.relationship_type.value)
            if key not in seen_edges:
                seen_edges.add(key)
                tree.edges.append(TreeEdge(from_id=key[0], to_id=key[1], label=key[2]))
        yield


def project_tree(snapshot: GraphSnapshot, root_id: int, max_depth: int = DEFAULT_DEPTH) -> FamilyTree:
    tree = FamilyTree(root_id=root_id, depth=max_depth)
    for _ in _walk(snapshot, root_id, max_depth, tree):
        pass
    return tree


async def aproject_tree(store: GraphStore, root_id: int, max_depth: int = DEFAULT_DEPTH) -> FamilyTree:
    """Snapshot the store, then walk it, yielding to the loop so cancellation lands.

    The root and depth are passed down so a backend can load only the
    neighbourhood the walk can reach.
    """
    snapshot = await store.snapshot(root_id=root_id, max_depth=max_depth)
    tree = FamilyTree(root_id=root_id, depth=max_depth)
    for step, _ in enumerate(_walk(snapshot, root_id, max_depth, tree), start=1):
        if step % _YIELD_EVERY == 0:
            await asyncio.sleep(0)
    logger.debug(
        "Projected tree from %d (depth %d): %d nodes, %d edges",
        root_id, max_depth, len(tree.nodes), len(tree.edges),
    )
    return tree
