"""Graph engine settings from environment variables (FV_ prefix)."""

from __future__ import annotations

import os

from familyvine.graph.lineage import DEFAULT_GENERATIONS
from familyvine.graph.projector import DEFAULT_DEPTH
from familyvine.graph.resolver import GenderFallback


def _flag(name: str, default: str = "") -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


class GraphConfig:
    def __init__(self) -> None:
        self.store_backend: str = os.environ.get("FV_STORE_BACKEND", "memory").lower()
        self.tree_default_depth: int = int(os.environ.get("FV_TREE_DEFAULT_DEPTH", str(DEFAULT_DEPTH)))
        self.tree_max_depth: int = int(os.environ.get("FV_TREE_MAX_DEPTH", "6"))
        self.mirror_reciprocals: bool = _flag("FV_MIRROR_RECIPROCALS")
        self.gender_fallback: GenderFallback = GenderFallback.parse(
            os.environ.get("FV_GENDER_FALLBACK", "female")
        )
        self.parent_combination: str = os.environ.get("FV_PARENT_COMBINATION", "exact_two")
        self.descendant_default_generations: int = int(
            os.environ.get("FV_DESCENDANT_DEFAULT_GENERATIONS", str(DEFAULT_GENERATIONS))
        )
        self.descendant_max_generations: int = int(os.environ.get("FV_DESCENDANT_MAX_GENERATIONS", "10"))

    def to_dict(self) -> dict:
        return {
            "store_backend": self.store_backend,
            "tree_default_depth": self.tree_default_depth,
            "tree_max_depth": self.tree_max_depth,
            "mirror_reciprocals": self.mirror_reciprocals,
            "gender_fallback": self.gender_fallback.value,
            "parent_combination": self.parent_combination,
            "descendant_default_generations": self.descendant_default_generations,
            "descendant_max_generations": self.descendant_max_generations,
        }
