"""Closed enumerations and immutable lookup tables for the relationship graph."""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"
    UNKNOWN = "Unknown"

    @classmethod
    def coerce(cls, value: Gender | str | None) -> Gender:
        """Map a raw gender value to the enum; anything unrecognised is UNKNOWN."""
        if isinstance(value, Gender):
            return value
        if not value:
            return cls.UNKNOWN
        for member in cls:
            if member.value.lower() == str(value).strip().lower():
                return member
        return cls.UNKNOWN


class RelationshipType(str, Enum):
    """What member1 is *to* member2 (member1 is the father of member2)."""

    FATHER = "father"
    MOTHER = "mother"
    SON = "son"
    DAUGHTER = "daughter"
    BROTHER = "brother"
    SISTER = "sister"
    HUSBAND = "husband"
    WIFE = "wife"
    GRANDFATHER = "grandfather"
    GRANDMOTHER = "grandmother"
    GRANDSON = "grandson"
    GRANDDAUGHTER = "granddaughter"
    UNCLE = "uncle"
    AUNT = "aunt"
    NEPHEW = "nephew"
    NIECE = "niece"
    COUSIN = "cousin"
    OTHER = "other"
    # Synthesized by parent combination; never stored.
    PARENTS = "parents"

    @classmethod
    def parse(cls, value: RelationshipType | str) -> RelationshipType | None:
        if isinstance(value, RelationshipType):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


STORABLE_TYPES: frozenset[RelationshipType] = frozenset(
    t for t in RelationshipType if t is not RelationshipType.PARENTS
)


class UnionType(str, Enum):
    MARRIAGE = "marriage"
    PARTNERSHIP = "partnership"
    OTHER = "other"


class Direction(str, Enum):
    OUTGOING = "outgoing"
    INCOMING = "incoming"


class Category(str, Enum):
    PARENTS = "parents"
    SPOUSES = "spouses"
    CHILDREN = "children"
    SIBLINGS = "siblings"
    GRANDPARENTS = "grandparents"
    EXTENDED = "extended"
    OTHER = "other"


# ---------------------------------------------------------------------------
# Display tables
# ---------------------------------------------------------------------------

_T = RelationshipType

CATEGORY_BY_TYPE: MappingProxyType[RelationshipType, Category] = MappingProxyType({
    _T.PARENTS: Category.PARENTS,
    _T.FATHER: Category.PARENTS,
    _T.MOTHER: Category.PARENTS,
    _T.HUSBAND: Category.SPOUSES,
    _T.WIFE: Category.SPOUSES,
    _T.SON: Category.CHILDREN,
    _T.DAUGHTER: Category.CHILDREN,
    _T.BROTHER: Category.SIBLINGS,
    _T.SISTER: Category.SIBLINGS,
    _T.GRANDFATHER: Category.GRANDPARENTS,
    _T.GRANDMOTHER: Category.GRANDPARENTS,
    _T.GRANDSON: Category.GRANDPARENTS,
    _T.GRANDDAUGHTER: Category.GRANDPARENTS,
    _T.UNCLE: Category.EXTENDED,
    _T.AUNT: Category.EXTENDED,
    _T.NEPHEW: Category.EXTENDED,
    _T.NIECE: Category.EXTENDED,
    _T.COUSIN: Category.EXTENDED,
    _T.OTHER: Category.OTHER,
})

UNRANKED = 999

PRIORITY: MappingProxyType[RelationshipType, int] = MappingProxyType({
    _T.PARENTS: 1,
    _T.FATHER: 2,
    _T.MOTHER: 3,
    _T.HUSBAND: 4,
    _T.WIFE: 5,
    _T.SON: 6,
    _T.DAUGHTER: 7,
    _T.BROTHER: 8,
    _T.SISTER: 9,
    _T.GRANDFATHER: 10,
    _T.GRANDMOTHER: 11,
    _T.GRANDSON: 12,
    _T.GRANDDAUGHTER: 13,
    _T.UNCLE: 14,
    _T.AUNT: 15,
    _T.NEPHEW: 16,
    _T.NIECE: 17,
    _T.COUSIN: 18,
})


def category_for(rel_type: RelationshipType | str) -> Category:
    parsed = RelationshipType.parse(rel_type)
    if parsed is None:
        return Category.OTHER
    return CATEGORY_BY_TYPE.get(parsed, Category.OTHER)


def priority_for(rel_type: RelationshipType | str) -> int:
    parsed = RelationshipType.parse(rel_type)
    if parsed is None:
        return UNRANKED
    return PRIORITY.get(parsed, UNRANKED)
