"""Reciprocal relationship resolver.

Given "A is <type> of B", work out what B is to A. The answer depends on the
gender of B (the member the derived label describes):

    reciprocal(father, Male)   -> son
    reciprocal(father, Female) -> daughter
    reciprocal(husband, *)     -> wife
    reciprocal(cousin, *)      -> cousin

The resolver is total: unknown or unmapped types come back unchanged so a
caller can always render some label.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType

from familyvine.graph.records import RelationshipView
from familyvine.graph.types import Direction, Gender, RelationshipType


class GenderFallback(str, Enum):
    """Branch taken for genders that are neither Male nor Female.

    FEMALE matches the long-standing behaviour where everything that is not
    Male resolved to the female form.
    """

    FEMALE = "female"
    MALE = "male"

    @classmethod
    def parse(cls, value: str | None) -> GenderFallback:
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.FEMALE


_T = RelationshipType

# type -> (reciprocal when the other member is male, reciprocal otherwise)
_GENDERED: MappingProxyType[RelationshipType, tuple[RelationshipType, RelationshipType]] = MappingProxyType({
    _T.FATHER: (_T.SON, _T.DAUGHTER),
    _T.MOTHER: (_T.SON, _T.DAUGHTER),
    _T.SON: (_T.FATHER, _T.MOTHER),
    _T.DAUGHTER: (_T.FATHER, _T.MOTHER),
    _T.BROTHER: (_T.BROTHER, _T.SISTER),
    _T.SISTER: (_T.BROTHER, _T.SISTER),
    _T.GRANDFATHER: (_T.GRANDSON, _T.GRANDDAUGHTER),
    _T.GRANDMOTHER: (_T.GRANDSON, _T.GRANDDAUGHTER),
    _T.GRANDSON: (_T.GRANDFATHER, _T.GRANDMOTHER),
    _T.GRANDDAUGHTER: (_T.GRANDFATHER, _T.GRANDMOTHER),
    _T.UNCLE: (_T.NEPHEW, _T.NIECE),
    _T.AUNT: (_T.NEPHEW, _T.NIECE),
    _T.NEPHEW: (_T.UNCLE, _T.AUNT),
    _T.NIECE: (_T.UNCLE, _T.AUNT),
})

_FIXED: MappingProxyType[RelationshipType, RelationshipType] = MappingProxyType({
    _T.HUSBAND: _T.WIFE,
    _T.WIFE: _T.HUSBAND,
    _T.COUSIN: _T.COUSIN,
})

GENERIC_INVERSE: MappingProxyType[RelationshipType, str] = MappingProxyType({
    _T.FATHER: "child",
    _T.MOTHER: "child",
    _T.SON: "parent",
    _T.DAUGHTER: "parent",
    _T.BROTHER: "sibling",
    _T.SISTER: "sibling",
    _T.HUSBAND: "spouse",
    _T.WIFE: "spouse",
    _T.UNCLE: "niece_or_nephew",
    _T.AUNT: "niece_or_nephew",
    _T.NIECE: "uncle_or_aunt",
    _T.NEPHEW: "uncle_or_aunt",
    _T.COUSIN: "cousin",
    _T.GRANDFATHER: "grandchild",
    _T.GRANDMOTHER: "grandchild",
    _T.GRANDSON: "grandparent",
    _T.GRANDDAUGHTER: "grandparent",
})


def _takes_male_branch(gender: Gender, fallback: GenderFallback) -> bool:
    if gender is Gender.MALE:
        return True
    if gender is Gender.FEMALE:
        return False
    # Other / Unknown
    return fallback is GenderFallback.MALE


def reciprocal(
    rel_type: RelationshipType | str,
    other_gender: Gender | str | None,
    fallback: GenderFallback = GenderFallback.FEMALE,
) -> RelationshipType | str:
    """Return the type `other` holds toward the first member. Never raises."""
    parsed = RelationshipType.parse(rel_type)
    if parsed is None:
        return rel_type
    if parsed in _FIXED:
        return _FIXED[parsed]
    pair = _GENDERED.get(parsed)
    if pair is None:
        return parsed
    male, non_male = pair
    return male if _takes_male_branch(Gender.coerce(other_gender), fallback) else non_male


def generic_inverse(rel_type: RelationshipType | str) -> str:
    """Gender-neutral inverse label ("child", "sibling", ...)."""
    parsed = RelationshipType.parse(rel_type)
    if parsed is None:
        return str(rel_type)
    return GENERIC_INVERSE.get(parsed, parsed.value)


def related_role(
    view: RelationshipView,
    fallback: GenderFallback = GenderFallback.FEMALE,
) -> str:
    """What the counter-party in `view` is to the subject member."""
    if view.is_combined or view.direction is Direction.INCOMING:
        return view.relationship_type
    role = reciprocal(view.relationship_type, view.related_gender, fallback)
    return role.value if isinstance(role, RelationshipType) else role


def generic_role(view: RelationshipView) -> str:
    """Gender-neutral form of `related_role`, for counter-parties whose gender is unknown."""
    if view.is_combined or view.direction is Direction.INCOMING:
        return view.relationship_type
    return generic_inverse(view.relationship_type)
