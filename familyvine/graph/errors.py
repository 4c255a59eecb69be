"""Error taxonomy for the relationship graph.

Every error here is recoverable by the caller; the HTTP layer renders them
as 4xx responses via a single exception handler.
"""

from __future__ import annotations


class GraphError(Exception):
    status_code: int = 400
    code: str = "GRAPH_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SelfRelationshipError(GraphError):
    code = "SELF_RELATIONSHIP"

    def __init__(self, member_id: int) -> None:
        super().__init__(f"Member {member_id} cannot be related to themselves")
        self.member_id = member_id


class UnknownMemberError(GraphError):
    status_code = 404
    code = "UNKNOWN_MEMBER"

    def __init__(self, member_id) -> None:
        super().__init__(f"Member {member_id} not found")
        self.member_id = member_id


class InvalidTypeError(GraphError):
    code = "INVALID_TYPE"

    def __init__(self, value, kind: str = "relationship") -> None:
        super().__init__(f"Invalid {kind} type: {value}")
        self.value = value
        self.kind = kind


class NotFoundError(GraphError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(GraphError):
    status_code = 422
    code = "VALIDATION_ERROR"


class DuplicateRelationshipError(GraphError):
    status_code = 409
    code = "DUPLICATE_RELATIONSHIP"

    def __init__(self, member1_id: int, member2_id: int, rel_type: str) -> None:
        super().__init__(
            f"Relationship already exists: {member1_id} is {rel_type} of {member2_id}"
        )
        self.member1_id = member1_id
        self.member2_id = member2_id
        self.rel_type = rel_type
