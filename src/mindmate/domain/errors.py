"""
Domain Errors

Raised by services and mapped to HTTP status codes at the API layer.
Model-transport failures live with the LLM providers; parse degradation
is never an exception.
"""

from typing import Optional
from uuid import UUID


class MindMateError(Exception):
    """Base class for domain errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(MindMateError):
    """Malformed input, rejected before any pipeline work starts."""


class NotFoundError(MindMateError):
    """A referenced user, assessment or baseline does not exist."""

    def __init__(self, entity: str, entity_id: Optional[object] = None) -> None:
        message = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


def parse_identifier(value: object, name: str = "id") -> UUID:
    """
    Parse a client-supplied identifier.

    Raises:
        ValidationError: If the value is not a UUID
    """
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid {name}: {value!r}") from e
