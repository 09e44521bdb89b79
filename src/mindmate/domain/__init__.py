"""
MindMate Domain Layer

Core entities, enums and errors.
These models represent the domain logic independent of infrastructure.
"""

from mindmate.domain.errors import MindMateError, NotFoundError, ValidationError

__all__ = ["MindMateError", "NotFoundError", "ValidationError"]
