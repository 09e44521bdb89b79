"""
Database infrastructure components.
"""

from mindmate.infrastructure.database.connection import Base, DatabaseManager

__all__ = [
    "Base",
    "DatabaseManager",
]
