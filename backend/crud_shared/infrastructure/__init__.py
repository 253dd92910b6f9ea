"""
Infrastructure: database sessions and request correlation.
"""

from crud_shared.infrastructure.db import SessionLocal, engine, get_db, safe_commit

__all__ = [
    "engine",
    "SessionLocal",
    "get_db",
    "safe_commit",
]
