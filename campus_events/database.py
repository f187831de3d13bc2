"""
Declarative base and session dependency, re-exported from the database manager.
"""

from campus_events.core.database_manager import Base, db_manager, get_db

__all__ = ["Base", "db_manager", "get_db"]
