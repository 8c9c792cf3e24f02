"""
AI Gateway - Core Package
=========================

Core business logic, models, and schemas.
"""

from ai_gateway.core.config import settings
from ai_gateway.core.database import Base, get_db, get_db_session

__all__ = ["Base", "get_db", "get_db_session", "settings"]
