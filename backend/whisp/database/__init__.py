"""
Database module initialization.
Exports database components for use throughout the application.
"""

from whisp.database.base import Base
from whisp.database.session import (
    SessionFactory,
    check_db_connection,
    close_db,
    create_engine,
    create_session_factory,
    get_db_session,
    init_db,
)

__all__ = [
    "Base",
    "SessionFactory",
    # Connection management
    "create_engine",
    "create_session_factory",
    "init_db",
    "close_db",
    "get_db_session",
    # Utilities
    "check_db_connection",
]
