"""
Database connection helpers.
"""

from claims_engine.db.connection import (
    check_db_connection,
    close_db_connection,
    create_session_maker,
    create_tables,
    get_engine,
    get_session_maker,
)

__all__ = [
    "check_db_connection",
    "close_db_connection",
    "create_session_maker",
    "create_tables",
    "get_engine",
    "get_session_maker",
]
