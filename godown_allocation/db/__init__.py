# godown_allocation/db/__init__.py
from .connection import DatabaseConfig, DatabaseConnection, db, create_sqlalchemy_interface
from .interface import DatabaseInterface, SupabaseInterface, SQLAlchemyInterface

from godown_allocation.exceptions import StorageError


def get_database() -> DatabaseInterface:
    """Get the data-access interface for the configured database."""
    return db.interface


def initialize():
    """Initialize database connection and check that it answers."""
    interface = db.interface
    try:
        interface.select('godowns', columns='id', limit=1)
    except Exception as e:
        raise StorageError(f"Database initialization failed: {str(e)}") from e
    return interface


def create_all_tables():
    """Create all tables (SQLAlchemy backends only).

    Supabase tables are created through SQL migrations in the hosted project.
    """
    interface = db.interface
    if not isinstance(interface, SQLAlchemyInterface):
        raise StorageError("create_all_tables is only available for SQLAlchemy backends")
    interface.create_all()


def drop_all_tables():
    """Drop all tables (SQLAlchemy backends only)."""
    interface = db.interface
    if not isinstance(interface, SQLAlchemyInterface):
        raise StorageError("drop_all_tables is only available for SQLAlchemy backends")
    interface.drop_all()


__all__ = [
    'db',
    'get_database',
    'initialize',
    'create_all_tables',
    'drop_all_tables',
    'create_sqlalchemy_interface',
    'DatabaseConfig',
    'DatabaseConnection',
    'DatabaseInterface',
    'SupabaseInterface',
    'SQLAlchemyInterface'
]
