# godown_allocation/db/connection.py
import os
from typing import Dict, Any, Literal

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from supabase import create_client

from godown_allocation.config import config
from godown_allocation.exceptions import ConfigError, StorageError
from godown_allocation.db.interface import DatabaseInterface, SupabaseInterface, SQLAlchemyInterface

DatabaseType = Literal["postgresql", "supabase", "sqlite"]

class DatabaseConfig:
    """Configuration for database connections."""

    @staticmethod
    def get_db_type() -> DatabaseType:
        """Get database type from configuration."""
        db_type = config.get('DATABASE', 'type', default='postgresql').lower()
        # Remove any comments from the value
        db_type = db_type.split('#')[0].strip()
        if db_type not in ('postgresql', 'supabase', 'sqlite'):
            raise ConfigError(f"Unknown database type: {db_type}")
        return db_type

    @staticmethod
    def get_engine_options() -> Dict[str, Any]:
        """Get SQLAlchemy engine options for PostgreSQL connections."""
        return {
            'pool_size': config.get_int('DATABASE', 'pool_size', default=10),
            'max_overflow': config.get_int('DATABASE', 'max_overflow', default=20),
            'isolation_level': config.get('DATABASE', 'isolation_level', default='SERIALIZABLE'),
            'echo': config.get_boolean('DATABASE', 'echo', default=False)
        }

    @staticmethod
    def get_supabase_config() -> Dict[str, str]:
        """Get Supabase connection configuration."""
        # Try environment variables first
        if os.getenv('SUPABASE_URL') and os.getenv('SUPABASE_KEY'):
            return {
                'url': os.getenv('SUPABASE_URL'),
                'key': os.getenv('SUPABASE_KEY')
            }

        # Fall back to config file
        return {
            'url': config.get('SUPABASE', 'url', default=''),
            'key': config.get('SUPABASE', 'key', default='')
        }


def create_sqlalchemy_interface(url: str, **engine_options) -> SQLAlchemyInterface:
    """Build a SQLAlchemyInterface for a database URL.

    In-memory SQLite URLs share one connection so every session sees the same data.
    """
    if url in ('sqlite://', 'sqlite:///:memory:'):
        engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={'check_same_thread': False},
            echo=engine_options.get('echo', False)
        )
    elif url.startswith('sqlite'):
        engine = create_engine(url, echo=engine_options.get('echo', False))
    else:
        engine = create_engine(url, **engine_options)
    return SQLAlchemyInterface(engine)


class DatabaseConnection:
    """Lazily created data-access backend chosen by configuration."""

    _instance = None

    def __new__(cls):
        """Ensure singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._interface = None
            cls._instance._db_type = None
        return cls._instance

    def _initialize_supabase(self) -> SupabaseInterface:
        """Initialize Supabase connection."""
        supabase_config = DatabaseConfig.get_supabase_config()
        if not supabase_config['url'] or not supabase_config['key']:
            raise ConfigError("Supabase URL and key must be provided")

        try:
            client = create_client(supabase_config['url'], supabase_config['key'])
        except Exception as e:
            raise StorageError(f"Failed to initialize Supabase connection: {str(e)}") from e
        return SupabaseInterface(client)

    def _initialize_sqlalchemy(self, db_type: DatabaseType) -> SQLAlchemyInterface:
        """Initialize PostgreSQL or SQLite connection."""
        options = DatabaseConfig.get_engine_options()
        if db_type == 'sqlite':
            options = {'echo': options['echo']}
        try:
            return create_sqlalchemy_interface(config.get_db_url(), **options)
        except Exception as e:
            raise StorageError(f"Failed to initialize {db_type} connection: {str(e)}") from e

    @property
    def interface(self) -> DatabaseInterface:
        """Get the configured data-access interface, connecting on first use."""
        if self._interface is None:
            db_type = DatabaseConfig.get_db_type()
            if db_type == 'supabase':
                self._interface = self._initialize_supabase()
            else:
                self._interface = self._initialize_sqlalchemy(db_type)
            self._db_type = db_type
        return self._interface

    def use(self, interface: DatabaseInterface):
        """Install an explicit interface (embedding applications and tests)."""
        self._interface = interface
        self._db_type = 'supabase' if isinstance(interface, SupabaseInterface) else 'sqlalchemy'

    def reset(self):
        self._interface = None
        self._db_type = None

    @property
    def db_type(self):
        """Get current database type."""
        return self._db_type

# Singleton instance
db = DatabaseConnection()
