import os
import configparser
from pathlib import Path

from godown_allocation.exceptions import ConfigError

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

class Config:
    """Configuration manager for the godown allocation system."""

    _instance = None

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize the configuration if not already initialized."""
        if self._initialized:
            return

        self._config_path = Path(os.getenv('GODOWN_CONFIG', 'config/settings.ini'))
        self._config_dir = self._config_path.parent
        self._config = configparser.ConfigParser(interpolation=None)

        # Load config or fall back to defaults
        if self._config_path.exists():
            self._config.read(self._config_path)
        else:
            self._load_defaults()

        self._initialized = True

    def _load_defaults(self):
        """Populate the default configuration (not written until save())."""
        self._config['DATABASE'] = {
            'type': 'postgresql',
            'host': 'localhost',
            'port': '5432',
            'database': 'postgres',
            'username': 'postgres',
            'password': 'postgres',
            'pool_size': '10',
            'max_overflow': '20',
            'isolation_level': 'SERIALIZABLE',
            'echo': 'False'
        }

        self._config['SUPABASE'] = {
            'url': '',
            'key': ''
        }

        self._config['LOGGING'] = {
            'level': 'INFO',
            'format': DEFAULT_LOG_FORMAT,
            'directory': 'logs',
            'max_size_mb': '10',
            'backup_count': '5',
            'console_output': 'True',
            'file_output': 'True'
        }

        self._config['STOCK'] = {
            'allow_negative_stock': 'False',
            'batch_selection': 'fifo_created',
            'expiry_warning_days': '30'
        }

    def save(self):
        """Save configuration to file."""
        if not self._config_dir.exists():
            self._config_dir.mkdir(parents=True)

        with open(self._config_path, 'w') as configfile:
            self._config.write(configfile)
        return self._config_path

    def get(self, section, key, default=None):
        """Get configuration value."""
        try:
            return self._config.get(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return default

    def get_int(self, section, key, default=None):
        """Get configuration value as integer."""
        try:
            return self._config.getint(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def get_boolean(self, section, key, default=None):
        """Get configuration value as boolean."""
        try:
            return self._config.getboolean(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def set(self, section, key, value):
        """Set configuration value (in memory; call save() to persist)."""
        if not self._config.has_section(section):
            self._config.add_section(section)

        self._config.set(section, key, str(value))

    def get_db_url(self):
        """Generate SQLAlchemy database URL."""
        url = self.get('DATABASE', 'url')
        if url:
            return url

        db_type = self.get('DATABASE', 'type', 'postgresql')
        if db_type == 'sqlite':
            return f"sqlite:///{self.get('DATABASE', 'database', 'godowns.db')}"

        username = self.get('DATABASE', 'username', 'postgres')
        password = self.get('DATABASE', 'password', 'postgres')
        host = self.get('DATABASE', 'host', 'localhost')
        port = self.get('DATABASE', 'port', '5432')
        database = self.get('DATABASE', 'database', 'postgres')

        return f"postgresql://{username}:{password}@{host}:{port}/{database}"

    @property
    def log_config(self):
        """Get logging configuration."""
        return {
            'level': self.get('LOGGING', 'level', 'INFO'),
            'format': self.get('LOGGING', 'format', DEFAULT_LOG_FORMAT),
            'directory': self.get('LOGGING', 'directory', 'logs'),
            'max_size_mb': self.get_int('LOGGING', 'max_size_mb', 10),
            'backup_count': self.get_int('LOGGING', 'backup_count', 5),
            'console_output': self.get_boolean('LOGGING', 'console_output', True),
            'file_output': self.get_boolean('LOGGING', 'file_output', True)
        }

    @property
    def stock_rules(self):
        """Get stock reconciliation rules."""
        batch_selection = self.get('STOCK', 'batch_selection', 'fifo_created').strip().lower()
        if batch_selection not in ('fifo_created', 'fifo_expiry'):
            raise ConfigError(
                f"Invalid batch selection policy: {batch_selection}",
                details={'valid': ['fifo_created', 'fifo_expiry']}
            )

        return {
            'allow_negative_stock': self.get_boolean('STOCK', 'allow_negative_stock', False),
            'batch_selection': batch_selection,
            'expiry_warning_days': self.get_int('STOCK', 'expiry_warning_days', 30)
        }

# Global config instance
config = Config()
