import os
import configparser
from pathlib import Path

DEFAULT_CONFIG_PATH = Path('config') / 'settings.ini'

DEFAULTS = {
    'DATABASE': {
        'url': 'sqlite:///retail_forecasting.db',
        'echo': 'False'
    },
    'LOGGING': {
        'level': 'INFO',
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'directory': 'logs',
        'max_size_mb': '10',
        'backup_count': '5',
        'console_output': 'True',
        'file_output': 'True'
    },
    'FORECAST': {
        'default_days_ahead': '7',
        'default_lookback_days': '90',
        'risk_lookback_days': '60',
        'recompute_days_ahead': '14',
        'ema_alpha': '0.3'
    },
    'BATCH_PROCESS': {
        'max_workers': '1'
    }
}

class Config:
    """Configuration manager for the Retail Forecasting engine."""

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

        self._config_path = Path(os.getenv('RETAIL_FORECASTING_CONFIG', str(DEFAULT_CONFIG_PATH)))
        self._config = configparser.ConfigParser(interpolation=None)

        # Defaults first, the settings file overrides them
        self._config.read_dict(DEFAULTS)
        if self._config_path.exists():
            self._config.read(self._config_path)

        self._initialized = True

    @property
    def config_path(self):
        """Path of the settings file backing this configuration."""
        return self._config_path

    def save(self):
        """Save configuration to file."""
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._config_path, 'w') as configfile:
            self._config.write(configfile)

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

    def get_float(self, section, key, default=None):
        """Get configuration value as float."""
        try:
            return self._config.getfloat(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def get_boolean(self, section, key, default=None):
        """Get configuration value as boolean."""
        try:
            return self._config.getboolean(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def set(self, section, key, value, persist=False):
        """Set configuration value.

        Args:
            section: Config section
            key: Option name
            value: New value (stored as string)
            persist: Write the settings file after the change
        """
        if not self._config.has_section(section):
            self._config.add_section(section)

        self._config.set(section, key, str(value))
        if persist:
            self.save()

    def get_db_url(self):
        """Get SQLAlchemy database URL."""
        return os.getenv('RETAIL_FORECASTING_DB_URL') or self.get(
            'DATABASE', 'url', DEFAULTS['DATABASE']['url']
        )

    @property
    def log_config(self):
        """Get logging configuration."""
        return {
            'level': self.get('LOGGING', 'level', 'INFO'),
            'format': self.get('LOGGING', 'format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
            'directory': self.get('LOGGING', 'directory', 'logs'),
            'max_size_mb': self.get_int('LOGGING', 'max_size_mb', 10),
            'backup_count': self.get_int('LOGGING', 'backup_count', 5),
            'console_output': self.get_boolean('LOGGING', 'console_output', True),
            'file_output': self.get_boolean('LOGGING', 'file_output', True)
        }

    @property
    def forecast_config(self):
        """Get forecasting configuration."""
        return {
            'default_days_ahead': self.get_int('FORECAST', 'default_days_ahead', 7),
            'default_lookback_days': self.get_int('FORECAST', 'default_lookback_days', 90),
            'risk_lookback_days': self.get_int('FORECAST', 'risk_lookback_days', 60),
            'recompute_days_ahead': self.get_int('FORECAST', 'recompute_days_ahead', 14),
            'ema_alpha': self.get_float('FORECAST', 'ema_alpha', 0.3)
        }

    @property
    def batch_config(self):
        """Get batch processing configuration."""
        return {
            'max_workers': self.get_int('BATCH_PROCESS', 'max_workers', 1)
        }

# Global config instance
config = Config()
