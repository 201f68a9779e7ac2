"""
Configuration Management for the AIOCENSOR console client.

This module handles client configuration including the server URL, transport
timeouts, token refresh policy, session storage location and route names,
with support for configuration files and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from typing import Optional, Dict, Any
from configparser import ConfigParser

from censor_shared.exceptions import ConfigurationError
from censor_shared.interfaces import IConfigurationManager

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    'server': {
        'url': 'http://localhost:8000',
        'timeout': 10.0,
        'retry_attempts': 3,
        'retry_delay': 1.0,
        'login_path': '/api/login',
        'refresh_path': '/api/refresh',
    },
    'auth': {
        'refresh_skew_seconds': 60,
        'storage_slot': 'auth',
        'storage_dir': None,
        'use_keyring': True,
    },
    'routes': {
        'login': '/login',
        'default': '/',
    },
    'logging': {
        'level': 'INFO',
        'format': 'standard',
        'file': None,
        'audit_file': None,
    },
}


class ClientConfiguration(IConfigurationManager):
    """
    Configuration manager for the console client.

    Supports configuration from:
    1. Overrides set at runtime, e.g. from command line arguments (highest priority)
    2. Environment variables
    3. Configuration file
    4. Default values (lowest priority)
    """

    ENV_MAPPINGS = {
        'AIOCENSOR_SERVER_URL': ('server', 'url'),
        'AIOCENSOR_TIMEOUT': ('server', 'timeout'),
        'AIOCENSOR_RETRY_ATTEMPTS': ('server', 'retry_attempts'),
        'AIOCENSOR_REFRESH_SKEW': ('auth', 'refresh_skew_seconds'),
        'AIOCENSOR_STORAGE_DIR': ('auth', 'storage_dir'),
        'AIOCENSOR_USE_KEYRING': ('auth', 'use_keyring'),
        'AIOCENSOR_LOG_LEVEL': ('logging', 'level'),
    }

    def __init__(self, config_file: Optional[str] = None):
        self._config_file = config_file or self._get_default_config_path()
        self._config_data: Dict[str, Any] = {}
        self._overrides: Dict[str, Any] = {}

        self._load_configuration()

    def _get_default_config_path(self) -> str:
        """Get default configuration file path (~/.aiocensor/client.conf)."""
        return str(Path.home() / '.aiocensor' / 'client.conf')

    def _load_configuration(self) -> None:
        """Load configuration from file and environment variables."""
        if os.path.exists(self._config_file):
            try:
                self._load_from_file()
                logger.info(f"Configuration loaded from: {self._config_file}")
            except Exception as e:
                logger.warning(f"Failed to load configuration file: {e}")
        else:
            logger.debug(f"Configuration file not found: {self._config_file}")

        self._load_from_environment()
        self._set_defaults()
        self._validate()

    def _load_from_file(self) -> None:
        """Load configuration from INI file."""
        config = ConfigParser()
        config.read(self._config_file)

        for section_name in config.sections():
            section_data = {}
            for key, value in config[section_name].items():
                # Try to parse as JSON for complex values
                try:
                    section_data[key] = json.loads(value)
                except (json.JSONDecodeError, ValueError):
                    section_data[key] = value

            self._config_data[section_name] = section_data

    def _load_from_environment(self) -> None:
        """Load configuration from environment variables."""
        for env_var, (section, key) in self.ENV_MAPPINGS.items():
            value = os.environ.get(env_var)
            if value is None:
                continue

            section_data = self._config_data.setdefault(section, {})

            if value.lower() in ('true', 'false'):
                section_data[key] = value.lower() == 'true'
            elif value.isdigit():
                section_data[key] = int(value)
            else:
                section_data[key] = value

    def _set_defaults(self) -> None:
        """Merge default values into missing configuration keys."""
        for section, section_defaults in DEFAULT_CONFIG.items():
            section_data = self._config_data.setdefault(section, {})
            for key, default_value in section_defaults.items():
                if key not in section_data:
                    section_data[key] = default_value

    def _validate(self) -> None:
        """Check numeric settings so bad values fail at startup."""
        numeric_keys = {
            'server.timeout': (float, 0.0),
            'server.retry_attempts': (int, -1),
            'server.retry_delay': (float, -1.0),
            'auth.refresh_skew_seconds': (float, -1.0),
        }

        for key, (cast, lower_bound) in numeric_keys.items():
            raw = self.get_config(key)
            try:
                value = cast(raw)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"Invalid value for {key}: {raw!r}", config_key=key, cause=e
                )
            if value <= lower_bound:
                raise ConfigurationError(f"Value for {key} out of range: {raw!r}", config_key=key)
            self.set_config(key, value)

    def get_server_url(self) -> str:
        """Get server URL."""
        return self._overrides.get('server_url') or self._config_data['server']['url']

    def get_config(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key in format 'section.key'
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        if '.' not in key:
            return self._config_data.get(key, default)

        section, config_key = key.split('.', 1)
        section_data = self._config_data.get(section, {})
        return section_data.get(config_key, default)

    def set_config(self, key: str, value: Any) -> None:
        """
        Set configuration value using dot notation.

        Args:
            key: Configuration key in format 'section.key'
            value: Value to set
        """
        if '.' not in key:
            self._config_data[key] = value
            return

        section, config_key = key.split('.', 1)
        self._config_data.setdefault(section, {})[config_key] = value

    def set_override(self, key: str, value: Any) -> None:
        """
        Set configuration override (highest priority).

        Args:
            key: Override key, e.g. 'server_url'
            value: Override value
        """
        self._overrides[key] = value

    def save_configuration(self) -> None:
        """Save current configuration to file."""
        try:
            config = ConfigParser()

            for section_name, section_data in self._config_data.items():
                config.add_section(section_name)
                for key, value in section_data.items():
                    if value is None:
                        continue
                    if isinstance(value, (dict, list, bool)):
                        config.set(section_name, key, json.dumps(value))
                    else:
                        config.set(section_name, key, str(value))

            config_path = Path(self._config_file)
            config_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self._config_file, 'w') as f:
                config.write(f)

            logger.info(f"Configuration saved to: {self._config_file}")

        except Exception as e:
            logger.error(f"Failed to save configuration: {e}")
            raise

    # Convenience methods for common configuration values

    def get_server_timeout(self) -> float:
        """Get transport timeout in seconds for each request."""
        return self.get_config('server.timeout', 10.0)

    def get_retry_attempts(self) -> int:
        """Get number of retry attempts for idempotent requests."""
        return self.get_config('server.retry_attempts', 3)

    def get_retry_delay(self) -> float:
        """Get base retry delay in seconds."""
        return self.get_config('server.retry_delay', 1.0)

    def get_login_path(self) -> str:
        return self.get_config('server.login_path', '/api/login')

    def get_refresh_path(self) -> str:
        return self.get_config('server.refresh_path', '/api/refresh')

    def get_refresh_skew(self) -> float:
        """Get the remaining lifetime in seconds below which tokens are renewed."""
        return self.get_config('auth.refresh_skew_seconds', 60)

    def get_storage_slot(self) -> str:
        return self.get_config('auth.storage_slot', 'auth')

    def get_storage_dir(self) -> Optional[str]:
        return self._overrides.get('storage_dir') or self.get_config('auth.storage_dir')

    def use_keyring(self) -> bool:
        return bool(self.get_config('auth.use_keyring', True))

    def get_login_route(self) -> str:
        return self.get_config('routes.login', '/login')

    def get_default_route(self) -> str:
        return self.get_config('routes.default', '/')

    def get_log_level(self) -> str:
        """Get logging level."""
        return str(self.get_config('logging.level', 'INFO')).upper()

    def get_log_format(self) -> str:
        return str(self.get_config('logging.format', 'standard')).lower()

    def get_log_file(self) -> Optional[str]:
        """Get log file path."""
        return self.get_config('logging.file')

    def get_audit_file(self) -> Optional[str]:
        return self.get_config('logging.audit_file')
