# src/py2mpd/services/configuration_service.py
"""
Configuration service for connection settings.

Settings are read from an optional YAML file and then overridden by the
MPD_HOST / MPD_PORT environment variables, the convention shared by MPD
clients. MPD_HOST may carry a password as "password@host"; the password
part is exposed separately and never logged.

Example file:

    connection:
      host: localhost
      port: 6600
      max_retries: 5
      retry_wait: 2.0
      connect_timeout: 2.0
"""
import os
import logging
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from py2mpd.core.errors import ConfigurationError, ErrorCodes
from py2mpd.models.connection import ConnectionConfig


class ConfigurationService:
    """
    Service for loading connection configuration.

    Attributes:
        logger: Logger instance
        environ: Environment mapping used for overrides
        password: Password taken from MPD_HOST, if any
    """

    SECTION = 'connection'

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        """
        Initialize the configuration service.

        Args:
            environ: Environment mapping (defaults to os.environ)
        """
        self.logger = logging.getLogger(__name__)
        self.environ = os.environ if environ is None else environ
        self.password: Optional[str] = None

    def load(self, path: Optional[Union[str, Path]] = None) -> ConnectionConfig:
        """
        Build a validated ConnectionConfig.

        Args:
            path: Optional YAML file to read

        Returns:
            ConnectionConfig: The merged configuration

        Raises:
            ConfigurationError: If the file is missing, malformed or invalid
        """
        settings: Dict[str, Any] = {}
        if path is not None:
            settings.update(self._read_file(Path(path)))
        settings.update(self._read_environment())

        known = {f.name for f in fields(ConnectionConfig)}
        unknown = sorted(set(settings) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown connection settings: {', '.join(unknown)}",
                setting_name=unknown[0],
                error_code=ErrorCodes.CONFIG_INVALID
            )

        config = ConnectionConfig(**settings)
        valid, errors = config.validate()
        if not valid:
            raise ConfigurationError(
                f"Invalid connection settings: {'; '.join(errors)}",
                error_code=ErrorCodes.CONFIG_INVALID,
                suggestions=["Check the connection section of the configuration file"]
            )

        self.logger.info(f"Loaded configuration for {config.host}:{config.port}")
        return config

    def _read_file(self, path: Path) -> Dict[str, Any]:
        """
        Read the connection section of a YAML file.

        The file may either hold a top-level 'connection' mapping or the
        settings directly.
        """
        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}",
                setting_name=str(path),
                error_code=ErrorCodes.CONFIG_NOT_FOUND
            )

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Malformed configuration file {path}: {e}",
                error_code=ErrorCodes.CONFIG_INVALID,
                cause=e
            ) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file {path} must contain a mapping",
                error_code=ErrorCodes.CONFIG_INVALID
            )

        section = data.get(self.SECTION, data)
        if not isinstance(section, dict):
            raise ConfigurationError(
                f"'{self.SECTION}' section of {path} must be a mapping",
                setting_name=self.SECTION,
                error_code=ErrorCodes.CONFIG_INVALID
            )

        self.logger.debug(f"Read {len(section)} settings from {path}")
        return dict(section)

    def _read_environment(self) -> Dict[str, Any]:
        """Read MPD_HOST / MPD_PORT overrides."""
        settings: Dict[str, Any] = {}

        host = self.environ.get('MPD_HOST')
        if host:
            if '@' in host:
                self.password, host = host.rsplit('@', 1)
            settings['host'] = host

        port = self.environ.get('MPD_PORT')
        if port:
            try:
                settings['port'] = int(port)
            except ValueError as e:
                raise ConfigurationError(
                    f"MPD_PORT must be an integer, got {port!r}",
                    setting_name='MPD_PORT',
                    error_code=ErrorCodes.CONFIG_INVALID,
                    cause=e
                ) from e

        return settings
