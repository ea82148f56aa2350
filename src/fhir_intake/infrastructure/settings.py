"""Application Settings and Configuration.

This module provides application-wide settings that combine configuration
from the configuration manager with application-specific defaults.

Security Impact:
    - Downstream credentials are managed via DownstreamConfig (SecretStr)
    - Sensitive values are never logged
"""

import os
from typing import Optional

from fhir_intake import __version__
from fhir_intake.infrastructure.config_manager import ArtifactConfig, ConfigManager, DownstreamConfig

# Application metadata
APP_NAME = "FHIR-Intake"
APP_VERSION = __version__


class Settings:
    """Application settings loaded from configuration manager and environment.

    Parameters:
        config_manager: Optional configuration manager; defaults to the environment
    """

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        self._config_manager = config_manager
        self._downstream_config: Optional[DownstreamConfig] = None
        self._artifact_config: Optional[ArtifactConfig] = None

        self.app_name = os.getenv("FI_APP_NAME", APP_NAME)
        self.app_version = APP_VERSION

        # Logging
        self.log_level = os.getenv("FI_LOG_LEVEL", "INFO")
        self.json_logs = os.getenv("FI_JSON_LOGS", "false").lower() == "true"

        # API server
        self.host = os.getenv("FI_HOST", "0.0.0.0")
        self.port = int(os.getenv("FI_PORT", "8080"))

    @property
    def config_manager(self) -> ConfigManager:
        if self._config_manager is None:
            self._config_manager = ConfigManager.from_environment()
        return self._config_manager

    @property
    def downstream(self) -> DownstreamConfig:
        """Downstream configuration, loaded lazily on first access."""
        if self._downstream_config is None:
            self._downstream_config = self.config_manager.get_downstream_config()
        return self._downstream_config

    @property
    def artifacts(self) -> ArtifactConfig:
        """Artifact configuration, loaded lazily on first access."""
        if self._artifact_config is None:
            self._artifact_config = self.config_manager.get_artifact_config()
        return self._artifact_config


# Global settings instance
settings = Settings()
