"""Configuration Manager for Downstream and Artifact Settings.

This module provides the configuration manager for the downstream system of
record (URL, paths, timeout, credentials) and for the static validation
artifacts (profiles, code system, value set).

Security Impact:
    - The downstream API token is held as SecretStr and never logged
    - Configuration is validated before use (fail-fast)
    - Artifact paths are validated to stay relative (no path traversal)

Architecture:
    - Infrastructure layer, isolated from the domain
    - Type-safe configuration using Pydantic models
    - Supports environment variables (with .env) and JSON files
"""

import json
import logging
import os
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, field_validator

logger = logging.getLogger(__name__)

# Canonical URLs of the shipped artifacts
ISIK_PATIENT_PROFILE_URL = "https://gematik.de/fhir/isik/v3/Basismodul/StructureDefinition/ISiKPatient"
ISIK_DOCUMENT_PROFILE_URL = "https://gematik.de/fhir/isik/v3/Dokumentenaustausch/StructureDefinition/ISiKDokumentenMetadaten"
KDL_CODE_SYSTEM_URL = "http://dvmd.de/fhir/CodeSystem/kdl"
KDL_VALUE_SET_URL = "http://dvmd.de/fhir/ValueSet/kdl"


class DownstreamConfig(BaseModel):
    """Downstream system of record configuration.

    Parameters:
        base_url: Base URL of the downstream API
        patient_path: Path person records are posted to
        document_path: Path document records are posted to
        timeout_seconds: Timeout for a single forwarding call
        api_token: Optional bearer token (SecretStr - never logged)
    """

    base_url: str = Field(default="http://localhost:9090/api", description="Downstream API base URL")
    patient_path: str = Field(default="/person", description="Path for person records")
    document_path: str = Field(default="/document", description="Path for document records")
    timeout_seconds: float = Field(default=10.0, gt=0, description="Forwarding timeout in seconds")
    api_token: Optional[SecretStr] = Field(None, description="Bearer token (secret)")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL without trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Downstream base URL must start with http:// or https://. Got: {v}")
        return v.rstrip("/")

    @field_validator("patient_path", "document_path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v.startswith("/"):
            return f"/{v}"
        return v


class ArtifactConfig(BaseModel):
    """Static validation artifact configuration.

    Relative paths are resolved against ``artifact_dir`` when set, otherwise
    against the artifacts shipped with the package.

    Parameters:
        artifact_dir: Optional directory overriding the shipped artifacts
        patient_profile_url: Canonical URL of the patient profile
        document_profile_url: Canonical URL of the document profile
        code_system_url: Canonical URL of the document type code system
        value_set_url: Canonical URL of the document type value set
        patient_profile_path: Logical path of the patient StructureDefinition
        document_profile_path: Logical path of the document StructureDefinition
        code_system_path: Logical path of the CodeSystem
        value_set_path: Logical path of the ValueSet
    """

    artifact_dir: Optional[str] = Field(None, description="Directory overriding shipped artifacts")
    patient_profile_url: str = Field(default=ISIK_PATIENT_PROFILE_URL)
    document_profile_url: str = Field(default=ISIK_DOCUMENT_PROFILE_URL)
    code_system_url: str = Field(default=KDL_CODE_SYSTEM_URL)
    value_set_url: str = Field(default=KDL_VALUE_SET_URL)
    patient_profile_path: str = Field(default="fhir/profiles/ISiKPatient.json")
    document_profile_path: str = Field(default="fhir/profiles/ISiKDokumentenMetadaten.json")
    code_system_path: str = Field(default="fhir/codesystems/codesystem-kdl-2021.json")
    value_set_path: str = Field(default="fhir/valuesets/valueset-kdl-2021.json")

    @field_validator("artifact_dir")
    @classmethod
    def validate_artifact_dir(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not Path(v).is_dir():
            raise ValueError(f"Artifact directory does not exist: {v}")
        return v

    @field_validator("patient_profile_path", "document_profile_path", "code_system_path", "value_set_path")
    @classmethod
    def validate_relative_path(cls, v: str) -> str:
        path = PurePosixPath(v)
        if path.is_absolute() or ".." in path.parts:
            raise ValueError(f"Artifact path must be relative without '..': {v}")
        return v


class ConfigManager:
    """Configuration manager for downstream and artifact settings.

    Example Usage:
        ```python
        config = ConfigManager.from_environment()
        downstream = config.get_downstream_config()

        config = ConfigManager.from_file("config.json")
        artifacts = config.get_artifact_config()
        ```
    """

    def __init__(self, config_data: Dict[str, Any]):
        self._config_data = config_data
        self._downstream_config: Optional[DownstreamConfig] = None
        self._artifact_config: Optional[ArtifactConfig] = None

    @classmethod
    def from_environment(cls) -> 'ConfigManager':
        """Load configuration from environment variables.

        Environment Variables:
            - FI_DOWNSTREAM_BASE_URL: Downstream API base URL
            - FI_DOWNSTREAM_PATIENT_PATH: Path for person records
            - FI_DOWNSTREAM_DOCUMENT_PATH: Path for document records
            - FI_DOWNSTREAM_TIMEOUT: Forwarding timeout in seconds
            - FI_DOWNSTREAM_API_TOKEN: Bearer token (secret)
            - FI_ARTIFACT_DIR: Directory overriding shipped artifacts
            - FI_PATIENT_PROFILE_URL / FI_DOCUMENT_PROFILE_URL: Profile URLs
            - FI_KDL_CODE_SYSTEM_URL / FI_KDL_VALUE_SET_URL: Terminology URLs

        A ``.env`` file in the working directory is loaded first if present;
        variables already set in the environment win.
        """
        env_path = Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path, override=False)
            logger.debug(f"Loaded environment variables from {env_path}")

        config_data = {
            "downstream": {
                "base_url": os.getenv("FI_DOWNSTREAM_BASE_URL"),
                "patient_path": os.getenv("FI_DOWNSTREAM_PATIENT_PATH"),
                "document_path": os.getenv("FI_DOWNSTREAM_DOCUMENT_PATH"),
                "timeout_seconds": os.getenv("FI_DOWNSTREAM_TIMEOUT"),
                "api_token": os.getenv("FI_DOWNSTREAM_API_TOKEN"),
            },
            "artifacts": {
                "artifact_dir": os.getenv("FI_ARTIFACT_DIR"),
                "patient_profile_url": os.getenv("FI_PATIENT_PROFILE_URL"),
                "document_profile_url": os.getenv("FI_DOCUMENT_PROFILE_URL"),
                "code_system_url": os.getenv("FI_KDL_CODE_SYSTEM_URL"),
                "value_set_url": os.getenv("FI_KDL_VALUE_SET_URL"),
            },
        }
        return cls(config_data)

    @classmethod
    def from_file(cls, config_path: str) -> 'ConfigManager':
        """Load configuration from a JSON file.

        Raises:
            FileNotFoundError: If the config file doesn't exist
            ValueError: If the config file is not valid JSON
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        stat_info = config_file.stat()
        if stat_info.st_mode & 0o077 != 0 and "api_token" in config_file.read_text(encoding="utf-8"):
            logger.warning(
                f"Configuration file with credentials has overly permissive permissions: {config_path}. "
                "Consider setting to 600."
            )

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {str(e)}")

        return cls(config_data)

    @staticmethod
    def _present(section: Dict[str, Any]) -> Dict[str, Any]:
        # Unset values fall back to model defaults
        return {key: value for key, value in section.items() if value not in (None, "")}

    def get_downstream_config(self) -> DownstreamConfig:
        if self._downstream_config is None:
            data = self._present(self._config_data.get("downstream", {}))
            if data.get("api_token"):
                data["api_token"] = SecretStr(data["api_token"])
            self._downstream_config = DownstreamConfig(**data)
        return self._downstream_config

    def get_artifact_config(self) -> ArtifactConfig:
        if self._artifact_config is None:
            data = self._present(self._config_data.get("artifacts", {}))
            self._artifact_config = ArtifactConfig(**data)
        return self._artifact_config

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dotted key (e.g. ``downstream.base_url``)."""
        value: Any = self._config_data
        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
        return value if value is not None else default
