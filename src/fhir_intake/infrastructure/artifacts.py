"""Static Definition Artifact Loader.

Reads the StructureDefinition, CodeSystem and ValueSet JSON artifacts either
from the package's bundled ``resources`` directory or from a configured
override directory.

Security Impact:
    - Logical paths are resolved relative to the artifact root only
    - Any read or parse failure is fatal (ArtifactLoadError) so the process
      never serves requests with partially loaded definitions
"""

import json
import logging
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Optional

from fhir_intake.domain.ports import ArtifactLoadError

logger = logging.getLogger(__name__)

BUNDLED_PACKAGE = "fhir_intake.resources"


class ArtifactLoader:
    """Loads JSON definition artifacts by logical path.

    Parameters:
        artifact_dir: Optional directory to read artifacts from instead of
            the bundled package data
    """

    def __init__(self, artifact_dir: Optional[str] = None):
        self.artifact_dir = Path(artifact_dir) if artifact_dir else None

    @property
    def source(self) -> str:
        """Human-readable description of where artifacts come from."""
        return str(self.artifact_dir) if self.artifact_dir else f"package:{BUNDLED_PACKAGE}"

    def read_text(self, logical_path: str) -> str:
        try:
            if self.artifact_dir is not None:
                return (self.artifact_dir / logical_path).read_text(encoding="utf-8")
            resource = resources.files(BUNDLED_PACKAGE).joinpath(logical_path)
            return resource.read_text(encoding="utf-8")
        except (OSError, ModuleNotFoundError) as e:
            raise ArtifactLoadError(
                f"Cannot read artifact '{logical_path}' from {self.source}: {e}",
                artifact_path=logical_path
            ) from e

    def load_json(self, logical_path: str, expected_type: Optional[str] = None) -> Dict[str, Any]:
        """Load and parse one JSON artifact.

        Parameters:
            logical_path: Path relative to the artifact root
            expected_type: resourceType the artifact must declare

        Returns:
            Dict[str, Any]: The parsed artifact

        Raises:
            ArtifactLoadError: If the artifact is missing, not JSON, not an
                object, or of the wrong resourceType
        """
        text = self.read_text(logical_path)
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ArtifactLoadError(
                f"Artifact '{logical_path}' is not valid JSON: {e}",
                artifact_path=logical_path
            ) from e

        if not isinstance(data, dict):
            raise ArtifactLoadError(
                f"Artifact '{logical_path}' must be a JSON object",
                artifact_path=logical_path
            )
        if expected_type is not None and data.get("resourceType") != expected_type:
            raise ArtifactLoadError(
                f"Artifact '{logical_path}' has resourceType {data.get('resourceType')!r}, "
                f"expected {expected_type!r}",
                artifact_path=logical_path
            )

        logger.debug(f"Loaded {expected_type or 'artifact'} from {logical_path} ({self.source})")
        return data
