"""Startup Context.

The explicit startup phase of the process: loads the static definition
artifacts once, builds the terminology index and the profile engine, and
returns an immutable context that every request handler receives by
reference.

Security Impact:
    - Any artifact failure aborts startup before a request is served
    - The context holds no per-request state
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping

from fhir_intake.domain.ports import ArtifactLoadError
from fhir_intake.infrastructure.artifacts import ArtifactLoader
from fhir_intake.infrastructure.settings import Settings
from fhir_intake.infrastructure.terminology_store import TerminologyIndex, TerminologyStore
from fhir_intake.infrastructure.validation import StructureValidator, TerminologySupport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntakeContext:
    """Process-wide, read-only state shared by all requests.

    Attributes:
        settings: Application settings
        terminology: Terminology store over the loaded code system and value set
        profiles: Loaded StructureDefinitions keyed by canonical URL
        profile_validator: Structural validation engine over ``profiles``
        artifact_source: Where the artifacts were read from
    """
    settings: Settings
    terminology: TerminologyStore
    profiles: Mapping[str, Mapping[str, Any]]
    profile_validator: StructureValidator
    artifact_source: str

    def describe(self) -> Dict[str, Any]:
        """Summary of loaded artifacts for health checks and the CLI."""
        summary: Dict[str, Any] = {"source": self.artifact_source, "profiles": sorted(self.profiles)}
        summary.update(self.terminology.describe())
        return summary


def _load_profile(loader: ArtifactLoader, path: str, url: str) -> Dict[str, Any]:
    definition = loader.load_json(path, expected_type="StructureDefinition")
    if definition.get("url") != url:
        raise ArtifactLoadError(
            f"StructureDefinition at '{path}' has url {definition.get('url')!r}, expected {url!r}",
            artifact_path=path,
        )
    return definition


def build_context(settings: Settings) -> IntakeContext:
    """Run the startup phase.

    Parameters:
        settings: Application settings (artifact configuration is read from it)

    Returns:
        IntakeContext: Immutable context for the lifetime of the process

    Raises:
        ArtifactLoadError: If any artifact is missing, malformed or inconsistent
            with the configured canonical URLs
    """
    config = settings.artifacts
    loader = ArtifactLoader(config.artifact_dir)
    logger.info(f"Loading validation artifacts from {loader.source}")

    profiles = {
        config.patient_profile_url: _load_profile(
            loader, config.patient_profile_path, config.patient_profile_url
        ),
        config.document_profile_url: _load_profile(
            loader, config.document_profile_path, config.document_profile_url
        ),
    }

    code_system = loader.load_json(config.code_system_path, expected_type="CodeSystem")
    value_set = loader.load_json(config.value_set_path, expected_type="ValueSet")
    index = TerminologyIndex.from_artifacts([code_system], [value_set])

    if config.code_system_url not in index.code_systems:
        raise ArtifactLoadError(
            f"CodeSystem {config.code_system_url} not found in '{config.code_system_path}'",
            artifact_path=config.code_system_path,
        )
    if config.value_set_url not in index.value_sets:
        raise ArtifactLoadError(
            f"ValueSet {config.value_set_url} not found in '{config.value_set_path}'",
            artifact_path=config.value_set_path,
        )

    terminology = TerminologyStore(index)
    profile_validator = StructureValidator(profiles.values(), TerminologySupport(terminology))

    context = IntakeContext(
        settings=settings,
        terminology=terminology,
        profiles=MappingProxyType({url: MappingProxyType(d) for url, d in profiles.items()}),
        profile_validator=profile_validator,
        artifact_source=loader.source,
    )
    logger.info(
        f"Startup complete: {len(profiles)} profile(s), "
        f"{len(index.code_systems[config.code_system_url])} concept(s), "
        f"{len(index.value_sets[config.value_set_url].codes)} value set code(s)"
    )
    return context
