"""Main entry point and process bootstrap for FHIR-Intake.

Wires the startup context, validators, transformer and forwarder into an
IntakePipeline, and provides a minimal command-line entry point that submits
FHIR JSON files through it.

Security Impact:
    - Validation artifacts are loaded and checked before anything is submitted
    - Downstream credentials come from configuration only

Architecture:
    - Composition root: the only module that knows every concrete class
    - The API lifespan and the Typer CLI reuse ``create_pipeline``
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from fhir_intake.adapters.forwarders import HttpForwarder
from fhir_intake.adapters.parsers import JSONResourceParser
from fhir_intake.domain.outcome import OutcomeBuilder, ProcessingOutcome
from fhir_intake.domain.ports import ArtifactLoadError, ForwarderPort
from fhir_intake.domain.services import (
    DocumentReferenceValidator,
    IntakePipeline,
    PatientValidator,
    ResourceTransformer,
)
from fhir_intake.infrastructure.context import IntakeContext, build_context
from fhir_intake.infrastructure.logging_config import setup_logging
from fhir_intake.infrastructure.settings import settings

logger = logging.getLogger(__name__)


def create_transformer(context: IntakeContext) -> ResourceTransformer:
    artifacts = context.settings.artifacts
    return ResourceTransformer(
        terminology=context.terminology,
        code_system_url=artifacts.code_system_url,
        value_set_url=artifacts.value_set_url,
    )


def create_validators(context: IntakeContext) -> tuple:
    """Build the Patient and DocumentReference validators over the context.

    Returns:
        tuple: (PatientValidator, DocumentReferenceValidator)
    """
    artifacts = context.settings.artifacts
    transformer = create_transformer(context)
    patient_validator = PatientValidator(
        context.profile_validator, artifacts.patient_profile_url, transformer
    )
    document_validator = DocumentReferenceValidator(
        context.profile_validator, artifacts.document_profile_url, transformer
    )
    return patient_validator, document_validator


def create_pipeline(context: IntakeContext, forwarder: Optional[ForwarderPort] = None) -> IntakePipeline:
    """Create the intake pipeline.

    Parameters:
        context: Startup context
        forwarder: Forwarder to use (default: HttpForwarder over the
            configured downstream API)

    Returns:
        IntakePipeline: Ready-to-use pipeline
    """
    downstream = context.settings.downstream
    if forwarder is None:
        logger.info(f"Initializing HTTP forwarder for {downstream.base_url}")
        forwarder = HttpForwarder(downstream)

    patient_validator, document_validator = create_validators(context)
    return IntakePipeline(
        patient_validator=patient_validator,
        document_validator=document_validator,
        forwarder=forwarder,
        patient_path=downstream.patient_path,
        document_path=downstream.document_path,
    )


def process_file(
    path: Path,
    pipeline: IntakePipeline,
    parser: Optional[JSONResourceParser] = None
) -> ProcessingOutcome:
    """Parse a FHIR JSON file and submit it through the pipeline.

    Unreadable or unparsable files become a bad-request outcome, the same
    way an invalid request body does in the API.
    """
    parser = parser or JSONResourceParser()
    try:
        raw = path.read_bytes()
    except OSError as e:
        logger.error(f"Cannot read {path}: {e}")
        return OutcomeBuilder.validation_failure(f"Cannot read input file: {path.name}")

    result = parser.parse(raw)
    if result.is_failure():
        return OutcomeBuilder.validation_failure(result.error)
    return pipeline.submit(result.value)


def main():
    """Main entry point: submit one or more FHIR JSON files."""
    parser = argparse.ArgumentParser(
        description=f"{settings.app_name} - FHIR Patient and DocumentReference intake",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Submit a Patient resource
  python -m fhir_intake.main --input patient.json

  # Submit several resources to a specific downstream API
  export FI_DOWNSTREAM_BASE_URL=https://records.example.org/api
  python -m fhir_intake.main --input patient.json --input document.json
        """
    )
    parser.add_argument(
        "--input", "-i",
        required=True,
        action="append",
        help="FHIR JSON file (Patient or DocumentReference); may be repeated"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    args = parser.parse_args()

    setup_logging(
        use_json=settings.json_logs,
        log_level="DEBUG" if args.verbose else settings.log_level,
        service=settings.app_name,
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}...")

    try:
        context = build_context(settings)
    except ArtifactLoadError as e:
        logger.error(f"Startup failed: {e}")
        sys.exit(1)

    pipeline = create_pipeline(context)
    failures = 0
    for input_file in args.input:
        outcome = process_file(Path(input_file), pipeline)
        logger.info(f"{input_file}: HTTP {outcome.http_status} - {outcome.outcome.diagnostics}")
        if not outcome.is_success():
            failures += 1

    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
