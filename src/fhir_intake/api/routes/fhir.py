"""FHIR intake endpoints.

``POST /fhir/Patient`` and ``POST /fhir/DocumentReference`` accept one raw
FHIR JSON resource and answer with an OperationOutcome
(``application/fhir+json``) whose HTTP status is the mapped result status:
201 created, 400 bad request, 500 internal error.

The ``/schema`` endpoints describe the canonical record forwarded
downstream for each resource kind.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from fhir_intake.api.dependencies import ParserDep, PipelineDep
from fhir_intake.api.middleware import FHIR_JSON
from fhir_intake.domain.canonical_records import CanonicalDocumentRecord, CanonicalPersonRecord
from fhir_intake.domain.outcome import Messages, OutcomeBuilder, ProcessingOutcome

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/fhir", tags=["fhir"])

_OUTCOME_RESPONSES = {
    201: {"description": "Resource validated and forwarded"},
    400: {"description": "Resource failed parsing, shape, profile or terminology validation"},
    500: {"description": "Extraction or downstream failure"},
}


def outcome_response(outcome: ProcessingOutcome) -> JSONResponse:
    """Serialize a processing outcome as an OperationOutcome response."""
    return JSONResponse(
        status_code=outcome.http_status,
        content=outcome.outcome.to_operation_outcome(),
        media_type=FHIR_JSON,
    )


async def _submit(
    request: Request,
    expected_type: str,
    invalid_message: str,
    pipeline,
    parser
) -> JSONResponse:
    body = await request.body()
    result = parser.parse(body, expected_type=expected_type)
    if result.is_failure():
        logger.warning(f"Rejected {expected_type} request body: {result.error_type}")
        return outcome_response(OutcomeBuilder.validation_failure(f"{invalid_message} {result.error}"))

    # The pipeline blocks on the downstream call
    outcome = await run_in_threadpool(pipeline.submit, result.value)
    return outcome_response(outcome)


@router.post("/Patient", status_code=201, responses=_OUTCOME_RESPONSES)
async def create_patient(request: Request, pipeline: PipelineDep, parser: ParserDep) -> JSONResponse:
    """Validate a Patient and forward its person record downstream."""
    return await _submit(request, "Patient", Messages.INVALID_PATIENT_RESOURCE, pipeline, parser)


@router.post("/DocumentReference", status_code=201, responses=_OUTCOME_RESPONSES)
async def create_document_reference(request: Request, pipeline: PipelineDep, parser: ParserDep) -> JSONResponse:
    """Validate a DocumentReference and forward its document record downstream."""
    return await _submit(request, "DocumentReference", Messages.INVALID_DOCUMENT_RESOURCE, pipeline, parser)


@router.get("/Patient/schema")
async def patient_schema() -> dict:
    """JSON schema of the person record sent downstream."""
    return CanonicalPersonRecord.json_schema()


@router.get("/DocumentReference/schema")
async def document_reference_schema() -> dict:
    """JSON schema of the document record sent downstream."""
    return CanonicalDocumentRecord.json_schema()
