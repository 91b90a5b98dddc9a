"""FastAPI routes for CRM provisioning.

POST /crm/create streams the run's progress events over Server-Sent
Events, one ``data: {json}`` frame per event, ending with exactly one
``complete`` or ``error`` event. Every run is recorded in the run history
and can be inspected afterwards through GET /crm/runs.
"""

import json
import logging
from functools import partial
from typing import AsyncGenerator, Callable

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session, sessionmaker
from sse_starlette.sse import EventSourceResponse

from src.api.schemas import CRMCreateRequest, RunListResponse, RunResponse
from src.cli.config import CRMForgeConfig, get_config
from src.cli.factory import get_client, get_executor
from src.db.connection import get_db, get_session_factory
from src.db.models import RunStatus
from src.errors import SchemaValidationError, error_code_for, get_error
from src.orchestrator.provisioning import (
    ProgressEvent,
    ProgressStream,
    ProvisionPhase,
    StepStatus,
    start_provisioning,
)
from src.schema import ensure_valid, parse_schema
from src.services.notion_client import RecordStore
from src.services.rate_limiter import RateLimitedExecutor
from src.services.run_service import ProvisioningRunService, run_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/crm", tags=["crm"])

RecordStoreFactory = Callable[[], RecordStore]

SSE_PING_SECONDS = 15


def get_record_store_factory(
    config: CRMForgeConfig = Depends(get_config),
) -> RecordStoreFactory:
    """Return a callable creating a record store client per run."""
    return partial(get_client, config)


def get_shared_executor(
    request: Request,
    config: CRMForgeConfig = Depends(get_config),
) -> RateLimitedExecutor:
    """Return the process-wide executor so concurrent runs share one pace."""
    executor = getattr(request.app.state, "executor", None)
    if executor is None:
        executor = get_executor(config)
        request.app.state.executor = executor
    return executor


def _fallback_error_event(message: str) -> dict:
    """Error frame for failures that escape the provisioner."""
    event = ProgressEvent(
        step=0,
        total_steps=0,
        phase=ProvisionPhase.error,
        status=StepStatus.error,
        message="Failed to create CRM",
        error=message,
    )
    return {"data": json.dumps(event.to_wire())}


async def _event_generator(
    request: Request,
    stream: ProgressStream,
    client: RecordStore,
    run_id: str,
    session_factory: sessionmaker,
) -> AsyncGenerator[dict, None]:
    """Relay progress events to the client and record them on the run.

    Stops the run when the client disconnects; what was already created
    stays in place and the run is marked failed.

    Yields:
        SSE frames as dicts with a 'data' key.
    """
    try:
        async for event in stream:
            with session_factory() as db:
                ProvisioningRunService(db).apply_event(run_id, event)
            yield {"data": json.dumps(event.to_wire())}
            if await request.is_disconnected():
                logger.warning("Client disconnected from run %s; cancelling", run_id)
                break
    except Exception as e:
        logger.exception("Run %s crashed outside the provisioner", run_id)
        yield _fallback_error_event(str(e) or type(e).__name__)
    finally:
        await stream.aclose()
        aclose = getattr(client, "aclose", None)
        if aclose is not None:
            await aclose()
        with session_factory() as db:
            service = ProvisioningRunService(db)
            if stream.result is not None:
                service.record_result(run_id, stream.result)
            else:
                service.fail_run(run_id, "E-4099", "Run stopped before completion")


@router.post("/create")
async def create_crm(
    request: Request,
    body: CRMCreateRequest,
    config: CRMForgeConfig = Depends(get_config),
    make_client: RecordStoreFactory = Depends(get_record_store_factory),
    executor: RateLimitedExecutor = Depends(get_shared_executor),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> EventSourceResponse:
    """Provision a CRM and stream progress via Server-Sent Events.

    Args:
        request: FastAPI request object, for disconnect detection.
        body: Schema, page title and parent page id.

    Returns:
        EventSourceResponse streaming ProgressEvents; the run id is sent in
        the X-Run-Id header.

    Raises:
        HTTPException: 401 without an API key, 400 on a missing schema,
            title or parent page, 422 if the schema is invalid.
    """
    if not config.resolved_api_key():
        error_def = get_error("E-5001")
        raise HTTPException(
            status_code=401,
            detail=f"{error_def.message_template} {error_def.remediation}",
        )
    if body.schema_ is None:
        raise HTTPException(status_code=400, detail="Schema is required")
    if not body.page_title or not body.page_title.strip():
        raise HTTPException(status_code=400, detail="Page title is required")
    if not body.parent_page_id:
        raise HTTPException(
            status_code=400,
            detail=(
                "Parent page ID is required when using an internal integration. "
                "Provide the Notion page the CRM should be created under."
            ),
        )

    try:
        schema = parse_schema(body.schema_)
        ensure_valid(schema)
    except SchemaValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={
                "errorCode": error_code_for(e),
                "message": str(e),
                "issues": [i.to_dict() for i in e.issues],
            },
        ) from e

    with session_factory() as db:
        run = ProvisioningRunService(db).create_run(
            schema, body.page_title, body.parent_page_id
        )
        run_id = run.id

    client = make_client()
    stream = start_provisioning(
        client,
        schema,
        body.page_title,
        parent_page_id=body.parent_page_id,
        executor=executor,
    )
    logger.info("Started run %s: %d steps", run_id, schema.total_steps)

    return EventSourceResponse(
        _event_generator(request, stream, client, run_id, session_factory),
        media_type="text/event-stream",
        ping=SSE_PING_SECONDS,
        headers={
            "X-Run-Id": run_id,
            "Cache-Control": "no-cache, no-transform",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/runs", response_model=RunListResponse)
def list_runs(
    status: RunStatus | None = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
) -> RunListResponse:
    """List provisioning runs, newest first.

    ``total`` counts every run matching the filter, not just this page.
    """
    service = ProvisioningRunService(db)
    runs = service.list_runs(status=status, limit=limit, offset=offset)
    return RunListResponse(
        runs=[RunResponse.model_validate(run_to_dict(r)) for r in runs],
        total=service.count_runs(status=status),
    )


@router.get("/runs/{run_id}", response_model=RunResponse)
def get_run(run_id: str, db: Session = Depends(get_db)) -> RunResponse:
    """Get one provisioning run.

    Raises:
        HTTPException: If the run does not exist (404).
    """
    run = ProvisioningRunService(db).get_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return RunResponse.model_validate(run_to_dict(run))
