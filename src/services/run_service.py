"""Run history service with state machine validation.

Persists one ProvisioningRun per CRM provisioning request and folds the
run's progress events and final result into it, so the API and CLI can
report on runs after their event streams have closed.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from src.db.models import ProvisioningRun, RunStatus
from src.orchestrator.provisioning.events import ProgressEvent, ProvisionPhase, StepStatus
from src.orchestrator.provisioning.models import ProvisioningResult
from src.schema.models import CRMSchema
from src.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)


class InvalidStateTransition(Exception):
    """Raised when attempting an invalid run state transition.

    Attributes:
        current_state: The current state of the run.
        attempted_state: The state that was attempted.
    """

    def __init__(self, current_state: RunStatus, attempted_state: RunStatus) -> None:
        self.current_state = current_state
        self.attempted_state = attempted_state
        allowed = ", ".join(s.value for s in VALID_TRANSITIONS[current_state]) or "none (terminal)"
        super().__init__(
            f"Cannot transition from '{current_state.value}' to '{attempted_state.value}'. "
            f"Allowed transitions: {allowed}"
        )


VALID_TRANSITIONS: dict[RunStatus, list[RunStatus]] = {
    RunStatus.pending: [RunStatus.running, RunStatus.failed],
    RunStatus.running: [RunStatus.completed, RunStatus.failed],
    RunStatus.completed: [],  # terminal
    RunStatus.failed: [],  # terminal
}

TERMINAL_STATUSES = frozenset({RunStatus.completed, RunStatus.failed})


def _utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format."""
    return datetime.now(timezone.utc).isoformat()


def run_to_dict(run: ProvisioningRun) -> dict[str, Any]:
    """Serialize a run for API and CLI output (camelCase keys)."""
    return {
        "id": run.id,
        "pageTitle": run.page_title,
        "parentPageId": run.parent_page_id,
        "status": run.status,
        "totalSteps": run.total_steps,
        "completedSteps": run.completed_steps,
        "currentPhase": run.current_phase,
        "createdPageId": run.created_page_id,
        "databases": json.loads(run.databases_json) if run.databases_json else {},
        "relationsCreated": run.relations_created,
        "createdAt": run.created_at,
        "startedAt": run.started_at,
        "completedAt": run.completed_at,
        "errorCode": run.error_code,
        "errorMessage": run.error_message,
    }


class ProvisioningRunService:
    """CRUD and lifecycle operations for provisioning runs.

    Attributes:
        db: SQLAlchemy session for database operations.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def create_run(
        self,
        schema: CRMSchema,
        page_title: str,
        parent_page_id: str | None = None,
    ) -> ProvisioningRun:
        """Record a new pending run.

        Args:
            schema: The schema about to be provisioned.
            page_title: Title of the parent page.
            parent_page_id: Page the CRM will be created under.

        Returns:
            The created ProvisioningRun.
        """
        run = ProvisioningRun(
            page_title=page_title,
            parent_page_id=parent_page_id,
            schema_json=schema.model_dump_json(by_alias=True, exclude_none=True),
            status=RunStatus.pending.value,
            total_steps=schema.total_steps,
        )
        self.db.add(run)
        self.db.commit()
        self.db.refresh(run)
        logger.info("Created run %s for '%s'", run.id, page_title)
        return run

    def get_run(self, run_id: str) -> ProvisioningRun | None:
        """Get a run by id, or None."""
        return self.db.get(ProvisioningRun, run_id)

    def list_runs(
        self,
        status: RunStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ProvisioningRun]:
        """List runs, newest first.

        Args:
            status: Only runs in this status (optional).
            limit: Maximum number of runs to return.
            offset: Number of runs to skip.
        """
        query = self.db.query(ProvisioningRun)
        if status is not None:
            query = query.filter(ProvisioningRun.status == status.value)
        query = query.order_by(ProvisioningRun.created_at.desc())
        return query.limit(limit).offset(offset).all()

    def count_runs(self, status: RunStatus | None = None) -> int:
        """Count runs, optionally only those in one status."""
        query = self.db.query(ProvisioningRun)
        if status is not None:
            query = query.filter(ProvisioningRun.status == status.value)
        return query.count()

    def _require(self, run_id: str) -> ProvisioningRun:
        run = self.get_run(run_id)
        if run is None:
            raise ValueError(f"Run not found: {run_id}")
        return run

    def _transition(self, run: ProvisioningRun, new_status: RunStatus) -> None:
        current = RunStatus(run.status)
        if current == new_status:
            return
        if new_status not in VALID_TRANSITIONS[current]:
            raise InvalidStateTransition(current, new_status)
        now = _utc_now_iso()
        run.status = new_status.value
        if new_status == RunStatus.running and run.started_at is None:
            run.started_at = now
        if new_status in TERMINAL_STATUSES:
            run.completed_at = now

    def apply_event(self, run_id: str, event: ProgressEvent) -> ProvisioningRun:
        """Fold one progress event into the run record.

        Args:
            run_id: Run the event belongs to.
            event: The event, as emitted by the provisioner.

        Returns:
            The updated run.

        Raises:
            ValueError: If the run does not exist.
            InvalidStateTransition: If the run already reached a terminal state.
        """
        run = self._require(run_id)
        phase = ProvisionPhase(event.phase)
        status = StepStatus(event.status)

        if phase == ProvisionPhase.complete:
            self._transition(run, RunStatus.running)
            self._transition(run, RunStatus.completed)
            run.completed_steps = run.total_steps
        elif phase == ProvisionPhase.error:
            self._transition(run, RunStatus.failed)
            run.error_message = sanitize_error_message(event.error or event.message)
        else:
            self._transition(run, RunStatus.running)
            if status == StepStatus.success:
                run.completed_steps = event.step
        run.current_phase = phase.value

        self.db.commit()
        self.db.refresh(run)
        return run

    def record_result(self, run_id: str, result: ProvisioningResult) -> ProvisioningRun:
        """Store the final result of a run and settle its status.

        Safe to call after the terminal event was applied; the status only
        moves if the run has not settled yet.
        """
        run = self._require(run_id)
        run.completed_steps = result.completed_steps
        run.created_page_id = result.parent_page_id
        run.databases_json = json.dumps(result.to_dict()["databases"])
        run.relations_created = result.relations_created

        if result.success:
            if RunStatus(run.status) not in TERMINAL_STATUSES:
                self._transition(run, RunStatus.running)
                self._transition(run, RunStatus.completed)
        else:
            run.error_code = result.error_code
            run.error_message = sanitize_error_message(result.error_message)
            if RunStatus(run.status) not in TERMINAL_STATUSES:
                self._transition(run, RunStatus.failed)

        self.db.commit()
        self.db.refresh(run)
        logger.info("Run %s finished with status %s", run.id, run.status)
        return run

    def fail_run(self, run_id: str, error_code: str, error_message: str) -> ProvisioningRun:
        """Mark a run failed outside the event flow (e.g. client disconnect)."""
        run = self._require(run_id)
        if RunStatus(run.status) not in TERMINAL_STATUSES:
            self._transition(run, RunStatus.failed)
            run.error_code = error_code
            run.error_message = sanitize_error_message(error_message)
            self.db.commit()
            self.db.refresh(run)
        return run
