"""Progress events emitted by a provisioning run.

Events form a total order over attempted and completed units of work.
Every unit of work produces an ``in_progress`` event followed by a
``success`` event, and a run ends with exactly one ``complete`` or
``error`` event. The JSON shape (camelCase keys, absent optionals
omitted) is the contract the progress UI renders against.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ProvisionPhase(str, Enum):
    """Phase tag carried by every progress event."""

    creating_parent = "creating_parent"
    creating_databases = "creating_databases"
    adding_relations = "adding_relations"
    complete = "complete"
    error = "error"


class StepStatus(str, Enum):
    """Status of the unit of work an event describes."""

    pending = "pending"
    in_progress = "in_progress"
    success = "success"
    error = "error"


class ProgressEvent(BaseModel):
    """One immutable progress update.

    Attributes:
        step: 1-based index of the unit of work.
        total_steps: Steps in the whole run, known before work starts.
        phase: Which phase produced the event.
        message: Human-readable summary.
        detail: Optional extra context.
        database_name: Display name of the database being worked on.
        status: Status of the unit of work.
        error: Error message for terminal error events.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        use_enum_values=True,
    )

    step: int
    total_steps: int
    phase: ProvisionPhase
    message: str
    detail: str | None = None
    database_name: str | None = None
    status: StepStatus
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        """Whether this event ends the run."""
        return self.phase in (ProvisionPhase.complete, ProvisionPhase.error)

    def to_wire(self) -> dict[str, Any]:
        """Serialize with camelCase keys, omitting unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True)
