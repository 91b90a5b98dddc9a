"""SQLAlchemy ORM models for the CRMForge run history database.

One row per provisioning run: what was requested, how far it got, and
the runtime ids of everything it created. Uses SQLAlchemy 2.0 style with
Mapped and mapped_column.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def generate_uuid() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid4())


def utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format."""
    return datetime.now(UTC).isoformat()


class RunStatus(str, Enum):
    """Status values for provisioning runs.

    Lifecycle: pending -> running -> completed/failed
    """

    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class ProvisioningRun(Base):
    """Record of one CRM provisioning run.

    Attributes:
        id: UUID primary key (also sent to clients as X-Run-Id)
        page_title: Title of the parent page
        parent_page_id: Page the CRM was created under, if any
        schema_json: The requested CRMSchema, serialized
        status: Current run status
        total_steps: 1 + databases + relations
        completed_steps: Steps finished so far
        current_phase: Phase of the most recent progress event
        created_page_id: Runtime id of the parent page once created
        databases_json: Database key -> runtime ids, serialized
        relations_created: Relation patches applied
        created_at: ISO8601 timestamp of run creation
        started_at: ISO8601 timestamp of the first progress event
        completed_at: ISO8601 timestamp of the terminal event
        error_code: Error code if the run failed (E-XXXX format)
        error_message: Sanitized error message if the run failed
    """

    __tablename__ = "provisioning_runs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    page_title: Mapped[str] = mapped_column(String(255), nullable=False)
    parent_page_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    schema_json: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RunStatus.pending.value
    )

    # Progress
    total_steps: Mapped[int] = mapped_column(default=0, nullable=False)
    completed_steps: Mapped[int] = mapped_column(default=0, nullable=False)
    current_phase: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Created objects
    created_page_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    databases_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    relations_created: Mapped[int] = mapped_column(default=0, nullable=False)

    # Timestamps (ISO8601 strings for SQLite compatibility)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    started_at: Mapped[str | None] = mapped_column(String(50), nullable=True)
    completed_at: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Error info (if failed)
    error_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_runs_status", "status"),
        Index("idx_runs_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<ProvisioningRun(id={self.id!r}, page_title={self.page_title!r}, "
            f"status={self.status!r})>"
        )
