"""Data models for provisioning runs.

Defines the runtime handle recorded for each created database and the
result returned when a run ends.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class RuntimeHandle:
    """Identifiers the record store assigned to a created database."""

    database_id: str
    """Id of the database object itself."""

    data_source_id: str
    """Id used to patch the schema and as a relation target.

    Equal to database_id when the store exposes no separate data source.
    """

    @property
    def has_data_source(self) -> bool:
        """Whether the store assigned a data source separate from the database."""
        return self.data_source_id != self.database_id


@dataclass
class ProvisioningResult:
    """Result of a provisioning run.

    Contains what was created even when the run failed part-way, since
    nothing is rolled back.
    """

    success: bool
    """Whether the run reached the complete event."""

    total_steps: int
    """Steps the run was planned to take."""

    completed_steps: int
    """Steps that reached success."""

    parent_page_id: Optional[str] = None
    """Id of the created parent page, if phase 1 succeeded."""

    databases: dict[str, RuntimeHandle] = field(default_factory=dict)
    """Created databases by schema key."""

    relations_created: int = 0
    """Relation properties patched onto databases."""

    error_message: Optional[str] = None
    """Message of the fatal error if the run failed."""

    error_code: Optional[str] = None
    """Registry code of the fatal error if the run failed."""

    def to_dict(self) -> dict:
        """Serialize for JSON responses and run records."""
        return {
            "success": self.success,
            "totalSteps": self.total_steps,
            "completedSteps": self.completed_steps,
            "parentPageId": self.parent_page_id,
            "databases": {
                key: {
                    "databaseId": handle.database_id,
                    "dataSourceId": handle.data_source_id,
                }
                for key, handle in self.databases.items()
            },
            "relationsCreated": self.relations_created,
            "errorMessage": self.error_message,
            "errorCode": self.error_code,
        }
