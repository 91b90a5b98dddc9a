"""Tests for progress events."""

import pytest
from pydantic import ValidationError

from src.orchestrator.provisioning import ProgressEvent, ProvisionPhase, StepStatus


def _event(**overrides) -> ProgressEvent:
    fields = {
        "step": 2,
        "total_steps": 5,
        "phase": ProvisionPhase.creating_databases,
        "status": StepStatus.in_progress,
        "message": "Creating Accounts database",
    }
    fields.update(overrides)
    return ProgressEvent(**fields)


class TestProgressEvent:
    """Tests for the event model and its wire format."""

    def test_wire_format_uses_camel_case_and_omits_unset(self):
        """Optional fields that are unset do not appear on the wire."""
        wire = _event(database_name="Accounts").to_wire()
        assert wire == {
            "step": 2,
            "totalSteps": 5,
            "phase": "creating_databases",
            "status": "in_progress",
            "message": "Creating Accounts database",
            "databaseName": "Accounts",
        }

    def test_error_event_carries_error(self):
        """Error events put the failure text in 'error'."""
        wire = _event(
            phase=ProvisionPhase.error,
            status=StepStatus.error,
            message="Failed to create CRM",
            error="HTTP 400: bad",
        ).to_wire()
        assert wire["error"] == "HTTP 400: bad"
        assert wire["phase"] == "error"

    @pytest.mark.parametrize(
        "phase,terminal",
        [
            (ProvisionPhase.creating_parent, False),
            (ProvisionPhase.creating_databases, False),
            (ProvisionPhase.adding_relations, False),
            (ProvisionPhase.complete, True),
            (ProvisionPhase.error, True),
        ],
    )
    def test_is_terminal(self, phase, terminal):
        """Only complete and error end a run."""
        assert _event(phase=phase).is_terminal is terminal

    def test_accepts_wire_names(self):
        """Events can be rebuilt from their JSON form."""
        event = ProgressEvent.model_validate(_event(detail="x").to_wire())
        assert event.total_steps == 5
        assert event.detail == "x"

    def test_immutable(self):
        """Events are frozen once emitted."""
        with pytest.raises(ValidationError):
            _event().step = 3
