"""Tests for the three-phase CRM provisioner."""

import pytest

from src.orchestrator.provisioning import CRMProvisioner, ProgressEvent
from src.orchestrator.provisioning.provisioner import (
    database_payload,
    parent_page_payload,
    runtime_handle,
)
from src.schema import CRMSchema
from src.services.errors import RecordStoreError, ThrottledError
from tests.helpers import FakeRecordStore


class EventLog:
    """Collects emitted events."""

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []

    async def __call__(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def phases(self) -> list[str]:
        return [e.phase for e in self.events]

    def successes(self) -> list[str]:
        return [e.message for e in self.events if e.status == "success"]


async def _provision(store, schema, executor, parent="parent-page"):
    log = EventLog()
    result = await CRMProvisioner(store, executor).provision(
        schema, "Sales CRM", log, parent_page_id=parent
    )
    return result, log


class TestPayloads:
    """Tests for the request bodies the provisioner builds."""

    def test_parent_page_under_page(self):
        """A parent page id nests the CRM under that page."""
        payload = parent_page_payload("Sales CRM", "abc")
        assert payload["parent"] == {"type": "page_id", "page_id": "abc"}
        assert payload["properties"]["title"]["title"][0]["text"]["content"] == "Sales CRM"

    def test_parent_page_at_workspace_root(self):
        """Without a parent id the page goes to the workspace root."""
        assert parent_page_payload("Sales CRM", None)["parent"] == {
            "type": "workspace",
            "workspace": True,
        }

    def test_database_payload(self, starter_schema):
        """Databases get title, icon, and relation-free properties."""
        payload = database_payload(starter_schema.databases[0], "page-1")
        assert payload["parent"] == {"type": "page_id", "page_id": "page-1"}
        assert payload["title"][0]["text"]["content"] == "Accounts"
        assert payload["icon"] == {"type": "emoji", "emoji": "🏢"}
        assert "Contacts" not in payload["properties"]
        assert "description" not in payload

    def test_runtime_handle_prefers_data_source(self):
        """Newer responses list data sources; older ones only have the id."""
        assert runtime_handle({"id": "db", "data_sources": [{"id": "ds"}]}).data_source_id == "ds"
        handle = runtime_handle({"id": "db"})
        assert (handle.database_id, handle.data_source_id) == ("db", "db")
        assert handle.has_data_source is False
        assert runtime_handle({"id": "db", "data_sources": [{"id": "ds"}]}).has_data_source is True


class TestProvisionHappyPath:
    """End-to-end runs against the fake store."""

    @pytest.mark.asyncio
    async def test_starter_schema_end_to_end(self, fake_store, starter_schema, fast_executor):
        """Parent, two databases, two relations, then complete."""
        result, log = await _provision(fake_store, starter_schema, fast_executor)

        assert result.success is True
        assert result.total_steps == 5
        assert result.completed_steps == 5
        assert result.relations_created == 2
        assert result.parent_page_id == "page-1"

        assert log.successes() == [
            "Created parent page: Sales CRM",
            "Created Accounts database",
            "Created Contacts database",
            "Added relation: Contacts",
            "Added relation: Account",
            "CRM created successfully!",
        ]
        assert len(log.events) == 11
        final = log.events[-1]
        assert final.phase == "complete"
        assert final.step == final.total_steps == 5
        assert final.detail == "Created 2 databases with 2 relations"

    @pytest.mark.asyncio
    async def test_every_step_has_in_progress_then_success(
        self, fake_store, starter_schema, fast_executor
    ):
        """Each unit of work emits in_progress then success with the same step."""
        _, log = await _provision(fake_store, starter_schema, fast_executor)
        work = log.events[:-1]
        pairs = list(zip(work[::2], work[1::2]))
        assert [(a.status, b.status) for a, b in pairs] == [("in_progress", "success")] * 5
        assert [a.step for a, _ in pairs] == [1, 2, 3, 4, 5]
        assert all(a.step == b.step for a, b in pairs)

    @pytest.mark.asyncio
    async def test_calls_and_relation_targets(self, fake_store, starter_schema, fast_executor):
        """Relations are patched onto the owner and point at the target."""
        await _provision(fake_store, starter_schema, fast_executor)

        assert fake_store.methods() == [
            "create_page",
            "create_database",
            "create_database",
            "update_database",
            "update_database",
        ]
        accounts_patch, contacts_patch = fake_store.calls[3], fake_store.calls[4]
        assert accounts_patch.target_id == "db-1"
        assert accounts_patch.payload["properties"]["Contacts"]["relation"]["database_id"] == "db-2"
        assert contacts_patch.target_id == "db-2"
        assert contacts_patch.payload["properties"]["Account"]["relation"]["database_id"] == "db-1"

    @pytest.mark.asyncio
    async def test_relations_use_data_source_ids(self, starter_schema, fast_executor):
        """When the API returns data sources, patches and targets use them."""
        store = FakeRecordStore(with_data_sources=True)
        result, _ = await _provision(store, starter_schema, fast_executor)
        assert store.methods()[3:] == ["update_data_source", "update_data_source"]
        assert store.calls[3].target_id == "ds-1"
        relation = store.calls[3].payload["properties"]["Contacts"]["relation"]
        assert relation["data_source_id"] == "ds-2"
        assert "database_id" not in relation
        assert result.success is True
        assert result.databases["accounts"].database_id == "db-1"

    @pytest.mark.asyncio
    async def test_relation_phase_detail(self, fake_store, starter_schema, fast_executor):
        """Relation in_progress events say what is being linked."""
        _, log = await _provision(fake_store, starter_schema, fast_executor)
        relation_events = [
            e for e in log.events
            if e.phase == "adding_relations" and e.status == "in_progress"
        ]
        assert [e.detail for e in relation_events] == [
            "Linking Accounts to contacts",
            "Linking Contacts to accounts",
        ]

    @pytest.mark.asyncio
    async def test_schema_without_relations(self, fake_store, fast_executor):
        """Phase 3 is empty when there are no relations."""
        schema = CRMSchema.model_validate({"databases": [
            {"key": "notes", "name": "Notes", "properties": [{"name": "Title", "type": "title"}]},
        ]})
        result, log = await _provision(fake_store, schema, fast_executor)
        assert result.success
        assert "adding_relations" not in log.phases()
        assert log.events[-1].detail == "Created 1 databases with 0 relations"


class TestProvisionFailures:
    """Fatal errors stop the run with a single error event."""

    @pytest.mark.asyncio
    async def test_phase_two_failure_skips_relations(self, starter_schema, fast_executor):
        """A failed database creation yields no relation events."""
        store = FakeRecordStore(failures={
            "create_database:Contacts": [RecordStoreError(400, "Invalid property", "validation_error")],
        })
        result, log = await _provision(store, starter_schema, fast_executor)

        assert result.success is False
        assert result.error_code == "E-3002"
        assert result.error_message == "HTTP 400: Invalid property"
        assert result.completed_steps == 2
        assert list(result.databases) == ["accounts"]
        assert "adding_relations" not in log.phases()
        assert "update_database" not in store.methods()

        final = log.events[-1]
        assert final.phase == "error"
        assert final.error == "HTTP 400: Invalid property"
        assert final.message == "Failed to create CRM"
        assert [e.phase for e in log.events].count("error") == 1

    @pytest.mark.asyncio
    async def test_parent_failure(self, starter_schema, fast_executor):
        """Nothing else is attempted when the parent page fails."""
        store = FakeRecordStore(failures={"create_page": [RecordStoreError(401, "API token is invalid.")]})
        result, log = await _provision(store, starter_schema, fast_executor)
        assert result.error_code == "E-5002"
        assert result.parent_page_id is None
        assert store.methods() == ["create_page"]
        assert log.phases() == ["creating_parent", "error"]

    @pytest.mark.asyncio
    async def test_relation_target_missing(self, fake_store, fast_executor):
        """An unvalidated relation to an unknown key fails the run."""
        schema = CRMSchema.model_validate({"databases": [{
            "key": "accounts",
            "name": "Accounts",
            "properties": [
                {"name": "Name", "type": "title"},
                {"name": "Ghosts", "type": "relation", "relation": {
                    "targetDatabaseKey": "ghost", "syncedPropertyName": "Back"}},
            ],
        }]})
        result, log = await _provision(fake_store, schema, fast_executor)
        assert result.success is False
        assert result.error_code == "E-4002"
        assert log.events[-1].error == "Target database ghost not found"
        assert "update_database" not in fake_store.methods()

    @pytest.mark.asyncio
    async def test_throttled_then_recovers(self, starter_schema, fast_executor, fake_sleep):
        """Throttling is absorbed by the executor and the run succeeds."""
        store = FakeRecordStore(failures={
            "create_page": [ThrottledError(429, "Rate limited", retry_after=5.0)] * 2,
        })
        result, _ = await _provision(store, starter_schema, fast_executor)
        assert result.success is True
        assert fast_executor.retry_attempts_total == 2
        assert fake_sleep.delays.count(5.0) == 2

    @pytest.mark.asyncio
    async def test_throttle_exhaustion_is_fatal(self, starter_schema, fast_executor):
        """Six throttles in a row fail the run with the throttle code."""
        store = FakeRecordStore(failures={
            "create_page": [ThrottledError(429, "Rate limited", retry_after=0.0) for _ in range(6)],
        })
        result, log = await _provision(store, starter_schema, fast_executor)
        assert result.success is False
        assert result.error_code == "E-3001"
        assert store.methods() == ["create_page"] * 6
        assert log.events[-1].phase == "error"
