"""Three-phase CRM provisioning state machine.

Phase 1 creates the parent page, phase 2 creates every database without
its relation properties, and phase 3 patches each relation onto its owning
database. Relations are deferred because both endpoints must exist; once
phase 2 is done every relation target resolves through the runtime
registry by key, so no dependency ordering is needed even when the
relation graph has cycles.

All record store calls go through one RateLimitedExecutor and are issued
strictly one at a time. A progress event is emitted before and after each
unit of work. Any fatal error emits a single terminal error event and
stops the run; what was already created stays in place.
"""

import logging
from functools import partial
from typing import Any, Awaitable, Callable

from src.errors.domain import InvalidRelationError, RelationTargetMissingError
from src.errors.registry import error_code_for
from src.orchestrator.provisioning.events import (
    ProgressEvent,
    ProvisionPhase,
    StepStatus,
)
from src.orchestrator.provisioning.models import ProvisioningResult, RuntimeHandle
from src.orchestrator.provisioning.translator import (
    database_properties_payload,
    to_relation_patch,
)
from src.schema.models import CRMSchema, DatabaseDefinition, PropertyDefinition
from src.services.notion_client import RecordStore
from src.services.rate_limiter import RateLimitedExecutor

logger = logging.getLogger(__name__)

EmitFn = Callable[[ProgressEvent], Awaitable[None]]


def _rich_text(content: str) -> list[dict[str, Any]]:
    """Wrap plain text in a Notion rich text array."""
    return [{"type": "text", "text": {"content": content}}]


def parent_page_payload(page_title: str, parent_page_id: str | None) -> dict[str, Any]:
    """Build the create-page payload for the container page.

    Args:
        page_title: Title of the new page.
        parent_page_id: Page to nest under, or None for the workspace root.
    """
    if parent_page_id:
        parent: dict[str, Any] = {"type": "page_id", "page_id": parent_page_id}
    else:
        parent = {"type": "workspace", "workspace": True}
    return {
        "parent": parent,
        "properties": {"title": {"title": _rich_text(page_title)}},
    }


def database_payload(database: DatabaseDefinition, parent_page_id: str) -> dict[str, Any]:
    """Build the create-database payload, relations excluded."""
    payload: dict[str, Any] = {
        "parent": {"type": "page_id", "page_id": parent_page_id},
        "title": _rich_text(database.name),
        "properties": database_properties_payload(database),
    }
    if database.icon:
        payload["icon"] = {"type": "emoji", "emoji": database.icon}
    if database.description:
        payload["description"] = _rich_text(database.description)
    return payload


def relation_patch(prop: PropertyDefinition, target: RuntimeHandle) -> dict[str, Any]:
    """Relation patch addressing the target the way its API version expects."""
    if target.has_data_source:
        return to_relation_patch(prop, target.data_source_id, "data_source_id")
    return to_relation_patch(prop, target.database_id)


def runtime_handle(response: dict[str, Any]) -> RuntimeHandle:
    """Extract runtime ids from a create-database response.

    Newer API versions list data sources separately; older ones use the
    database id for everything.
    """
    database_id = response["id"]
    data_sources = response.get("data_sources") or []
    data_source_id = data_sources[0]["id"] if data_sources else database_id
    return RuntimeHandle(database_id=database_id, data_source_id=data_source_id)


class CRMProvisioner:
    """Materializes a CRMSchema in the record store.

    One instance may run several provisioning runs; each run owns its own
    runtime registry, discarded when the run ends.
    """

    def __init__(
        self,
        client: RecordStore,
        executor: RateLimitedExecutor | None = None,
    ) -> None:
        """Initialize the provisioner.

        Args:
            client: Record store client.
            executor: Shared executor pacing every call. A private one with
                default limits is created when omitted.
        """
        self._client = client
        self._executor = executor or RateLimitedExecutor()

    async def _patch_schema(
        self, owner: RuntimeHandle, patch: dict[str, Any]
    ) -> dict[str, Any]:
        """Add properties to a created database or its data source."""
        payload = {"properties": patch}
        if owner.has_data_source:
            return await self._client.update_data_source(owner.data_source_id, payload)
        return await self._client.update_database(owner.database_id, payload)

    async def provision(
        self,
        schema: CRMSchema,
        page_title: str,
        emit: EmitFn,
        parent_page_id: str | None = None,
    ) -> ProvisioningResult:
        """Run all three phases, emitting progress along the way.

        The schema is trusted; validate it beforehand.

        Args:
            schema: Databases to create.
            page_title: Title of the parent page holding every database.
            emit: Coroutine called with each event, in order.
            parent_page_id: Page to create the parent under; workspace root
                when None.

        Returns:
            ProvisioningResult describing what was created. Fatal errors are
            reported through the result and a terminal error event, not raised.
        """
        total = schema.total_steps
        registry: dict[str, RuntimeHandle] = {}
        result = ProvisioningResult(
            success=False,
            total_steps=total,
            completed_steps=0,
            databases=registry,
        )
        step = 0

        def event(phase: ProvisionPhase, status: StepStatus, message: str, **kwargs: Any) -> ProgressEvent:
            return ProgressEvent(
                step=step,
                total_steps=total,
                phase=phase,
                status=status,
                message=message,
                **kwargs,
            )

        try:
            # Phase 1: parent page
            step += 1
            logger.info("Provisioning '%s': %d steps", page_title, total)
            await emit(event(
                ProvisionPhase.creating_parent,
                StepStatus.in_progress,
                f"Creating parent page: {page_title}",
            ))
            page = await self._executor.execute(
                partial(self._client.create_page, parent_page_payload(page_title, parent_page_id))
            )
            parent_id = page["id"]
            result.parent_page_id = parent_id
            result.completed_steps = step
            await emit(event(
                ProvisionPhase.creating_parent,
                StepStatus.success,
                f"Created parent page: {page_title}",
            ))

            # Phase 2: databases without relations
            for database in schema.databases:
                step += 1
                await emit(event(
                    ProvisionPhase.creating_databases,
                    StepStatus.in_progress,
                    f"Creating {database.name} database",
                    database_name=database.name,
                ))
                response = await self._executor.execute(
                    partial(self._client.create_database, database_payload(database, parent_id))
                )
                registry[database.key] = runtime_handle(response)
                result.completed_steps = step
                logger.info("Created database '%s' (%s)", database.name, database.key)
                await emit(event(
                    ProvisionPhase.creating_databases,
                    StepStatus.success,
                    f"Created {database.name} database",
                    database_name=database.name,
                ))

            # Phase 3: relations, now that every target exists
            for database in schema.databases:
                owner = registry[database.key]
                for prop in database.relation_properties:
                    step += 1
                    relation = prop.relation
                    if relation is None:
                        raise InvalidRelationError(prop.name, "relation config is missing")
                    await emit(event(
                        ProvisionPhase.adding_relations,
                        StepStatus.in_progress,
                        f"Adding relation: {prop.name}",
                        detail=f"Linking {database.name} to {relation.target_database_key}",
                        database_name=database.name,
                    ))
                    target = registry.get(relation.target_database_key)
                    if target is None:
                        raise RelationTargetMissingError(relation.target_database_key)
                    await self._executor.execute(
                        partial(self._patch_schema, owner, relation_patch(prop, target))
                    )
                    result.relations_created += 1
                    result.completed_steps = step
                    await emit(event(
                        ProvisionPhase.adding_relations,
                        StepStatus.success,
                        f"Added relation: {prop.name}",
                        database_name=database.name,
                    ))

            step = total
            await emit(event(
                ProvisionPhase.complete,
                StepStatus.success,
                "CRM created successfully!",
                detail=(
                    f"Created {len(registry)} databases with "
                    f"{result.relations_created} relations"
                ),
            ))
            result.success = True
            logger.info(
                "Provisioned '%s': %d databases, %d relations",
                page_title,
                len(registry),
                result.relations_created,
            )
        except Exception as e:
            message = str(e) or type(e).__name__
            result.error_message = message
            result.error_code = error_code_for(e)
            logger.error(
                "Provisioning '%s' failed at step %d/%d [%s]: %s",
                page_title,
                step,
                total,
                result.error_code,
                message,
            )
            await emit(event(
                ProvisionPhase.error,
                StepStatus.error,
                "Failed to create CRM",
                error=message,
            ))

        return result
