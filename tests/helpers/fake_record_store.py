"""In-memory RecordStore double that records every call.

Failures are injected per call site: a key of ``"create_page"``,
``"create_database:<title>"``, ``"update_database:<id>"`` or
``"update_data_source:<id>"`` maps to a list
of exceptions raised on successive matching calls before the call
succeeds.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class RecordedCall:
    """One call made against the fake store."""

    method: str
    payload: dict[str, Any]
    target_id: str | None = None


@dataclass
class FakeRecordStore:
    """Fake Notion client issuing predictable ids.

    Attributes:
        with_data_sources: Return a data_sources list from create_database,
            as newer API versions do.
        failures: Call-site key -> exceptions to raise, consumed in order.
    """

    with_data_sources: bool = False
    failures: dict[str, list[Exception]] = field(default_factory=dict)
    calls: list[RecordedCall] = field(default_factory=list)
    closed: bool = False
    _db_count: int = 0

    def _maybe_fail(self, key: str) -> None:
        pending = self.failures.get(key)
        if pending:
            raise pending.pop(0)

    async def create_page(self, payload: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(RecordedCall("create_page", payload))
        self._maybe_fail("create_page")
        return {"id": "page-1", "object": "page"}

    async def create_database(self, payload: dict[str, Any]) -> dict[str, Any]:
        title = payload["title"][0]["text"]["content"]
        self.calls.append(RecordedCall("create_database", payload))
        self._maybe_fail(f"create_database:{title}")
        self._db_count += 1
        response: dict[str, Any] = {"id": f"db-{self._db_count}", "object": "database"}
        if self.with_data_sources:
            response["data_sources"] = [{"id": f"ds-{self._db_count}", "name": title}]
        return response

    async def update_database(
        self, database_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        self.calls.append(RecordedCall("update_database", payload, database_id))
        self._maybe_fail(f"update_database:{database_id}")
        return {"id": database_id, "object": "database"}

    async def update_data_source(
        self, data_source_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        self.calls.append(RecordedCall("update_data_source", payload, data_source_id))
        self._maybe_fail(f"update_data_source:{data_source_id}")
        return {"id": data_source_id, "object": "data_source"}

    async def aclose(self) -> None:
        self.closed = True

    def methods(self) -> list[str]:
        """Names of the methods called, in order."""
        return [c.method for c in self.calls]
