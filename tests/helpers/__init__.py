"""Test helpers for CRMForge."""

from tests.helpers.fake_record_store import FakeRecordStore, RecordedCall

__all__ = ["FakeRecordStore", "RecordedCall"]
