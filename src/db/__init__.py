"""Database module for provisioning run history."""

from src.db.connection import (
    SessionLocal,
    close_db,
    engine,
    get_db,
    get_db_context,
    get_session_factory,
    init_db,
)
from src.db.models import Base, ProvisioningRun, RunStatus

__all__ = [
    # Models
    "Base",
    "ProvisioningRun",
    # Enums
    "RunStatus",
    # Connection
    "engine",
    "SessionLocal",
    "get_db",
    "get_db_context",
    "get_session_factory",
    "init_db",
    "close_db",
]
