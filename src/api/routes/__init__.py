"""FastAPI route modules.

Exports all route modules for inclusion in the main application.
"""

from src.api.routes import crm, schema

__all__ = [
    "crm",
    "schema",
]
