"""Service layer for CRMForge.

Provides the Notion record store client, the rate-limited executor that
paces every outbound call, and persistence of provisioning run records.
Modules are imported directly (``from src.services.rate_limiter import ...``)
so that importing one service does not pull in the database engine.
"""
