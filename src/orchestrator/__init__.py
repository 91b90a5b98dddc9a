"""Orchestration layer for CRMForge.

Drives schema provisioning: translating schema definitions into record
store payloads and sequencing parent, database, and relation creation.

Main Entry Points:
    CRMProvisioner: Three-phase provisioning state machine.
    start_provisioning: Run a provisioner on its own task and stream events.
"""

from src.orchestrator.provisioning import (
    CRMProvisioner,
    ProgressEvent,
    ProgressStream,
    ProvisioningResult,
    start_provisioning,
)

__all__ = [
    "CRMProvisioner",
    "ProgressEvent",
    "ProgressStream",
    "ProvisioningResult",
    "start_provisioning",
]
