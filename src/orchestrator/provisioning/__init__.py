"""Schema provisioning pipeline for CRMForge.

Turns a CRMSchema into pages and databases in the record store, with
paced calls, throttle retries, and an ordered stream of progress events.
"""

from src.orchestrator.provisioning.events import (
    ProgressEvent,
    ProvisionPhase,
    StepStatus,
)
from src.orchestrator.provisioning.models import ProvisioningResult, RuntimeHandle
from src.orchestrator.provisioning.provisioner import CRMProvisioner
from src.orchestrator.provisioning.stream import ProgressStream, start_provisioning
from src.orchestrator.provisioning.translator import (
    database_properties_payload,
    to_creation_payload,
    to_relation_patch,
)

__all__ = [
    "ProgressEvent",
    "ProvisionPhase",
    "StepStatus",
    "ProvisioningResult",
    "RuntimeHandle",
    "CRMProvisioner",
    "ProgressStream",
    "start_provisioning",
    "to_creation_payload",
    "database_properties_payload",
    "to_relation_patch",
]
