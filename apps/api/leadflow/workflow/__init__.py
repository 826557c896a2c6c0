from leadflow.workflow.models import LeadProcess, LeadStage
from leadflow.workflow.schemas import (
    ProcessCreate,
    ProcessRead,
    ProcessUpdate,
    ReorderRequest,
    StageCreate,
    StageRead,
    StageUpdate,
)
from leadflow.workflow.seed import BootstrapResult, ProcessSeedHelper, ensure_default_process_exists
from leadflow.workflow.service import ProcessService, process_service

__all__ = [
    "LeadProcess",
    "LeadStage",
    "ProcessCreate",
    "ProcessRead",
    "ProcessUpdate",
    "ReorderRequest",
    "StageCreate",
    "StageRead",
    "StageUpdate",
    "BootstrapResult",
    "ProcessSeedHelper",
    "ensure_default_process_exists",
    "ProcessService",
    "process_service",
]
