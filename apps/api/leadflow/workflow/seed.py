from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from leadflow.core.auth import SYSTEM_ACTOR, ActorUser
from leadflow.core.config import get_settings
from leadflow.core.database import store_errors
from leadflow.errors import InconsistentStateError
from leadflow.workflow.models import LeadProcess, LeadStage
from leadflow.workflow.schemas import ProcessCreate, ProcessRead, StageCreate
from leadflow.workflow.service import ProcessService


logger = logging.getLogger("leadflow.workflow")

DEFAULT_STAGES: tuple[tuple[str, str], ...] = (
    ("Lead Received", "#3b82f6"),
    ("Lead Follow Up", "#f59e0b"),
    ("Lead Converted", "#10b981"),
    ("Lead Dropped", "#ef4444"),
)


@dataclass(slots=True)
class BootstrapResult:
    process: ProcessRead
    created: bool


class ProcessSeedHelper:
    def __init__(self, service: ProcessService, process_name: str | None = None) -> None:
        self._service = service
        self._process_name = process_name or get_settings().default_process_name

    def ensure_default_process_exists(
        self,
        session: Session,
        actor_user: ActorUser = SYSTEM_ACTOR,
    ) -> BootstrapResult:
        with store_errors(session, "ensure_default_process_exists"):
            existing = session.scalar(
                select(LeadProcess).where(LeadProcess.name == self._process_name).order_by(LeadProcess.order.asc())
            )
            stage_count = 0
            if existing is not None:
                stage_count = session.scalar(
                    select(func.count()).select_from(LeadStage).where(LeadStage.process_id == existing.id)
                ) or 0

        if existing is not None:
            if stage_count == 0:
                raise InconsistentStateError(
                    f"process {self._process_name!r} exists without stages",
                    details={"process_id": str(existing.id)},
                )
            return BootstrapResult(process=self._service.get_process(session, existing.id), created=False)

        process = self._service.create_process_with_stages(
            session,
            actor_user,
            ProcessCreate(name=self._process_name, description="Default pipeline for incoming leads"),
            [StageCreate(name=name, color=color) for name, color in DEFAULT_STAGES],
        )
        logger.info("workflow.default_process_created", extra={"process_id": str(process.id)})
        return BootstrapResult(process=process, created=True)


def ensure_default_process_exists(session: Session, service: ProcessService | None = None) -> BootstrapResult:
    return ProcessSeedHelper(service or ProcessService()).ensure_default_process_exists(session)
