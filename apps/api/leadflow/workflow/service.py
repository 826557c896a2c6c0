from __future__ import annotations

import logging
import uuid
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from leadflow import audit, events
from leadflow.core.auth import ActorUser
from leadflow.core.clock import Clock, system_clock
from leadflow.core.config import get_settings
from leadflow.core.database import store_errors
from leadflow.errors import NotFoundError, TransientStoreError, ValidationError
from leadflow.metrics import observe_structural_op
from leadflow.workflow.models import LeadProcess, LeadStage
from leadflow.workflow.schemas import (
    ProcessCreate,
    ProcessRead,
    ProcessUpdate,
    StageCreate,
    StageRead,
    StageUpdate,
)


logger = logging.getLogger("leadflow.workflow")
tracer = trace.get_tracer("leadflow.workflow")

DEFAULT_STAGE_COLOR = "#3b82f6"

_RowT = TypeVar("_RowT", LeadProcess, LeadStage)


def _renumber(session: Session, rows: Sequence[LeadProcess | LeadStage]) -> None:
    """Assign dense orders 1..N following the sequence of ``rows``.

    Rows whose order changes are first parked on distinct negative values and flushed,
    so the unique order constraint never sees two rows on the same value mid-batch.
    """

    changed = [(index + 1, row) for index, row in enumerate(rows) if row.order != index + 1]
    if not changed:
        return
    for position, row in changed:
        row.order = -position
    session.flush()
    for position, row in changed:
        row.order = position
    session.flush()


def _validate_reorder(entity: str, ordered_ids: Sequence[uuid.UUID], current_ids: Sequence[uuid.UUID]) -> None:
    counts = Counter(ordered_ids)
    duplicates = sorted(str(item) for item, count in counts.items() if count > 1)
    current = set(current_ids)
    missing = sorted(str(item) for item in current - counts.keys())
    unknown = sorted(str(item) for item in counts.keys() - current)
    if duplicates or missing or unknown:
        raise ValidationError(
            f"{entity} reorder must list every {entity} exactly once",
            details={"missing": missing, "unknown": unknown, "duplicates": duplicates},
        )


def _insert_position(requested: int | None, count: int) -> int:
    if requested is None:
        return count + 1
    return min(max(requested, 1), count + 1)


@dataclass(slots=True)
class ProcessService:
    clock: Clock = system_clock
    order_assignment_retries: int = field(default_factory=lambda: get_settings().order_assignment_retries)

    entity_type = "workflow.process"

    def create_process(self, session: Session, actor_user: ActorUser, dto: ProcessCreate) -> ProcessRead:
        def insert() -> LeadProcess:
            existing = list(session.scalars(select(LeadProcess).order_by(LeadProcess.order.asc()).with_for_update()).all())
            position = _insert_position(dto.order, len(existing))
            process = LeadProcess(
                name=dto.name.strip(),
                description=dto.description,
                is_active=dto.is_active,
                order=len(existing) + 1,
            )
            session.add(process)
            if position <= len(existing):
                existing.insert(position - 1, process)
                process.order = -(len(existing) + 1)
                _renumber(session, existing)
            else:
                session.flush()
            return process

        process = self._with_order_retry(session, "create_process", insert)
        audit.record(
            actor=actor_user,
            entity_type=self.entity_type,
            entity_id=str(process.id),
            action="create",
            before=None,
            after={"name": process.name, "order": process.order},
        )
        events.publish(
            events.build_envelope(
                "workflow.process.created",
                {"process_id": str(process.id), "name": process.name, "order": process.order},
                actor=actor_user,
            )
        )
        return self._to_process_read(process)

    def create_process_with_stages(
        self,
        session: Session,
        actor_user: ActorUser,
        dto: ProcessCreate,
        stages: Sequence[StageCreate],
    ) -> ProcessRead:
        """Append a process and its stages in one transaction; stages take orders 1..N in sequence."""

        def insert() -> LeadProcess:
            count = len(session.scalars(select(LeadProcess.id).with_for_update()).all())
            process = LeadProcess(
                name=dto.name.strip(),
                description=dto.description,
                is_active=dto.is_active,
                order=count + 1,
            )
            session.add(process)
            session.flush()
            for position, stage in enumerate(stages, start=1):
                session.add(
                    LeadStage(
                        process_id=process.id,
                        name=stage.name.strip(),
                        description=stage.description,
                        color=stage.color or DEFAULT_STAGE_COLOR,
                        is_active=stage.is_active,
                        order=position,
                    )
                )
                session.flush()
            return process

        process = self._with_order_retry(session, "create_process_with_stages", insert)
        audit.record(
            actor=actor_user,
            entity_type=self.entity_type,
            entity_id=str(process.id),
            action="create",
            before=None,
            after={"name": process.name, "order": process.order, "stage_count": len(stages)},
        )
        events.publish(
            events.build_envelope(
                "workflow.process.created",
                {"process_id": str(process.id), "name": process.name, "order": process.order},
                actor=actor_user,
            )
        )
        return self.get_process(session, process.id)

    def get_process(self, session: Session, process_id: uuid.UUID) -> ProcessRead:
        with store_errors(session, "get_process"):
            process = session.scalar(
                select(LeadProcess).where(LeadProcess.id == process_id).options(selectinload(LeadProcess.stages))
            )
            if process is None:
                raise NotFoundError("process", process_id)
            return self._to_process_read(process)

    def list_processes(self, session: Session) -> list[ProcessRead]:
        with store_errors(session, "list_processes"):
            rows = session.scalars(
                select(LeadProcess).options(selectinload(LeadProcess.stages)).order_by(LeadProcess.order.asc())
            ).all()
            return [self._to_process_read(row) for row in rows]

    def update_process(
        self,
        session: Session,
        actor_user: ActorUser,
        process_id: uuid.UUID,
        dto: ProcessUpdate,
    ) -> ProcessRead:
        with store_errors(session, "update_process"):
            process = self._load_process(session, process_id)
            before = {"name": process.name, "description": process.description, "is_active": process.is_active}
            changes = dto.model_dump(exclude_unset=True)
            if changes.get("name") is not None:
                process.name = changes["name"].strip()
            if "description" in changes:
                process.description = changes["description"]
            if changes.get("is_active") is not None:
                process.is_active = changes["is_active"]
            process.updated_at = self.clock.now()
            session.flush()
            audit.record(
                actor=actor_user,
                entity_type=self.entity_type,
                entity_id=str(process.id),
                action="update",
                before=before,
                after={"name": process.name, "description": process.description, "is_active": process.is_active},
            )
            session.commit()
        return self._to_process_read(process)

    def delete_process(self, session: Session, actor_user: ActorUser, process_id: uuid.UUID) -> None:
        with tracer.start_as_current_span("workflow.delete_process") as span:
            span.set_attribute("process_id", str(process_id))
            try:
                with store_errors(session, "delete_process"):
                    process = self._load_process(session, process_id)
                    stages = session.scalars(select(LeadStage).where(LeadStage.process_id == process_id)).all()
                    for stage in stages:
                        session.delete(stage)
                    session.delete(process)
                    session.flush()

                    remaining = session.scalars(
                        select(LeadProcess).order_by(LeadProcess.order.asc()).with_for_update()
                    ).all()
                    _renumber(session, remaining)
                    session.commit()
            except Exception:
                observe_structural_op("delete_process", "failed")
                raise
            span.set_attribute("deleted_stage_count", len(stages))

        observe_structural_op("delete_process", "success")
        logger.info(
            "workflow.process_deleted",
            extra={"process_id": str(process_id), "user_id": actor_user.user_id},
        )
        audit.record(
            actor=actor_user,
            entity_type=self.entity_type,
            entity_id=str(process_id),
            action="delete",
            before={"stage_count": len(stages)},
            after=None,
        )
        events.publish(
            events.build_envelope(
                "workflow.process.deleted",
                {"process_id": str(process_id), "deleted_stage_count": len(stages)},
                actor=actor_user,
            )
        )

    def reorder_processes(
        self,
        session: Session,
        actor_user: ActorUser,
        ordered_ids: Sequence[uuid.UUID],
    ) -> list[ProcessRead]:
        with store_errors(session, "reorder_processes"):
            rows = session.scalars(select(LeadProcess).order_by(LeadProcess.order.asc()).with_for_update()).all()
            _validate_reorder("process", ordered_ids, [row.id for row in rows])
            by_id = {row.id: row for row in rows}
            before = [str(row.id) for row in rows]
            _renumber(session, [by_id[process_id] for process_id in ordered_ids])
            session.commit()

        observe_structural_op("reorder_processes", "success")
        audit.record(
            actor=actor_user,
            entity_type=self.entity_type,
            entity_id="*",
            action="reorder",
            before={"ordered_ids": before},
            after={"ordered_ids": [str(process_id) for process_id in ordered_ids]},
        )
        return self.list_processes(session)

    def create_stage(
        self,
        session: Session,
        actor_user: ActorUser,
        process_id: uuid.UUID,
        dto: StageCreate,
    ) -> StageRead:
        def insert() -> LeadStage:
            self._load_process(session, process_id, lock=True)
            existing = list(
                session.scalars(
                    select(LeadStage)
                    .where(LeadStage.process_id == process_id)
                    .order_by(LeadStage.order.asc())
                    .with_for_update()
                ).all()
            )
            position = _insert_position(dto.order, len(existing))
            stage = LeadStage(
                process_id=process_id,
                name=dto.name.strip(),
                description=dto.description,
                color=dto.color or DEFAULT_STAGE_COLOR,
                is_active=dto.is_active,
                order=len(existing) + 1,
            )
            session.add(stage)
            if position <= len(existing):
                existing.insert(position - 1, stage)
                stage.order = -(len(existing) + 1)
                _renumber(session, existing)
            else:
                session.flush()
            return stage

        stage = self._with_order_retry(session, "create_stage", insert)
        audit.record(
            actor=actor_user,
            entity_type=f"{self.entity_type}.stage",
            entity_id=str(stage.id),
            action="create",
            before=None,
            after={"process_id": str(process_id), "name": stage.name, "order": stage.order},
        )
        return self._to_stage_read(stage)

    def get_stage(self, session: Session, process_id: uuid.UUID, stage_id: uuid.UUID) -> StageRead:
        with store_errors(session, "get_stage"):
            return self._to_stage_read(self._load_stage(session, process_id, stage_id))

    def list_stages(self, session: Session, process_id: uuid.UUID) -> list[StageRead]:
        with store_errors(session, "list_stages"):
            self._load_process(session, process_id)
            rows = session.scalars(
                select(LeadStage).where(LeadStage.process_id == process_id).order_by(LeadStage.order.asc())
            ).all()
            return [self._to_stage_read(row) for row in rows]

    def update_stage(
        self,
        session: Session,
        actor_user: ActorUser,
        process_id: uuid.UUID,
        stage_id: uuid.UUID,
        dto: StageUpdate,
    ) -> StageRead:
        with store_errors(session, "update_stage"):
            stage = self._load_stage(session, process_id, stage_id)
            before = {"name": stage.name, "color": stage.color, "is_active": stage.is_active}
            changes = dto.model_dump(exclude_unset=True)
            if changes.get("name") is not None:
                stage.name = changes["name"].strip()
            if "description" in changes:
                stage.description = changes["description"]
            if changes.get("color") is not None:
                stage.color = changes["color"]
            if changes.get("is_active") is not None:
                stage.is_active = changes["is_active"]
            stage.updated_at = self.clock.now()
            session.flush()
            audit.record(
                actor=actor_user,
                entity_type=f"{self.entity_type}.stage",
                entity_id=str(stage.id),
                action="update",
                before=before,
                after={"name": stage.name, "color": stage.color, "is_active": stage.is_active},
            )
            session.commit()
        return self._to_stage_read(stage)

    def delete_stage(
        self,
        session: Session,
        actor_user: ActorUser,
        process_id: uuid.UUID,
        stage_id: uuid.UUID,
    ) -> None:
        with store_errors(session, "delete_stage"):
            stage = self._load_stage(session, process_id, stage_id)
            session.delete(stage)
            session.flush()
            remaining = session.scalars(
                select(LeadStage)
                .where(LeadStage.process_id == process_id)
                .order_by(LeadStage.order.asc())
                .with_for_update()
            ).all()
            _renumber(session, remaining)
            session.commit()

        observe_structural_op("delete_stage", "success")
        audit.record(
            actor=actor_user,
            entity_type=f"{self.entity_type}.stage",
            entity_id=str(stage_id),
            action="delete",
            before={"process_id": str(process_id)},
            after=None,
        )

    def reorder_stages(
        self,
        session: Session,
        actor_user: ActorUser,
        process_id: uuid.UUID,
        ordered_ids: Sequence[uuid.UUID],
    ) -> list[StageRead]:
        with store_errors(session, "reorder_stages"):
            self._load_process(session, process_id, lock=True)
            rows = session.scalars(
                select(LeadStage)
                .where(LeadStage.process_id == process_id)
                .order_by(LeadStage.order.asc())
                .with_for_update()
            ).all()
            _validate_reorder("stage", ordered_ids, [row.id for row in rows])
            by_id = {row.id: row for row in rows}
            _renumber(session, [by_id[stage_id] for stage_id in ordered_ids])
            session.commit()

        observe_structural_op("reorder_stages", "success")
        audit.record(
            actor=actor_user,
            entity_type=f"{self.entity_type}.stage",
            entity_id=str(process_id),
            action="reorder",
            before=None,
            after={"ordered_ids": [str(stage_id) for stage_id in ordered_ids]},
        )
        return self.list_stages(session, process_id)

    def _with_order_retry(self, session: Session, operation: str, insert: Callable[[], _RowT]) -> _RowT:
        attempts = max(1, self.order_assignment_retries)
        for attempt in range(1, attempts + 1):
            try:
                with store_errors(session, operation):
                    row = insert()
                    session.commit()
            except IntegrityError as exc:
                logger.warning(
                    "workflow.order_conflict",
                    extra={"task_name": operation, "error": f"attempt {attempt}: {exc}"},
                )
                continue
            observe_structural_op(operation, "success")
            return row

        observe_structural_op(operation, "conflict")
        raise TransientStoreError(f"{operation} could not assign an order", details={"attempts": attempts})

    def _load_process(self, session: Session, process_id: uuid.UUID, *, lock: bool = False) -> LeadProcess:
        stmt = select(LeadProcess).where(LeadProcess.id == process_id)
        if lock:
            stmt = stmt.with_for_update()
        process = session.scalar(stmt)
        if process is None:
            raise NotFoundError("process", process_id)
        return process

    def _load_stage(self, session: Session, process_id: uuid.UUID, stage_id: uuid.UUID) -> LeadStage:
        self._load_process(session, process_id)
        stage = session.scalar(
            select(LeadStage).where(LeadStage.id == stage_id, LeadStage.process_id == process_id)
        )
        if stage is None:
            raise NotFoundError("stage", stage_id)
        return stage

    def _to_process_read(self, process: LeadProcess) -> ProcessRead:
        return ProcessRead(
            id=process.id,
            name=process.name,
            description=process.description,
            is_active=process.is_active,
            order=process.order,
            created_at=process.created_at,
            updated_at=process.updated_at,
            stages=[self._to_stage_read(stage) for stage in sorted(process.stages, key=lambda item: item.order)],
        )

    def _to_stage_read(self, stage: LeadStage) -> StageRead:
        return StageRead.model_validate(stage)


process_service = ProcessService()
