from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from leadflow.api.deps import get_current_user
from leadflow.api.errors import domain_error_response
from leadflow.core.auth import ActorUser
from leadflow.core.database import get_db
from leadflow.errors import LeadflowError
from leadflow.workflow.schemas import (
    ProcessCreate,
    ProcessRead,
    ProcessUpdate,
    ReorderRequest,
    StageCreate,
    StageRead,
    StageUpdate,
)
from leadflow.workflow.seed import ProcessSeedHelper
from leadflow.workflow.service import ProcessService

router = APIRouter(prefix="/api/workflow", tags=["workflow"])
service = ProcessService()
seed_helper = ProcessSeedHelper(service)


@router.get("/processes", response_model=list[ProcessRead])
def list_processes(request: Request, db: Session = Depends(get_db)) -> list[ProcessRead] | JSONResponse:
    try:
        return service.list_processes(db)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.post("/processes", response_model=ProcessRead, status_code=status.HTTP_201_CREATED)
def create_process(
    request: Request,
    dto: ProcessCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProcessRead | JSONResponse:
    try:
        return service.create_process(db, user, dto)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.post("/processes/bootstrap", response_model=ProcessRead)
def bootstrap_default_process(
    request: Request,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProcessRead | JSONResponse:
    try:
        return seed_helper.ensure_default_process_exists(db, user).process
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.put("/processes/order", response_model=list[ProcessRead])
def reorder_processes(
    request: Request,
    dto: ReorderRequest,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[ProcessRead] | JSONResponse:
    try:
        return service.reorder_processes(db, user, dto.ordered_ids)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.get("/processes/{process_id}", response_model=ProcessRead)
def get_process(request: Request, process_id: uuid.UUID, db: Session = Depends(get_db)) -> ProcessRead | JSONResponse:
    try:
        return service.get_process(db, process_id)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.patch("/processes/{process_id}", response_model=ProcessRead)
def update_process(
    request: Request,
    process_id: uuid.UUID,
    dto: ProcessUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProcessRead | JSONResponse:
    try:
        return service.update_process(db, user, process_id, dto)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.delete("/processes/{process_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_process(
    request: Request,
    process_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Response:
    try:
        service.delete_process(db, user, process_id)
    except LeadflowError as exc:
        return domain_error_response(request, exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/processes/{process_id}/stages", response_model=list[StageRead])
def list_stages(request: Request, process_id: uuid.UUID, db: Session = Depends(get_db)) -> list[StageRead] | JSONResponse:
    try:
        return service.list_stages(db, process_id)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.post("/processes/{process_id}/stages", response_model=StageRead, status_code=status.HTTP_201_CREATED)
def create_stage(
    request: Request,
    process_id: uuid.UUID,
    dto: StageCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> StageRead | JSONResponse:
    try:
        return service.create_stage(db, user, process_id, dto)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.put("/processes/{process_id}/stages/order", response_model=list[StageRead])
def reorder_stages(
    request: Request,
    process_id: uuid.UUID,
    dto: ReorderRequest,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[StageRead] | JSONResponse:
    try:
        return service.reorder_stages(db, user, process_id, dto.ordered_ids)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.get("/processes/{process_id}/stages/{stage_id}", response_model=StageRead)
def get_stage(
    request: Request,
    process_id: uuid.UUID,
    stage_id: uuid.UUID,
    db: Session = Depends(get_db),
) -> StageRead | JSONResponse:
    try:
        return service.get_stage(db, process_id, stage_id)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.patch("/processes/{process_id}/stages/{stage_id}", response_model=StageRead)
def update_stage(
    request: Request,
    process_id: uuid.UUID,
    stage_id: uuid.UUID,
    dto: StageUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> StageRead | JSONResponse:
    try:
        return service.update_stage(db, user, process_id, stage_id, dto)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.delete("/processes/{process_id}/stages/{stage_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_stage(
    request: Request,
    process_id: uuid.UUID,
    stage_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Response:
    try:
        service.delete_stage(db, user, process_id, stage_id)
    except LeadflowError as exc:
        return domain_error_response(request, exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
