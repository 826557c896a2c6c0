from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from leadflow.api.deps import get_current_user
from leadflow.api.errors import domain_error_response
from leadflow.core.auth import ActorUser
from leadflow.core.database import get_db
from leadflow.documents.schemas import (
    DocumentReview,
    DocumentSubmit,
    LeadDocumentRead,
    RequirementCreate,
    RequirementRead,
    RequirementSummary,
    RequirementUpdate,
    ResolvedDocument,
)
from leadflow.documents.service import DEFAULT_PROCESS_KEY, DocumentService
from leadflow.errors import LeadflowError

router = APIRouter(prefix="/api/documents", tags=["documents"])
service = DocumentService()


@router.get("/requirements", response_model=list[RequirementRead])
def list_requirements(
    request: Request,
    process_id: str = Query(default=DEFAULT_PROCESS_KEY),
    stage_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[RequirementRead] | JSONResponse:
    try:
        return service.list_requirements(db, process_id, stage_id)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.post("/requirements", response_model=RequirementRead, status_code=status.HTTP_201_CREATED)
def create_requirement(
    request: Request,
    dto: RequirementCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> RequirementRead | JSONResponse:
    try:
        return service.create_requirement(db, user, dto)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.get("/requirements/{requirement_id}", response_model=RequirementRead)
def get_requirement(
    request: Request,
    requirement_id: uuid.UUID,
    db: Session = Depends(get_db),
) -> RequirementRead | JSONResponse:
    try:
        return service.get_requirement(db, requirement_id)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.patch("/requirements/{requirement_id}", response_model=RequirementRead)
def update_requirement(
    request: Request,
    requirement_id: uuid.UUID,
    dto: RequirementUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> RequirementRead | JSONResponse:
    try:
        return service.update_requirement(db, user, requirement_id, dto)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.delete("/requirements/{requirement_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_requirement(
    request: Request,
    requirement_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Response:
    try:
        service.delete_requirement(db, user, requirement_id)
    except LeadflowError as exc:
        return domain_error_response(request, exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/leads/{lead_id}", response_model=list[LeadDocumentRead])
def list_lead_documents(
    request: Request,
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
) -> list[LeadDocumentRead] | JSONResponse:
    try:
        return service.list_documents(db, lead_id)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.post("/leads/{lead_id}", response_model=LeadDocumentRead, status_code=status.HTTP_201_CREATED)
def submit_lead_document(
    request: Request,
    lead_id: uuid.UUID,
    dto: DocumentSubmit,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadDocumentRead | JSONResponse:
    try:
        return service.submit_document(db, user, lead_id, dto)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.get("/leads/{lead_id}/resolved", response_model=list[ResolvedDocument])
def resolve_lead_documents(
    request: Request,
    lead_id: uuid.UUID,
    process_id: str = Query(default=DEFAULT_PROCESS_KEY),
    stage_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[ResolvedDocument] | JSONResponse:
    try:
        return service.resolve_documents(db, lead_id, process_id, stage_id)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.get("/leads/{lead_id}/summary", response_model=RequirementSummary)
def summarize_lead_requirements(
    request: Request,
    lead_id: uuid.UUID,
    process_id: str = Query(default=DEFAULT_PROCESS_KEY),
    stage_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
) -> RequirementSummary | JSONResponse:
    try:
        return service.summarize_requirements(db, lead_id, process_id, stage_id)
    except LeadflowError as exc:
        return domain_error_response(request, exc)


@router.post("/{document_id}/review", response_model=LeadDocumentRead)
def review_document(
    request: Request,
    document_id: uuid.UUID,
    dto: DocumentReview,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadDocumentRead | JSONResponse:
    try:
        return service.review_document(db, user, document_id, dto)
    except LeadflowError as exc:
        return domain_error_response(request, exc)
