from leadflow.documents.models import DocumentRequirement, LeadDocument
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
from leadflow.documents.service import (
    DEFAULT_PROCESS_KEY,
    DocumentService,
    RequirementSource,
    SqlRequirementSource,
    document_service,
    merge_documents,
)

__all__ = [
    "DEFAULT_PROCESS_KEY",
    "DocumentRequirement",
    "DocumentReview",
    "DocumentService",
    "DocumentSubmit",
    "LeadDocument",
    "LeadDocumentRead",
    "RequirementCreate",
    "RequirementRead",
    "RequirementSource",
    "RequirementSummary",
    "RequirementUpdate",
    "ResolvedDocument",
    "SqlRequirementSource",
    "document_service",
    "merge_documents",
]
