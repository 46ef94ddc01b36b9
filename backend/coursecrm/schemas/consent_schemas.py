"""
Consent Schemas

Pydantic models for giving and listing processing consents.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..services.consent import ConsentType
from .audit_schemas import PaginationInfo


class GiveConsentRequest(BaseModel):
    consent_type: ConsentType = Field(..., description="Kind of processing the user agrees to")


class ConsentResponse(BaseModel):
    """A single consent record."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    type: ConsentType
    basis: str
    details: Optional[str] = None
    granted_at: datetime


class ConsentListResponse(BaseModel):
    """Every user's consents, newest first."""

    data: List[ConsentResponse]
    pagination: PaginationInfo


class ConsentTypeCount(BaseModel):
    consent_type: ConsentType
    count: int


class ConsentCheckResponse(BaseModel):
    consent_type: ConsentType
    granted: bool
