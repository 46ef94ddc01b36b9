"""
Consent API Routes
Give, list and check processing consents
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..auth import Actor, get_current_actor
from ..database import Consent, get_db
from ..middleware.audit_middleware import get_client_ip
from ..rbac import UserRole
from ..schemas.audit_schemas import PaginationInfo
from ..schemas.consent_schemas import (
    ConsentCheckResponse,
    ConsentListResponse,
    ConsentResponse,
    ConsentTypeCount,
    GiveConsentRequest,
)
from ..services.authorization import OperationMetadata
from ..services.consent import ConsentService, ConsentType, consent_given_record

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/consent", tags=["Consent"])

EVERYONE = (UserRole.ADMIN, UserRole.MANAGER, UserRole.CLIENT, UserRole.CANDIDATE)
STAFF = (UserRole.ADMIN, UserRole.MANAGER)

GUARDED_OPERATIONS = {
    "POST /api/consent/give": OperationMetadata(EVERYONE, "consent", "create"),
    "GET /api/consent/my": OperationMetadata(EVERYONE, "consent", "read"),
    "GET /api/consent/user/{user_id}": OperationMetadata(STAFF, "consent", "read", id_param="user_id"),
    "GET /api/consent/all": OperationMetadata(STAFF, "consent", "read"),
    "GET /api/consent/stats": OperationMetadata(STAFF, "consent", "read"),
    "GET /api/consent/check/{consent_type}": OperationMetadata(EVERYONE, "consent", "read"),
}


def get_consent_service(db: Session = Depends(get_db)) -> ConsentService:
    return ConsentService(db)


@router.post("/give", response_model=ConsentResponse, status_code=status.HTTP_201_CREATED)
async def give_consent(
    payload: GiveConsentRequest,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    service: ConsentService = Depends(get_consent_service),
) -> Consent:
    """
    Give a consent for the calling user.

    Repeating a consent returns the existing record and writes no new audit entry.
    """
    ip_address = get_client_ip(request)
    user_agent = request.headers.get("user-agent")

    consent, created = await run_in_threadpool(
        service.give_consent, actor.actor_id, payload.consent_type, ip_address, user_agent
    )
    if created:
        request.app.state.audit_dispatcher.submit(consent_given_record(consent, ip_address, user_agent))
    return consent


@router.get("/my", response_model=List[ConsentResponse])
def get_my_consents(
    actor: Actor = Depends(get_current_actor),
    service: ConsentService = Depends(get_consent_service),
) -> List[Consent]:
    return service.user_consents(actor.actor_id, actor.actor_id, actor.role)


@router.get("/user/{user_id}", response_model=List[ConsentResponse])
def get_user_consents(
    user_id: str,
    actor: Actor = Depends(get_current_actor),
    service: ConsentService = Depends(get_consent_service),
) -> List[Consent]:
    return service.user_consents(user_id, actor.actor_id, actor.role)


@router.get("/all", response_model=ConsentListResponse)
def get_all_consents(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    consent_type: Optional[ConsentType] = Query(None),
    actor: Actor = Depends(get_current_actor),
    service: ConsentService = Depends(get_consent_service),
) -> ConsentListResponse:
    result = service.all_consents(actor.actor_id, actor.role, page=page, limit=limit, consent_type=consent_type)
    return ConsentListResponse(
        data=[ConsentResponse.model_validate(consent) for consent in result["data"]],
        pagination=PaginationInfo(**result["pagination"]),
    )


@router.get("/stats", response_model=List[ConsentTypeCount])
def get_consent_stats(
    actor: Actor = Depends(get_current_actor),
    service: ConsentService = Depends(get_consent_service),
) -> List[dict]:
    return service.consent_stats(actor.actor_id, actor.role)


@router.get("/check/{consent_type}", response_model=ConsentCheckResponse)
def check_consent(
    consent_type: ConsentType,
    actor: Actor = Depends(get_current_actor),
    service: ConsentService = Depends(get_consent_service),
) -> ConsentCheckResponse:
    return ConsentCheckResponse(
        consent_type=consent_type,
        granted=service.has_consent(actor.actor_id, consent_type),
    )
