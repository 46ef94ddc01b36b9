"""
Organization API Routes
CRUD over CRM organizations; CLIENT users work with the organizations they own
"""

import logging
from typing import List, Mapping, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..auth import Actor, get_current_actor
from ..database import Organization, get_db
from ..rbac import UserRole
from ..schemas.crm_schemas import OrganizationCreate, OrganizationResponse, OrganizationUpdate
from ..services.authorization import OperationMetadata
from ..utils.logging_security import sanitize_id_for_log

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/organizations", tags=["Organizations"])

CRM_ROLES = (UserRole.ADMIN, UserRole.MANAGER, UserRole.CLIENT)


def organization_owner(db: Session, params: Mapping[str, str]) -> Optional[str]:
    """Owner of the organization named by the {id} path parameter"""
    organization = db.get(Organization, params.get("id"))
    return organization.owner_id if organization else None


GUARDED_OPERATIONS = {
    "POST /api/organizations": OperationMetadata(CRM_ROLES, "organizations", "create"),
    "GET /api/organizations": OperationMetadata(CRM_ROLES, "organizations", "read"),
    "GET /api/organizations/{id}": OperationMetadata(
        CRM_ROLES, "organizations", "read", owner_lookup=organization_owner
    ),
    "PATCH /api/organizations/{id}": OperationMetadata(
        CRM_ROLES, "organizations", "update", owner_lookup=organization_owner
    ),
    "DELETE /api/organizations/{id}": OperationMetadata(
        CRM_ROLES, "organizations", "delete", owner_lookup=organization_owner
    ),
}


def is_ownership_scoped(request: Request, actor: Actor) -> bool:
    return request.app.state.rbac.matrix.is_ownership_scoped(actor.role)


def _get_organization_or_404(db: Session, organization_id: str) -> Organization:
    organization = db.get(Organization, organization_id)
    if organization is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")
    return organization


@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
def create_organization(
    payload: OrganizationCreate,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> Organization:
    owner_id = actor.actor_id
    if payload.owner_id and not is_ownership_scoped(request, actor):
        owner_id = payload.owner_id

    organization = Organization(name=payload.name, owner_id=owner_id)
    db.add(organization)
    db.commit()
    db.refresh(organization)

    logger.info(f"Organization {sanitize_id_for_log(organization.id)} created by {sanitize_id_for_log(actor.actor_id)}")
    return organization


@router.get("", response_model=List[OrganizationResponse])
def list_organizations(
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> List[Organization]:
    query = db.query(Organization)
    if is_ownership_scoped(request, actor):
        query = query.filter(Organization.owner_id == actor.actor_id)
    return query.order_by(Organization.created_at.desc()).all()


@router.get("/{id}", response_model=OrganizationResponse)
def get_organization(id: str, db: Session = Depends(get_db)) -> Organization:
    return _get_organization_or_404(db, id)


@router.patch("/{id}", response_model=OrganizationResponse)
def update_organization(id: str, payload: OrganizationUpdate, db: Session = Depends(get_db)) -> Organization:
    organization = _get_organization_or_404(db, id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(organization, field, value)
    db.commit()
    db.refresh(organization)
    return organization


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_organization(
    id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> None:
    organization = _get_organization_or_404(db, id)
    db.delete(organization)
    db.commit()
    logger.info(f"Organization {sanitize_id_for_log(id)} deleted by {sanitize_id_for_log(actor.actor_id)}")
