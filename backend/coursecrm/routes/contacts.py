"""
Contact API Routes
Contacts belong to an organization; their owner is the organization's owner
"""

import logging
from typing import List, Mapping, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from ..auth import Actor, get_current_actor
from ..database import Contact, Organization, get_db
from ..exceptions import InsufficientPermissionError
from ..schemas.crm_schemas import ContactCreate, ContactResponse, ContactUpdate
from ..services.authorization import OperationMetadata
from ..utils.logging_security import sanitize_id_for_log
from .organizations import CRM_ROLES, is_ownership_scoped

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contacts", tags=["Contacts"])


def contact_owner(db: Session, params: Mapping[str, str]) -> Optional[str]:
    """Owner of the contact named by the {id} path parameter"""
    contact = db.get(Contact, params.get("id"))
    if contact is None or contact.organization is None:
        return None
    return contact.organization.owner_id


GUARDED_OPERATIONS = {
    "POST /api/contacts": OperationMetadata(CRM_ROLES, "contacts", "create"),
    "GET /api/contacts": OperationMetadata(CRM_ROLES, "contacts", "read"),
    "GET /api/contacts/{id}": OperationMetadata(CRM_ROLES, "contacts", "read", owner_lookup=contact_owner),
    "PATCH /api/contacts/{id}": OperationMetadata(CRM_ROLES, "contacts", "update", owner_lookup=contact_owner),
    "DELETE /api/contacts/{id}": OperationMetadata(CRM_ROLES, "contacts", "delete", owner_lookup=contact_owner),
}


def _get_contact_or_404(db: Session, contact_id: str) -> Contact:
    contact = db.get(Contact, contact_id)
    if contact is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")
    return contact


@router.post("", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
def create_contact(
    payload: ContactCreate,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> Contact:
    organization = db.get(Organization, payload.org_id)
    if organization is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")

    # The target organization comes from the body, so ownership is checked here
    if is_ownership_scoped(request, actor) and organization.owner_id != actor.actor_id:
        raise InsufficientPermissionError(resource="contacts", action="create")

    contact = Contact(**payload.model_dump())
    db.add(contact)
    db.commit()
    db.refresh(contact)

    logger.info(f"Contact {sanitize_id_for_log(contact.id)} created by {sanitize_id_for_log(actor.actor_id)}")
    return contact


@router.get("", response_model=List[ContactResponse])
def list_contacts(
    request: Request,
    org_id: Optional[str] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> List[Contact]:
    query = db.query(Contact)
    if org_id:
        query = query.filter(Contact.org_id == org_id)
    if is_ownership_scoped(request, actor):
        query = query.join(Organization).filter(Organization.owner_id == actor.actor_id)
    return query.order_by(Contact.created_at.desc()).all()


@router.get("/{id}", response_model=ContactResponse)
def get_contact(id: str, db: Session = Depends(get_db)) -> Contact:
    return _get_contact_or_404(db, id)


@router.patch("/{id}", response_model=ContactResponse)
def update_contact(id: str, payload: ContactUpdate, db: Session = Depends(get_db)) -> Contact:
    contact = _get_contact_or_404(db, id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(contact, field, value)
    db.commit()
    db.refresh(contact)
    return contact


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_contact(
    id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> None:
    contact = _get_contact_or_404(db, id)
    db.delete(contact)
    db.commit()
    logger.info(f"Contact {sanitize_id_for_log(id)} deleted by {sanitize_id_for_log(actor.actor_id)}")
