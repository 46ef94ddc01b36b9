"""
Consent Service

Records processing consents and answers who has given which. A user always
sees their own consents; only privileged roles see other users' consents,
the full paginated list, and per-type totals.

Giving a consent writes an explicit audit record on top of the one the
capture pipeline produces for the call itself.
"""

import logging
import math
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..database import Consent
from ..exceptions import ConsentAccessDeniedError
from ..rbac import SUPER_ADMIN_ROLE, RoleLike
from ..utils.logging_security import sanitize_for_log, sanitize_id_for_log
from .audit import AuditAction, AuditRecord

logger = logging.getLogger(__name__)

CONSENT_ENTITY = "consent"


class ConsentType(str, Enum):
    PERSONAL_DATA = "PERSONAL_DATA"
    MARKETING = "MARKETING"
    ANALYTICS = "ANALYTICS"
    COOKIES = "COOKIES"


class ConsentBasis(str, Enum):
    """Legal basis a consent record rests on"""

    EXPLICIT = "EXPLICIT"
    CONTRACT = "CONTRACT"
    LEGITIMATE_INTEREST = "LEGITIMATE_INTEREST"
    LEGAL_OBLIGATION = "LEGAL_OBLIGATION"


def consent_given_record(
    consent: Consent, ip_address: Optional[str] = None, user_agent: Optional[str] = None
) -> AuditRecord:
    """Audit record for a newly given consent"""
    return AuditRecord(
        actor_id=consent.user_id,
        action=AuditAction.CREATE.value,
        entity=CONSENT_ENTITY,
        entity_id=consent.id,
        details={
            "consent_type": consent.type,
            "action": "given",
            "ip_address": ip_address,
            "user_agent": user_agent,
        },
    )


class ConsentService:
    """Consent bookkeeping over one database session"""

    def __init__(self, db: Session, privileged_roles: Iterable[RoleLike] = (SUPER_ADMIN_ROLE,)):
        self.db = db
        self.privileged_roles = {getattr(r, "value", r) for r in privileged_roles}

    def is_privileged(self, actor_role: RoleLike) -> bool:
        return getattr(actor_role, "value", actor_role) in self.privileged_roles

    def _require_privileged(self, actor_id: str, actor_role: RoleLike, what: str) -> None:
        if not self.is_privileged(actor_role):
            logger.warning(
                f"User {sanitize_id_for_log(actor_id)} ({sanitize_for_log(getattr(actor_role, 'value', actor_role))}) "
                f"denied {what}"
            )
            raise ConsentAccessDeniedError()

    def give_consent(
        self,
        user_id: str,
        consent_type: ConsentType,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Tuple[Consent, bool]:
        """
        Record a consent for user_id.

        Giving the same type twice is a no-op that returns the existing record.

        Returns:
            (consent, created)
        """
        consent_type = ConsentType(consent_type)
        existing = (
            self.db.query(Consent)
            .filter(Consent.user_id == user_id, Consent.type == consent_type.value)
            .order_by(Consent.granted_at.desc())
            .first()
        )
        if existing is not None:
            return existing, False

        consent = Consent(
            user_id=user_id,
            type=consent_type.value,
            basis=ConsentBasis.EXPLICIT.value,
            details=f"IP: {ip_address}, UserAgent: {user_agent}",
        )
        self.db.add(consent)
        self.db.commit()
        self.db.refresh(consent)

        logger.info(f"Consent {consent_type.value} given by user {sanitize_id_for_log(user_id)}")
        return consent, True

    def user_consents(self, user_id: str, actor_id: str, actor_role: RoleLike) -> List[Consent]:
        """Consents of user_id; anyone but a privileged role may only ask about themselves"""
        if str(user_id) != str(actor_id):
            self._require_privileged(actor_id, actor_role, f"consents of user {sanitize_id_for_log(user_id)}")

        return (
            self.db.query(Consent)
            .filter(Consent.user_id == str(user_id))
            .order_by(Consent.granted_at.desc())
            .all()
        )

    def all_consents(
        self,
        actor_id: str,
        actor_role: RoleLike,
        page: int = 1,
        limit: int = 10,
        consent_type: Optional[ConsentType] = None,
    ) -> Dict[str, Any]:
        self._require_privileged(actor_id, actor_role, "the consent list")

        query = self.db.query(Consent)
        if consent_type is not None:
            query = query.filter(Consent.type == ConsentType(consent_type).value)

        total = query.count()
        consents = query.order_by(Consent.granted_at.desc()).offset((page - 1) * limit).limit(limit).all()

        return {
            "data": consents,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit),
            },
        }

    def consent_stats(self, actor_id: str, actor_role: RoleLike) -> List[Dict[str, Any]]:
        self._require_privileged(actor_id, actor_role, "consent statistics")

        rows = self.db.query(Consent.type, func.count(Consent.id)).group_by(Consent.type).order_by(Consent.type).all()
        return [{"consent_type": consent_type, "count": count} for consent_type, count in rows]

    def has_consent(self, user_id: str, consent_type: ConsentType) -> bool:
        consent_type = ConsentType(consent_type)
        query = self.db.query(Consent.id).filter(Consent.user_id == str(user_id), Consent.type == consent_type.value)
        return query.first() is not None
