"""
Identity context for CourseCRM
Decodes bearer tokens into the acting user's id and role
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import jwt
from fastapi import HTTPException, Request, status

from .config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Authenticated caller"""

    actor_id: str
    role: str

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> Optional["Actor"]:
        actor_id = payload.get("sub") or payload.get("userId") or payload.get("id")
        role = payload.get("role")
        if not actor_id or not role:
            return None
        return cls(actor_id=str(actor_id), role=str(role))


def create_access_token(
    settings: Settings,
    actor_id: str,
    role: str,
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """Create a signed access token for an actor"""
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode: Dict[str, Any] = dict(extra_claims or {})
    to_encode.update(
        {
            "sub": str(actor_id),
            "role": role,
            "exp": expire,
            "iat": datetime.utcnow(),
            "jti": secrets.token_urlsafe(16),
        }
    )
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_token(settings: Settings, token: str) -> Optional[Dict[str, Any]]:
    """
    Decode JWT token for authorization middleware
    Returns token payload or None if invalid
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except jwt.ExpiredSignatureError:
        logger.debug("Token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.debug(f"Token decode failed: {e}")
        return None


def actor_from_authorization_header(settings: Settings, auth_header: Optional[str]) -> Optional[Actor]:
    """Resolve the actor behind an Authorization header; anonymous when absent or invalid"""
    if not auth_header or not auth_header.startswith("Bearer "):
        return None

    payload = decode_token(settings, auth_header.split(" ", 1)[1])
    if not payload:
        return None

    return Actor.from_payload(payload)


def get_current_actor(request: Request) -> Actor:
    """FastAPI dependency returning the actor resolved by the authorization middleware"""
    actor = getattr(request.state, "actor", None)
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return actor
