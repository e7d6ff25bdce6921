import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .errors import AuthenticationError, AuthorizationError
from .models import User
from .security_utils import verify_jwt_token

logger = logging.getLogger(__name__)

# auto_error=False so a missing header is answered in our own envelope
security = HTTPBearer(auto_error=False)


def resolve_user(db: Session, token: Optional[str]) -> User:
    """Map a bearer token to an active user, or raise"""
    if not token:
        raise AuthenticationError("Acceso no autorizado. Token no proporcionado")

    payload = verify_jwt_token(token)
    if not payload:
        raise AuthenticationError("Acceso no autorizado. Token inválido o expirado")

    raw_id = payload.get("id", payload.get("sub"))
    try:
        user_id = int(raw_id)
    except (TypeError, ValueError) as e:
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(payload.keys())}")
        raise AuthenticationError("Acceso no autorizado. Token inválido o expirado") from e

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise AuthenticationError("Acceso no autorizado. Usuario no encontrado")

    if not user.is_active:
        logger.warning(f"⚠️ Deactivated user {user.id} attempted to access the API")
        raise AuthorizationError("Acceso denegado. Usuario desactivado")

    logger.debug(f"✅ User authenticated: {user.id} ({user.role})")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current user from the bearer token"""
    return resolve_user(db, credentials.credentials if credentials else None)


def require_roles(*roles: str):
    """
    Create a dependency that only lets the given roles through

    Example usage:
        staff_only = require_roles("recepcionista", "administrador")

        @router.get("/pendientes")
        async def list_pending(current_user: User = Depends(staff_only)):
            ...
    """
    allowed = frozenset(roles)

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            logger.warning(
                f"⚠️ User {current_user.id} with role {current_user.role} denied (requires {sorted(allowed)})"
            )
            raise AuthorizationError("No tiene permisos para realizar esta acción")
        return current_user

    return role_checker
