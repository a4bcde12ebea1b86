"""Admin authentication: bearer JWT verification and tenant resolution."""

from dataclasses import dataclass
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import logging

from supportwidget.config import settings

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)

ADMIN_ROLES = ("admin", "super_admin")


@dataclass
class AdminPrincipal:
    """Caller identity taken from a verified admin token."""
    subject: str
    tenant_id: Optional[int]
    role: str

    @property
    def is_super_admin(self) -> bool:
        return self.role == "super_admin"


def decode_admin_token(token: str) -> AdminPrincipal:
    """Verify signature and claims. Raises JWTError or ValueError."""
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])

    subject = payload.get("sub")
    role = payload.get("role")
    tenant_id = payload.get("tenant_id")

    if not subject or role not in ADMIN_ROLES:
        raise ValueError("Token is missing subject or admin role")
    if tenant_id is None and role != "super_admin":
        raise ValueError("Token is missing tenant_id")

    return AdminPrincipal(
        subject=subject,
        tenant_id=int(tenant_id) if tenant_id is not None else None,
        role=role
    )


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> AdminPrincipal:
    """Verify the bearer JWT and require an admin role."""

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    try:
        principal = decode_admin_token(credentials.credentials)
    except (JWTError, ValueError) as e:
        logger.warning(f"Admin token validation failed: {e}")
        raise credentials_exception

    logger.info(f"Admin authenticated: {principal.subject} ({principal.role})")
    return principal


def resolve_admin_tenant(principal: AdminPrincipal, requested_tenant_id: Optional[int]) -> int:
    """
    Tenant an admin call operates on.

    Regular admins are pinned to their token's tenant; a super admin may
    address any tenant through the tenantId parameter.
    """
    if principal.is_super_admin and requested_tenant_id is not None:
        return requested_tenant_id

    if principal.tenant_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="tenantId is required"
        )

    if requested_tenant_id is not None and requested_tenant_id != principal.tenant_id:
        logger.warning(
            f"Admin {principal.subject} asked for tenant {requested_tenant_id}, "
            f"pinned to {principal.tenant_id}"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access to this tenant is not allowed"
        )

    return principal.tenant_id
