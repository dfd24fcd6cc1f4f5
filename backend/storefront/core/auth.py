"""
Authentication for dashboard endpoints

Validates bearer JWTs issued by the dashboard frontend and provides the
user and tenant context every merchant-side repository call is scoped to.
"""
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from .config import settings


# Security scheme for bearer tokens
security = HTTPBearer(auto_error=False)

# Role hierarchy: admin > staff > viewer
ROLE_HIERARCHY = {
    "admin": 3,
    "staff": 2,
    "viewer": 1,
}


class TokenUser(BaseModel):
    """User data extracted from JWT token"""
    id: str
    email: str
    tenant_id: Optional[str] = None
    name: Optional[str] = None
    role: str = "staff"


def _auth_secret() -> str:
    secret = settings.AUTH_SECRET
    if not secret:
        raise ValueError("AUTH_SECRET environment variable is not set")
    return secret


def decode_token(token: str) -> dict:
    """
    Decode and validate a dashboard JWT.

    Expected payload:
    {
        "sub": "user_id",
        "email": "owner@store.com",
        "name": "Store Owner",
        "role": "admin",
        "tenant_id": "tenant uuid",
        "exp": 1234567890
    }
    """
    try:
        return jwt.decode(
            token,
            _auth_secret(),
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False}
        )
    except JWTError as e:
        if "expired" in str(e).lower():
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"}
            )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"}
        )


def _user_from_payload(payload: dict) -> Optional[TokenUser]:
    user_id = payload.get("id") or payload.get("sub")
    email = payload.get("email")
    if not user_id or not email:
        return None

    return TokenUser(
        id=user_id,
        email=email,
        tenant_id=payload.get("tenant_id"),
        name=payload.get("name"),
        role=payload.get("role", "staff")
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenUser:
    """
    Dependency that extracts and validates the current user from JWT.

    Usage:
        @router.get("/protected")
        async def protected_route(user: TokenUser = Depends(get_current_user)):
            return {"message": f"Hello {user.email}"}
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"}
        )

    payload = decode_token(credentials.credentials)
    user = _user_from_payload(payload)

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload: missing user id or email",
            headers={"WWW-Authenticate": "Bearer"}
        )

    return user


async def get_current_tenant_user(
    user: TokenUser = Depends(get_current_user)
) -> TokenUser:
    """Authenticated user that belongs to a tenant (all dashboard routes)"""
    if not user.tenant_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is not associated with a store"
        )
    return user


def require_role(required_role: str):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.delete("/{product_id}")
        async def delete_product(
            product_id: str,
            user: TokenUser = Depends(require_role("admin"))
        ):
            pass
    """
    async def role_checker(
        user: TokenUser = Depends(get_current_tenant_user)
    ) -> TokenUser:
        user_level = ROLE_HIERARCHY.get(user.role, 0)
        required_level = ROLE_HIERARCHY.get(required_role, 0)

        if user_level < required_level:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {required_role}, your role: {user.role}"
            )

        return user

    return role_checker


# Convenience dependencies for common role requirements
require_admin = require_role("admin")
require_staff = require_role("staff")
