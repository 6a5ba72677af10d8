"""Shared dependencies: bearer-token decoding into a tenant context."""
from datetime import datetime, timedelta
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from recordbook.config import settings

security = HTTPBearer(auto_error=False)


class TenantContext(BaseModel):
    """Caller identity resolved by the auth service and carried in the token."""

    institution_domain: str
    user_id: str
    role: Optional[str] = None


def create_access_token(subject: str, institution_domain: str, role: Optional[str] = None, minutes: int = 60) -> str:
    """Mint a token in the auth service's format (used by tooling and tests)."""
    expire = datetime.utcnow() + timedelta(minutes=minutes)
    to_encode = {
        "sub": subject,
        "institutionDomain": institution_domain,
        "role": role,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


async def get_tenant(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> TenantContext:
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = jwt.decode(credentials.credentials, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    domain = payload.get("institutionDomain")
    if not domain:
        raise HTTPException(status_code=400, detail="Institution domain is required")
    return TenantContext(institution_domain=domain, user_id=user_id, role=payload.get("role"))


# Type alias for route injection
CurrentTenant = Annotated[TenantContext, Depends(get_tenant)]
