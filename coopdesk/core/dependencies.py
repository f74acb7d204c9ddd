from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from coopdesk.db.base import get_db
from coopdesk.models.member import Member, MemberRole, MemberStatus
from coopdesk.core.security import decode_access_token
import uuid

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Member:
    """Get current authenticated account from JWT token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_access_token(token)
    if payload is None:
        raise credentials_exception

    user_id_str: str = payload.get("sub")
    if user_id_str is None:
        raise credentials_exception

    # Convert string UUID to UUID object
    try:
        user_id = uuid.UUID(user_id_str)
    except (ValueError, TypeError):
        raise credentials_exception

    user = db.query(Member).filter(Member.id == user_id).first()
    if user is None:
        raise credentials_exception

    return user


async def get_current_active_user(
    current_user: Member = Depends(get_current_user)
) -> Member:
    """Get current active account."""
    if current_user.status != MemberStatus.ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is not active"
        )
    return current_user


def require_role(role: MemberRole):
    """Dependency factory for requiring a specific role."""
    async def role_checker(
        current_user: Member = Depends(get_current_active_user)
    ) -> Member:
        if current_user.role != role:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User does not have required role: {role.value}"
            )
        return current_user
    return role_checker


# Back-office routes are admin-only
require_admin = require_role(MemberRole.ADMIN)


def actor_name(user: Member) -> str:
    """Name recorded on confirm/post stamps."""
    return user.name or user.email or "Admin"
