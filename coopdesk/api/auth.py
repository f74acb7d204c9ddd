from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from coopdesk.db.base import get_db
from coopdesk.schemas.auth import UserLogin, Token, UserResponse
from coopdesk.services.auth import authenticate_user, create_access_token_for_user
from coopdesk.core.audit import write_audit_log
from coopdesk.core.dependencies import get_current_user, actor_name
from coopdesk.models.member import Member

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=Token)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """Login and get JWT token."""
    user = authenticate_user(db, credentials.email, credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )

    access_token = create_access_token_for_user(user)
    write_audit_log(actor=actor_name(user), role=user.role.value, action="Login", details=f"email={user.email}")
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=UserResponse)
def get_current_user_info(current_user: Member = Depends(get_current_user)):
    """Get current account information."""
    return UserResponse.from_member(current_user)
