import logging
from typing import Optional
from sqlalchemy.orm import Session
from coopdesk.models.member import Member, MemberStatus
from coopdesk.core.security import verify_password, create_access_token

logger = logging.getLogger(__name__)


def authenticate_user(db: Session, email: str, password: str) -> Optional[Member]:
    """
    Authenticate an account by email and password.

    Returns the member if the password matches and the account is active,
    None otherwise.
    """
    user = db.query(Member).filter(Member.email == email).first()
    if not user:
        logger.debug("User not found: %s", email)
        return None

    if not verify_password(password, user.password_hash):
        logger.debug("Password verification failed for user: %s", email)
        return None

    if user.status != MemberStatus.ACTIVE:
        logger.debug("User %s is %s, login denied", email, user.status.value)
        return None

    return user


def create_access_token_for_user(user: Member) -> str:
    """Issue a bearer token whose subject is the account id."""
    return create_access_token({"sub": str(user.id), "role": user.role.value})
