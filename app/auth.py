import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session, joinedload

from .database import get_db
from .models import User, UserRole
from .security_utils import verify_jwt_token

logger = logging.getLogger(__name__)

security = HTTPBearer()

# Businesses in these states keep API access
ACTIVE_BUSINESS_STATUSES = ("ACTIVE", "TRIAL")


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current user from the Bearer JWT"""

    if not credentials:
        logger.error("❌ No credentials provided")
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    token = credentials.credentials
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, length: {len(token)}")
        raise HTTPException(
            status_code=401, detail="Invalid token format. Expected a valid JWT token."
        )

    payload = verify_jwt_token(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user_id = payload.get("userId") or payload.get("sub")
    if not user_id:
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(payload.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    user = (
        db.query(User)
        .options(joinedload(User.business))
        .filter(User.id == user_id, User.status == "ACTIVE")
        .first()
    )
    if not user:
        raise HTTPException(status_code=401, detail="Invalid token or user not found")

    # Platform owners are never tied to a business status
    if user.role != UserRole.OWNER and user.business:
        if user.business.status not in ACTIVE_BUSINESS_STATUSES:
            logger.warning(f"⚠️ Access denied for user {user.id}: business {user.business.id} inactive")
            raise HTTPException(status_code=403, detail="The associated business is inactive")

    return user


def require_business_access(business_id: str, user: User) -> None:
    """Owners see every business; everyone else only their own"""
    if user.role == UserRole.OWNER:
        return
    if user.business_id != business_id:
        logger.warning(f"⚠️ User {user.id} attempted to access business {business_id}")
        raise HTTPException(status_code=403, detail="You do not have access to this business")


def require_business_admin(business_id: str, user: User) -> None:
    require_business_access(business_id, user)
    if user.role not in (UserRole.OWNER, UserRole.BUSINESS):
        raise HTTPException(status_code=403, detail="Only business administrators can do this")


async def get_current_owner(user: User = Depends(get_current_user)) -> User:
    """Dependency for platform-owner endpoints"""
    if user.role != UserRole.OWNER:
        raise HTTPException(status_code=403, detail="Owner access required")
    return user
