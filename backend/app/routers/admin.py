"""
Air Safety Reporting - Admin Router
User management for the safety office.
"""
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, EmailStr, field_validator
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import CommentDB, NotificationDB, ReportDB, UserDB, UserRole, utcnow
from ..auth import hash_password, require_admin
from .auth import UserResponse, create_user, user_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

def _validate_role(v):
    valid_roles = [r.value for r in UserRole]
    if v.lower() not in valid_roles:
        raise ValueError(f'Invalid role. Must be one of: {", ".join(valid_roles)}')
    return v.lower()


class CreateUserRequest(BaseModel):
    """Admin-created account. Unlike self-registration, any role is allowed."""
    email: EmailStr
    username: str
    password: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str = UserRole.CAPTAIN.value

    @field_validator('password')
    @classmethod
    def validate_password_strength(cls, v):
        if len(v) < 8:
            raise ValueError('Password must be at least 8 characters')
        return v

    @field_validator('role')
    @classmethod
    def validate_role(cls, v):
        return _validate_role(v)


class UpdateUserRequest(BaseModel):
    """Partial update. Omitted fields keep their current value."""
    email: Optional[EmailStr] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[str] = None

    @field_validator('role')
    @classmethod
    def validate_role(cls, v):
        return _validate_role(v) if v is not None else v


class ResetPasswordRequest(BaseModel):
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_password_strength(cls, v):
        if len(v) < 8:
            raise ValueError('Password must be at least 8 characters')
        return v


class MessageResponse(BaseModel):
    message: str


class UserListResponse(BaseModel):
    """User list response."""
    users: List[UserResponse]
    total: int


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@router.get("/users", response_model=UserListResponse)
async def list_users(
    role: Optional[str] = Query(None, description="Filter by role"),
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    """All accounts, oldest first."""
    query = db.query(UserDB)
    if role:
        query = query.filter(UserDB.role == role.lower())
    users = query.order_by(UserDB.created_at.asc(), UserDB.id.asc()).all()
    return UserListResponse(users=[user_response(u) for u in users], total=len(users))


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user_account(
    request: CreateUserRequest,
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    """Create an account with any role, admin included."""
    user = create_user(
        db,
        email=request.email,
        username=request.username,
        password=request.password,
        role=request.role,
        first_name=request.first_name,
        last_name=request.last_name,
    )
    logger.info(f"Admin {admin.email} created user {user.email} ({user.role})")
    return user_response(user)


def _get_user_or_404(db: Session, user_id: str) -> UserDB:
    user = db.query(UserDB).filter(UserDB.id == user_id).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user_account(
    user_id: str,
    request: UpdateUserRequest,
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    """Change a user's email, name or role."""
    user = _get_user_or_404(db, user_id)

    if request.email and request.email != user.email:
        taken = db.query(UserDB).filter(UserDB.email == request.email, UserDB.id != user_id).first()
        if taken:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")
        user.email = request.email
    if request.first_name is not None:
        user.first_name = request.first_name
    if request.last_name is not None:
        user.last_name = request.last_name
    if request.role is not None:
        user.role = request.role
    user.updated_at = utcnow()

    db.commit()
    db.refresh(user)
    logger.info(f"Admin {admin.email} updated user {user.email} ({user.role})")
    return user_response(user)


@router.post("/users/{user_id}/reset-password", response_model=MessageResponse)
async def reset_user_password(
    user_id: str,
    request: ResetPasswordRequest,
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    """Set a new password for a user."""
    user = _get_user_or_404(db, user_id)
    user.password_hash = hash_password(request.new_password)
    user.updated_at = utcnow()
    db.commit()
    logger.info(f"Admin {admin.email} reset the password of {user.email}")
    return MessageResponse(message="Password reset")


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user_account(
    user_id: str,
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    """
    Delete an account and its notifications.

    Reports and comments are never deleted, so an account that submitted a
    report or wrote a comment cannot be removed.
    """
    user = _get_user_or_404(db, user_id)
    if user.id == admin.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete your own account")

    has_reports = db.query(ReportDB.id).filter(ReportDB.submitted_by == user.id).first() is not None
    has_comments = db.query(CommentDB.id).filter(CommentDB.user_id == user.id).first() is not None
    if has_reports or has_comments:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User has reports or comments and cannot be deleted",
        )

    email = user.email
    db.query(NotificationDB).filter(NotificationDB.user_id == user.id).delete(synchronize_session=False)
    db.delete(user)
    db.commit()
    logger.info(f"Admin {admin.email} deleted user {email}")
    return MessageResponse(message="User deleted")
