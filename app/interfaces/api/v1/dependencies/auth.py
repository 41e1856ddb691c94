from collections.abc import Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.application.services.security_service import decode_access_token
from app.domain.roles import UserRole
from app.infrastructure.db.models import User, UserProfile
from app.infrastructure.db.session import get_db
from app.infrastructure.logging import bind_request_context

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    user_id = decode_access_token(token)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication token")
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    return user


def get_current_profile(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> UserProfile:
    profile = db.execute(select(UserProfile).where(UserProfile.user_id == current_user.id)).scalar_one_or_none()
    if profile is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User profile not found")
    if not profile.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User profile is inactive")
    bind_request_context(user_id=current_user.id, school_id=profile.school_id, role=profile.role.value)
    return profile


def get_current_school_id(profile: UserProfile = Depends(get_current_profile)) -> int:
    if profile.school_id is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is not linked to a school")
    return profile.school_id


def require_roles(allowed_roles: list[UserRole]) -> Callable:
    def checker(
        profile: UserProfile = Depends(get_current_profile),
        _school_id: int = Depends(get_current_school_id),
    ) -> UserProfile:
        if profile.role not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient school permissions")
        return profile

    return checker
