from datetime import datetime, timedelta, timezone
from typing import Any, cast

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import settings
from app.infrastructure.db.models import User
from app.infrastructure.logging import get_logger

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
logger = get_logger(__name__)


def hash_password(password: str) -> str:
    return cast(str, pwd_context.hash(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return cast(bool, pwd_context.verify(plain_password, hashed_password))


def create_access_token(user_id: int, expires_minutes: int | None = None) -> str:
    lifetime = settings.jwt_access_token_expire_minutes if expires_minutes is None else expires_minutes
    claims = {
        "sub": str(user_id),
        "iat": datetime.now(timezone.utc),
        "exp": datetime.now(timezone.utc) + timedelta(minutes=lifetime),
    }
    return cast(str, jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm))


def decode_access_token(token: str) -> int | None:
    try:
        claims = cast(dict[str, Any], jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]))
        return int(claims["sub"])
    except (JWTError, KeyError, ValueError):
        return None


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    """Return the user for valid credentials; inactive accounts and unknown emails both fail."""
    user = db.execute(select(User).where(User.email == email.strip().lower())).scalar_one_or_none()
    if user is None or not user.is_active or not verify_password(password, user.hashed_password):
        logger.info("login_rejected", email=email)
        return None
    logger.info("login_succeeded", user_id=user.id)
    return user
