"""Password hashing, JWT handling, and helper utilities."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import or_
from sqlalchemy.orm import Session

from .config import get_settings
from .errors import AuthenticationFailed
from .models import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
settings = get_settings()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_user_token(user: User) -> str:
    return create_access_token({"sub": str(user.id), "role": user.role.value})


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise AuthenticationFailed("Invalid token") from exc


def authenticate_user(db: Session, email_or_phone: str, password: str) -> Optional[User]:
    """Look a user up by email or phone and check the password.

    Returns ``None`` for an unknown identifier or a wrong password so callers
    cannot tell the two apart.
    """
    identifier = email_or_phone.strip()
    user: Optional[User] = (
        db.query(User).filter(or_(User.email == identifier.lower(), User.phone == identifier)).first()
    )
    if not user or not verify_password(password, user.hashed_password):
        logger.warning("Failed login attempt for %s", identifier)
        return None
    return user
