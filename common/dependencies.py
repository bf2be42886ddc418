"""Reusable FastAPI dependencies for auth and database access."""
from typing import Callable

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from .auth import decode_token
from .database import get_db
from .errors import AuthenticationFailed, ForbiddenError
from .models import RoleEnum, User

oauth_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_current_user(token: str | None = Depends(oauth_scheme), db: Session = Depends(get_db)) -> User:
    if not token:
        raise AuthenticationFailed("Not authorized to access this resource")
    payload = decode_token(token)
    subject: str | None = payload.get("sub")
    if subject is None or not subject.isdigit():
        raise AuthenticationFailed("Missing subject in token")
    user = db.get(User, int(subject))
    if not user:
        raise AuthenticationFailed("User no longer exists")
    return user


def allow_roles(*roles: RoleEnum) -> Callable[[User], User]:
    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            allowed = ", ".join(role.value for role in roles)
            raise ForbiddenError(f"This resource is only available to: {allowed}")
        return current_user

    return dependency


require_owner = allow_roles(RoleEnum.OWNER)
require_customer = allow_roles(RoleEnum.CUSTOMER)
