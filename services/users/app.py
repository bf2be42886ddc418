import logging

from fastapi import Depends, Request, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from common import auth
from common.database import get_db
from common.dependencies import get_current_user
from common.errors import AuthenticationFailed, ConflictError
from common.models import User
from common.rate_limit import limiter
from common.schemas import ApiResponse, AuthData, LoginRequest, UserCreate, UserRead
from common.service import create_service_app

logger = logging.getLogger(__name__)

app = create_service_app("Users Service", "users")


def _auth_payload(user: User) -> AuthData:
    return AuthData(user=UserRead.model_validate(user), token=auth.create_user_token(user))


@app.post("/api/auth/register", response_model=ApiResponse[AuthData], status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register_user(request: Request, user_in: UserCreate, db: Session = Depends(get_db)) -> ApiResponse[AuthData]:
    existing = db.query(User).filter(or_(User.email == user_in.email, User.phone == user_in.phone)).first()
    if existing:
        field = "Email" if existing.email == user_in.email else "Phone number"
        raise ConflictError(f"{field} is already registered")

    user = User(
        name=user_in.name,
        email=user_in.email,
        phone=user_in.phone,
        role=user_in.role,
        city=user_in.city,
        hashed_password=auth.get_password_hash(user_in.password),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Email or phone number is already registered") from exc
    db.refresh(user)
    logger.info("Registered %s %s", user.role.value, user.id)
    return ApiResponse(message="Registration successful", data=_auth_payload(user))


@app.post("/api/auth/login", response_model=ApiResponse[AuthData])
@limiter.limit("10/minute")
def login(request: Request, credentials: LoginRequest, db: Session = Depends(get_db)) -> ApiResponse[AuthData]:
    user = auth.authenticate_user(db, credentials.email_or_phone, credentials.password)
    if not user:
        raise AuthenticationFailed("Invalid credentials")
    return ApiResponse(message="Login successful", data=_auth_payload(user))


@app.get("/api/auth/me", response_model=ApiResponse[UserRead])
@limiter.limit("60/minute")
def read_current_user(request: Request, current_user: User = Depends(get_current_user)) -> ApiResponse[UserRead]:
    return ApiResponse(data=UserRead.model_validate(current_user))
