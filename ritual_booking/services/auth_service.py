from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ritual_booking.core.config import settings
from ritual_booking.core.security import create_access_token, get_password_hash, verify_password
from ritual_booking.db.models.user import User, UserRole
from ritual_booking.schemas.auth import LoginRequest, RegisterRequest, TokenResponse

DUPLICATE_EMAIL_DETAIL = "User with this email already exists"


def _role_for_email(email: str) -> UserRole:
    admin_emails = {value.strip().lower() for value in settings.bootstrap_admin_emails}
    return UserRole.ADMIN if email in admin_emails else UserRole.CLIENT


def register_user(payload: RegisterRequest, db: Session) -> User:
    email = payload.email
    existing_user = db.scalar(select(User).where(User.email == email))
    if existing_user:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_EMAIL_DETAIL)

    user = User(
        email=email,
        hashed_password=get_password_hash(payload.password),
        role=_role_for_email(email).value,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_EMAIL_DETAIL) from None
    db.refresh(user)
    return user


def login_user(payload: LoginRequest, db: Session) -> TokenResponse:
    email = payload.email
    user = db.scalar(select(User).where(User.email == email))
    if not user or not user.is_active or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    token = create_access_token(user_id=user.id, role=user.role)
    return TokenResponse(access_token=token, expires_in=settings.access_token_expire_minutes * 60)
