from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ritual_booking.db.session import get_db
from ritual_booking.schemas.auth import LoginRequest, RegisterRequest, TokenResponse
from ritual_booking.schemas.user import UserResponse
from ritual_booking.services.auth_service import login_user, register_user

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)) -> UserResponse:
    user = register_user(payload=payload, db=db)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse, status_code=status.HTTP_200_OK)
def login(payload: LoginRequest, db: Session = Depends(get_db)) -> TokenResponse:
    return login_user(payload=payload, db=db)
