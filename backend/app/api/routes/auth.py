import logging
from datetime import datetime
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from pydantic import AliasGenerator, BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from app.core.database import get_db
from app.core.errors import (
    DuplicateEntry,
    FeatureDisabled,
    InvalidCredentials,
    InvalidCurrentPassword,
    NotFound,
    UserExists,
)
from app.core.rate_limit import auth_rate_limit
from app.core.security import verify_password, get_password_hash, create_access_token
from app.models.user import User, UserRole
from app.services.user_directory import user_directory
from app.api.dependencies import get_current_user, get_local_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

# Loose international phone format: optional +, 7-20 digits, spaces or dashes
PHONE_PATTERN = r"^\+?[0-9][0-9\s\-]{6,19}$"


def _strip(value):
    return value.strip() if isinstance(value, str) else value


DisplayName = Annotated[str, BeforeValidator(_strip), Field(min_length=2)]


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: DisplayName
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


class ProfileUpdate(BaseModel):
    name: Optional[DisplayName] = None
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)


class PasswordChange(BaseModel):
    current_password: str = Field(alias="currentPassword", min_length=1)
    new_password: str = Field(alias="newPassword", min_length=6)


class UserResponse(BaseModel):
    # Read from ORM attributes, serialized in camelCase for the dashboard
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=AliasGenerator(serialization_alias=to_camel),
    )

    id: str
    email: str
    name: str
    phone: Optional[str] = None
    role: UserRole
    is_active: bool
    wallet_address: Optional[str] = None
    wallet_created_at: Optional[datetime] = None
    clerk_id: Optional[str] = Field(default=None, validation_alias="external_id", serialization_alias="clerkId")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    message: str
    user: UserResponse
    token: str


class UserEnvelope(BaseModel):
    user: UserResponse


class ProfileUpdateResponse(BaseModel):
    message: str
    user: UserResponse


class MessageResponse(BaseModel):
    message: str


def _issue_token(user: User) -> str:
    return create_access_token(user_id=user.id, email=user.email)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@auth_rate_limit
async def register(request: Request, user_data: UserCreate, db: Session = Depends(get_db)):
    """Register a merchant with email and password"""
    # Explicit check gives a clearer error than the constraint violation
    if user_directory.get_by_email(db, user_data.email):
        raise UserExists()

    try:
        user = user_directory.create(
            db,
            email=user_data.email,
            name=user_data.name,
            phone=user_data.phone,
            password_hash=get_password_hash(user_data.password),
            role=UserRole.MERCHANT,
        )
    except DuplicateEntry:
        # Two registrations for the same email raced past the check above
        raise UserExists()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("User registered", extra={"user_id": user.id})
    return {"message": "User registered successfully", "user": user, "token": _issue_token(user)}


@router.post("/login", response_model=AuthResponse)
@auth_rate_limit
async def login(request: Request, credentials: LoginRequest, db: Session = Depends(get_db)):
    """Login with email and password and get a local token"""
    user = user_directory.get_by_email(db, credentials.email)

    # Same error for unknown email, inactive account and wrong password so emails can't be enumerated
    if not user or not user.is_active or not verify_password(credentials.password, user.password_hash):
        raise InvalidCredentials()

    logger.info("User logged in", extra={"user_id": user.id})
    return {"message": "Login successful", "user": user, "token": _issue_token(user)}


@router.get("/profile", response_model=UserEnvelope)
async def get_profile(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Get the authenticated user's profile (Clerk or local token)"""
    user = user_directory.get_by_id(db, current_user.id)
    if user is None:
        raise NotFound("The user does not exist")
    return {"user": user}


@router.put("/profile", response_model=ProfileUpdateResponse)
async def update_profile(
    update: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update name and/or phone"""
    changes = {}
    if update.name:
        changes["name"] = update.name
    if update.phone:
        changes["phone"] = update.phone

    user = user_directory.update(db, current_user, **changes) if changes else current_user
    return {"message": "Profile updated successfully", "user": user}


@router.post("/create-wallet", status_code=status.HTTP_501_NOT_IMPLEMENTED)
async def create_wallet(current_user: User = Depends(get_current_user)):
    """Wallet issuance is disabled until a payment processor is integrated"""
    raise FeatureDisabled(
        "Wallet creation is temporarily disabled until the payment processor integration is available."
    )


@router.put("/change-password", response_model=MessageResponse)
async def change_password(
    passwords: PasswordChange,
    current_user: User = Depends(get_local_user),
    db: Session = Depends(get_db)
):
    """Change the local password (local token only)"""
    if not verify_password(passwords.current_password, current_user.password_hash):
        raise InvalidCurrentPassword()

    user_directory.update(db, current_user, password_hash=get_password_hash(passwords.new_password))
    logger.info("Password changed", extra={"user_id": current_user.id})
    return {"message": "Password updated successfully"}
