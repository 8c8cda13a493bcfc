"""Authentication router and caller-identity dependencies.

The invoice routes only need to know "who is calling, if anyone"; this module
answers that with JWT bearer tokens:
 - get_current_user: required identity (401 AUTH_INVALID_CREDENTIALS / AUTH_TOKEN_EXPIRED)
 - get_optional_user: identity when a valid token is present, else None
 - get_invoice_caller: required, or optional when ALLOW_GUEST_INVOICES is enabled
"""

from datetime import datetime, timedelta, UTC
from typing import Any, Dict, Optional
from uuid import UUID

import jwt
from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import get_async_db_dependency
from ..config.observability import (
    trace_operation,
    auth_login_counter,
    auth_login_failed_counter,
)
from ..config.settings import get_settings
from ..models.database import User
from ..utils.api_shapes import success
from ..utils.errors import ERROR_CODES, http_error

router = APIRouter()

security = HTTPBearer(auto_error=False)
pwd_context = CryptContext(
    schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=get_settings().BCRYPT_ROUNDS
)

# Pydantic models


class BusinessDetails(BaseModel):
    """Sender profile used to pre-fill new invoices."""
    model_config = ConfigDict(extra='ignore')

    name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    logo_image: Optional[str] = None
    company_name: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_input(cls, values):  # type: ignore
        if not isinstance(values, dict):
            return values
        key_map = {'logoImage': 'logo_image', 'logo': 'logo_image', 'companyName': 'company_name'}
        for src_key, dest_key in key_map.items():
            if src_key in values and dest_key not in values:
                values[dest_key] = values[src_key]
        return values


class RegisterRequest(BaseModel):
    model_config = ConfigDict(extra='ignore')

    email: str = Field(max_length=255)
    password: str = Field(min_length=6)
    full_name: str = Field(min_length=1, max_length=100)
    business_details: Optional[BusinessDetails] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_input(cls, values):  # type: ignore
        if not isinstance(values, dict):
            return values
        for src_key, dest_key in {'fullName': 'full_name', 'name': 'full_name',
                                  'businessDetails': 'business_details'}.items():
            if src_key in values and dest_key not in values:
                values[dest_key] = values[src_key]
        return values


class LoginRequest(BaseModel):
    email: str
    password: str


# Helper functions


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    settings = get_settings()
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": datetime.now(UTC) + expires_delta})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def _token_response(user: User) -> Dict[str, Any]:
    settings = get_settings()
    return {
        "access_token": create_access_token({"sub": str(user.id)}),
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        "user": _user_profile(user),
    }


def _user_profile(user: User) -> Dict[str, Any]:
    details = user.business_details or {}
    return {
        "id": str(user.id),
        "email": user.email,
        "fullName": user.full_name,
        "businessDetails": {
            "name": details.get("name"),
            "email": details.get("email"),
            "address": details.get("address"),
            "logoImage": details.get("logo_image"),
            "companyName": details.get("company_name"),
        },
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }


def _invalid_credentials(message: str = "Invalid authentication token"):
    return http_error(
        status.HTTP_401_UNAUTHORIZED,
        ERROR_CODES["auth_invalid"],
        message,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _resolve_user(
    credentials: Optional[HTTPAuthorizationCredentials],
    db: AsyncSession,
) -> User:
    if credentials is None:
        raise _invalid_credentials("Authentication required")
    settings = get_settings()
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except jwt.ExpiredSignatureError as exc:
        raise http_error(
            status.HTTP_401_UNAUTHORIZED,
            ERROR_CODES["auth_expired"],
            "Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    except jwt.PyJWTError as exc:
        raise _invalid_credentials() from exc

    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError as exc:
        raise _invalid_credentials() from exc
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise _invalid_credentials("Invalid credentials")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_async_db_dependency),
) -> User:
    """Get current authenticated user or raise 401."""
    return await _resolve_user(credentials, db)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_async_db_dependency),
) -> Optional[User]:
    """Resolve the caller when a bearer token is sent; anonymous callers get None.

    A token that is present but invalid is still rejected.
    """
    if credentials is None:
        return None
    return await _resolve_user(credentials, db)


async def get_invoice_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_async_db_dependency),
) -> Optional[User]:
    """Caller for routes that may serve guest invoices (create, download)."""
    if get_settings().ALLOW_GUEST_INVOICES:
        return await get_optional_user(credentials, db)
    return await _resolve_user(credentials, db)

# Routes


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_async_db_dependency)
):
    """Create a user account and return an access token."""
    with trace_operation("auth_register"):
        existing = await db.execute(select(User.id).where(User.email == request.email.lower()))
        if existing.first() is not None:
            raise http_error(status.HTTP_409_CONFLICT, ERROR_CODES["auth_conflict"],
                             "Email already registered")
        try:
            user = User(
                email=request.email,
                password_hash=get_password_hash(request.password),
                full_name=request.full_name,
                business_details=(request.business_details.model_dump()
                                  if request.business_details else {}),
                is_active=True,
            )
        except ValueError as exc:  # email format rejected by model validator
            raise http_error(422, ERROR_CODES["validation"], str(exc)) from exc
        db.add(user)
        try:
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            raise http_error(status.HTTP_409_CONFLICT, ERROR_CODES["auth_conflict"],
                             "Email already registered") from exc
        await db.refresh(user)
        return success(_token_response(user))


@router.post("/login")
async def login(
    login_request: LoginRequest,
    db: AsyncSession = Depends(get_async_db_dependency)
):
    """Authenticate user by email and return JWT token."""
    with trace_operation("auth_login"):
        result = await db.execute(select(User).where(User.email == login_request.email.lower()))
        user = result.scalar_one_or_none()
        if not user or not verify_password(login_request.password, user.password_hash):
            auth_login_failed_counter.add(1, {"reason": "invalid_credentials"})
            raise _invalid_credentials("Invalid credentials")

        user.last_login = datetime.now(UTC)
        await db.commit()
        auth_login_counter.add(1)
        return success(_token_response(user))


@router.get("/me")
async def get_current_user_profile(
    current_user: User = Depends(get_current_user)
):
    """Get current user profile."""
    return success(_user_profile(current_user))


@router.put("/me/business")
async def update_business_details(
    details: BusinessDetails,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db_dependency),
):
    """Replace the sender profile used to pre-fill new invoices."""
    user = await db.merge(current_user)
    user.business_details = details.model_dump()
    await db.commit()
    await db.refresh(user)
    return success(_user_profile(user))
