"""
Authentication Endpoints

Registration creates an owner profile without a tenant. The tenant is
created together with the first academy (POST /academies).
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from datetime import datetime, timedelta

from zaltyko.database import get_db
from zaltyko.models.user import User, UserRole
from zaltyko.schemas.auth import LoginRequest, Token, RegisterRequest
from zaltyko.schemas.user import ProfileResponse
from zaltyko.core.security import verify_password, get_password_hash, create_access_token
from zaltyko.core.exceptions import AuthenticationError, ConflictError
from zaltyko.config import get_settings
from zaltyko.utils.logging import log_security_event, get_logger

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/login", response_model=Token)
async def login(
    credentials: LoginRequest,
    db: Session = Depends(get_db)
):
    """
    Authenticate user and return JWT token.

    SECURITY: Every failure answers the same generic 401 to prevent
    account enumeration. The reason only goes to the security log.
    """
    email = credentials.email.lower()
    user = db.query(User).filter(User.email == email).first()

    if not user:
        log_security_event("failed_login", {"reason": "user_not_found", "email": email}, logger)
        raise AuthenticationError("Invalid credentials")

    if not verify_password(credentials.password, user.hashed_password):
        log_security_event("failed_login", {"reason": "invalid_password", "user_id": user.id}, logger)
        raise AuthenticationError("Invalid credentials")

    if not user.is_active:
        log_security_event("failed_login", {"reason": "user_inactive", "user_id": user.id}, logger)
        raise AuthenticationError("Invalid credentials")

    if not user.can_login and user.role != UserRole.SUPER_ADMIN:
        log_security_event("failed_login", {"reason": "login_disabled", "user_id": user.id}, logger)
        raise AuthenticationError("Invalid credentials")

    access_token = create_access_token(
        {
            "sub": user.id,
            "tenant_id": user.tenant_id,
            "role": user.role.value,
            "email": user.email,
        },
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )

    user.last_login_at = datetime.utcnow()
    db.commit()

    logger.info(f"Successful login: user={user.id}", extra={"user_id": user.id, "tenant_id": user.tenant_id})
    return Token(access_token=access_token)


@router.post("/register", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
async def register(
    registration: RegisterRequest,
    db: Session = Depends(get_db)
):
    """
    Register a new academy owner.

    NOTE: No email verification yet; accounts are usable immediately.
    """
    email = registration.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise ConflictError("A user with this email already exists", code="EMAIL_TAKEN")

    new_user = User(
        email=email,
        hashed_password=get_password_hash(registration.password),
        name=registration.name,
        role=UserRole.OWNER,
        tenant_id=None,
        can_login=True,
        is_active=True,
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    logger.info(f"New owner registered: {new_user.id}", extra={"user_id": new_user.id})
    return new_user
