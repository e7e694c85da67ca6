from typing import Literal, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session
from mahattati.api.dependencies import get_current_user
from mahattati.api.schemas import UserResponse
from mahattati.core.database import get_db
from mahattati.core.exceptions import Unauthenticated
from mahattati.models.user import User
from mahattati.services.audit_service import audit_service
from mahattati.services.auth_service import auth_service
from mahattati.services.email_service import email_service

router = APIRouter(prefix="/auth", tags=["auth"])

# Same body whether or not the address exists, so the endpoint cannot be
# used to enumerate accounts
FORGOT_PASSWORD_MESSAGE = "If the email exists, a password reset link has been sent"


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    role: Literal["advertiser", "subscriber"]
    phone: Optional[str] = None
    company_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=6)


class AuthResponse(BaseModel):
    message: Optional[str] = None
    token: str
    user: UserResponse


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    """Register a new advertiser or subscriber"""
    user, token = auth_service.register(
        db,
        name=data.name,
        email=data.email,
        password=data.password,
        role=data.role,
        phone=data.phone,
        company_name=data.company_name,
    )
    audit_service.record(db, "user.registered", user.id, request, role=user.role)

    # Mail goes out after the response; a mail outage must not fail registration
    background_tasks.add_task(
        email_service.send_verification_email, user.email, user.name, user.verification_token
    )

    return {
        "message": "User registered successfully. Please check your email for verification.",
        "token": token,
        "user": UserResponse.model_validate(user),
    }


@router.post("/login", response_model=AuthResponse)
async def login(data: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """Login and get a session token"""
    try:
        user, token = auth_service.authenticate(db, data.email, data.password)
    except Unauthenticated:
        audit_service.record(db, "user.login_failed", None, request, email=data.email.lower())
        raise

    audit_service.record(db, "user.login", user.id, request)
    return {"token": token, "user": UserResponse.model_validate(user)}


@router.get("/verify/{token}")
async def verify_email(token: str, db: Session = Depends(get_db)):
    """Verify an email address with the token from the verification email"""
    auth_service.verify_email(db, token)
    return {"message": "Email verified successfully"}


@router.post("/forgot-password")
async def forgot_password(
    data: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    """Request a password reset link"""
    result = auth_service.request_password_reset(db, data.email)
    if result is not None:
        user, reset_token = result
        background_tasks.add_task(
            email_service.send_password_reset_email, user.email, user.name, reset_token
        )
    return {"message": FORGOT_PASSWORD_MESSAGE}


@router.post("/reset-password")
async def reset_password(data: ResetPasswordRequest, request: Request, db: Session = Depends(get_db)):
    """Set a new password with a single-use reset token"""
    user = auth_service.reset_password(db, data.token, data.password)
    audit_service.record(db, "user.password_reset", user.id, request)
    return {"message": "Password reset successfully"}


@router.get("/me")
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current user information"""
    return {"user": UserResponse.model_validate(current_user)}
