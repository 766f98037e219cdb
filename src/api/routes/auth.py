"""Authentication routes (register, verification, login, password flows)."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from api.dependencies import get_credential_service
from api.errors import to_http_exception
from api.models import (
    AuthResponse,
    ChangePasswordRequest,
    EmailRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    UserResponse,
    VerifyEmailRequest,
    VerifyEmailResponse,
)
from api.security import get_current_user_required
from domain.model.user import UserView, normalize_email
from services.credential_service import CredentialService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

FORGOT_PASSWORD_MESSAGE = "If an account exists for this email, a password reset code has been sent."


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, service: CredentialService = Depends(get_credential_service)):
    """Register a new account and send a verification code.

    Returns 201 for a new account and 200 when an unverified signup was refreshed.

    Raises:
        HTTPException: 400 invalid input, 409 email already verified or username taken
    """
    result = service.register(
        username=request.username,
        email=request.email,
        password=request.password,
        confirm_password=request.confirm_password,
    )
    if not result.ok:
        raise to_http_exception(result.error)

    registration = result.value
    if registration.resent:
        body = RegisterResponse(
            message="Email verification resent. Please check your email.",
            user_id=registration.user_id,
        )
        return JSONResponse(status_code=status.HTTP_200_OK, content=body.model_dump())

    return RegisterResponse(
        message="Registration successful. Please check your email for verification.",
        user_id=registration.user_id,
    )


@router.post("/verify-email", response_model=VerifyEmailResponse)
def verify_email(request: VerifyEmailRequest, service: CredentialService = Depends(get_credential_service)):
    result = service.verify_email(email=request.email, code=request.code)
    if not result.ok:
        raise to_http_exception(result.error)
    return VerifyEmailResponse(
        message="Email verified successfully",
        user=UserResponse.from_view(result.value),
    )


@router.post("/resend-verification-code", response_model=MessageResponse)
def resend_verification_code(request: EmailRequest, service: CredentialService = Depends(get_credential_service)):
    result = service.resend_verification_code(email=request.email)
    if not result.ok:
        raise to_http_exception(result.error)
    return MessageResponse(message="Verification code sent. Please check your email.")


@router.post("/login", response_model=AuthResponse)
def login(request: LoginRequest, service: CredentialService = Depends(get_credential_service)):
    """Login user and return a bearer token.

    Raises:
        HTTPException: 401 invalid credentials, 403 email not verified
    """
    result = service.login(email=request.email, password=request.password)
    if not result.ok:
        raise to_http_exception(result.error)

    session = result.value
    return AuthResponse(token=session.token, user=UserResponse.from_view(session.user))


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    request: ChangePasswordRequest,
    current_user: UserView = Depends(get_current_user_required),
    service: CredentialService = Depends(get_credential_service),
):
    """Change the password of the authenticated user.

    Raises:
        HTTPException: 403 if the email does not belong to the bearer
    """
    if normalize_email(request.email) != current_user.email:
        logger.warning("Password change attempted for another account", extra={"userId": current_user.id})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to change this password")

    result = service.change_password(
        email=request.email,
        current_password=request.current_password,
        new_password=request.new_password,
        confirm_password=request.confirm_password,
    )
    if not result.ok:
        raise to_http_exception(result.error)
    return MessageResponse(message="Password changed successfully")


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(request: EmailRequest, service: CredentialService = Depends(get_credential_service)):
    """Start a password reset. The response never reveals whether the email exists."""
    result = service.forgot_password(email=request.email)
    if not result.ok:
        raise to_http_exception(result.error)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(request: ResetPasswordRequest, service: CredentialService = Depends(get_credential_service)):
    result = service.reset_password(
        email=request.email,
        reset_token=request.reset_token,
        new_password=request.new_password,
        confirm_password=request.confirm_password,
    )
    if not result.ok:
        raise to_http_exception(result.error)
    return MessageResponse(message="Password has been reset successfully")


@router.get("/me", response_model=UserResponse)
def get_me(current_user: UserView = Depends(get_current_user_required)):
    """Get current authenticated user info."""
    return UserResponse.from_view(current_user)
