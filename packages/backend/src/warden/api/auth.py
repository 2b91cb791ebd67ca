"""Auth API — login, registration, admin check, account confirmation.

Routes:
- POST /auth/login → email/password/app_id → session token
- POST /auth/register → create a user, confirmation code goes out by email
- GET /users/:id/is-admin → admin flag
- POST /auth/verify-email → check the emailed code
- POST /auth/resend-confirmation → send a fresh code

Domain errors are mapped here. Store and signing failures are left to
the app-wide handlers in main.py (500, no details).
"""

from fastapi import APIRouter, Depends, HTTPException, Path

from warden.api.deps import get_auth_service
from warden.domain.models import VerificationResult
from warden.errors import (
    DeliveryError,
    InvalidAppIdError,
    InvalidCredentialsError,
    UserExistsError,
    UserNotFoundError,
)
from warden.schemas.auth import (
    IsAdminResponse,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    ResendConfirmationRequest,
    ResendConfirmationResponse,
    VerifyEmailRequest,
    VerifyEmailResponse,
)
from warden.services.auth import AuthService

router = APIRouter()


# ─── Login ───────────────────────────────────────────────


@router.post("/auth/login", response_model=LoginResponse)
async def login(body: LoginRequest, svc: AuthService = Depends(get_auth_service)):
    """Login with email and password → token for one app."""
    try:
        token = await svc.login(body.email, body.password, body.app_id)
    except InvalidCredentialsError:
        raise HTTPException(status_code=401, detail="invalid credentials")
    except InvalidAppIdError:
        raise HTTPException(status_code=400, detail="invalid app id")
    return LoginResponse(token=token)


# ─── Register ────────────────────────────────────────────


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
async def register(body: RegisterRequest, svc: AuthService = Depends(get_auth_service)):
    """Create a new user account."""
    try:
        user_id = await svc.register_new_user(
            email=body.email,
            password=body.password,
            date_of_birth=body.date_of_birth,
            full_name=body.full_name,
            phone_number=body.phone_number,
            telegram_name=body.telegram_name,
        )
    except UserExistsError:
        raise HTTPException(status_code=409, detail="user already exists")
    return RegisterResponse(user_id=user_id)


# ─── Admin ───────────────────────────────────────────────


@router.get("/users/{user_id}/is-admin", response_model=IsAdminResponse)
async def is_admin(
    user_id: int = Path(..., gt=0),
    svc: AuthService = Depends(get_auth_service),
):
    try:
        flag = await svc.is_admin(user_id)
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="user not found")
    return IsAdminResponse(is_admin=flag)


# ─── Confirmation ────────────────────────────────────────


@router.post("/auth/verify-email", response_model=VerifyEmailResponse)
async def verify_email(
    body: VerifyEmailRequest, svc: AuthService = Depends(get_auth_service)
):
    """Check a confirmation code. A wrong code is a 200 with status=mismatch."""
    try:
        result = await svc.verify_confirmation(body.email, body.code)
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="user not found")

    if result is VerificationResult.NOT_FOUND:
        raise HTTPException(status_code=404, detail="confirmation code not found")

    return VerifyEmailResponse(
        status=result.value,
        is_verified=result
        in (VerificationResult.CONFIRMED, VerificationResult.ALREADY_CONFIRMED),
    )


@router.post("/auth/resend-confirmation", response_model=ResendConfirmationResponse)
async def resend_confirmation(
    body: ResendConfirmationRequest, svc: AuthService = Depends(get_auth_service)
):
    """Send a fresh confirmation code to the registered email."""
    try:
        outcome = await svc.resend_confirmation(body.email)
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="user not found")
    except DeliveryError:
        raise HTTPException(status_code=502, detail="confirmation email could not be sent")
    return ResendConfirmationResponse(status=outcome.value)
