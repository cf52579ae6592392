from fastapi import APIRouter, BackgroundTasks, Request

from starter_api.dependencies import AuthServiceDep, CurrentAuth, CurrentUser, client_info
from starter_api.notifications import send_welcome_email
from starter_api.schemas import (
    APIResponse,
    AuthResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenPairResponse,
    UserResponse,
    success,
)
from starter_api.services.auth_service import AuthResult

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        user=UserResponse.model_validate(result.user),
        tokens=TokenPairResponse.model_validate(result.tokens, from_attributes=True),
    )


@router.post("/register", status_code=201, response_model=APIResponse[AuthResponse])
async def register(
    data: RegisterRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    auth_service: AuthServiceDep,
):
    user_agent, ip_address = client_info(request)
    result = await auth_service.register(data, user_agent, ip_address)
    background_tasks.add_task(
        send_welcome_email, result.user.email, result.user.full_name or result.user.username
    )
    return success(_auth_response(result), "User registered successfully")


@router.post("/login", response_model=APIResponse[AuthResponse])
async def login(data: LoginRequest, request: Request, auth_service: AuthServiceDep):
    user_agent, ip_address = client_info(request)
    result = await auth_service.login(data, user_agent, ip_address)
    return success(_auth_response(result), "Login successful")


@router.post("/refresh", response_model=APIResponse[TokenPairResponse])
async def refresh(data: RefreshRequest, auth_service: AuthServiceDep):
    tokens = await auth_service.refresh_token(data.refresh_token)
    return success(
        TokenPairResponse.model_validate(tokens, from_attributes=True), "Token refreshed"
    )


@router.post("/logout", response_model=APIResponse[None])
async def logout(auth: CurrentAuth, auth_service: AuthServiceDep):
    await auth_service.logout(auth.session, auth.claims)
    return success(message="Logged out")


@router.post("/logout-all", response_model=APIResponse[dict])
async def logout_all(user: CurrentUser, auth_service: AuthServiceDep):
    removed = await auth_service.logout_all(user.id)
    return success({"sessions_revoked": removed}, "Logged out of all sessions")


@router.get("/me", response_model=APIResponse[UserResponse])
async def me(user: CurrentUser):
    return success(UserResponse.model_validate(user))
