"""
Authentication API endpoints.

This module provides endpoints for:
- Password login (JWT access token + database refresh token)
- Token refresh (with rotation)
- Logout (revoke one refresh token) and logout from all devices
- Current user information
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.auth import (
    AuthorizationProviderDep,
    ClientIp,
    CurrentAuthorization,
    CurrentUser,
    CurrentUserId,
)
from app.core.logging import get_logger
from app.core.unit_of_work import UnitOfWorkDep
from app.schemas.auth import (
    CurrentUserResponse,
    LoginRequest,
    LogoutAllResponse,
    LogoutRequest,
    RefreshRequest,
    TokenResponse,
)
from app.schemas.response import ApiResponse, error_response
from app.services.auth import login_with_password
from app.services.token_management import AuthTokens, TokenManagementService

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def get_token_service(
    uow: UnitOfWorkDep, provider: AuthorizationProviderDep
) -> TokenManagementService:
    return TokenManagementService(uow, provider)


TokenServiceDep = Annotated[TokenManagementService, Depends(get_token_service)]


def _token_response(tokens: AuthTokens) -> TokenResponse:
    return TokenResponse(
        access_token=tokens.access_token,
        access_token_expires_at=tokens.access_token_expires_at,
        refresh_token=tokens.refresh_token,
        refresh_token_expires_at=tokens.refresh_token_expires_at,
    )


@router.post("/login/password", response_model=ApiResponse[TokenResponse])
async def login(
    credentials: LoginRequest,
    uow: UnitOfWorkDep,
    tokens: TokenServiceDep,
    ip_address: ClientIp,
) -> ApiResponse[TokenResponse] | JSONResponse:
    """
    Authenticate with email and password.

    Failed attempts count towards the lockout; a successful login resets
    the counter and records the sign-in.
    """
    result = await login_with_password(
        uow,
        tokens,
        email=credentials.email,
        password=credentials.password,
        remember_me=credentials.remember_me,
        ip_address=ip_address,
    )
    if isinstance(result, list):
        return error_response(result, "Login failed")
    return ApiResponse.success(_token_response(result), "Login successful")


@router.post("/refresh", response_model=ApiResponse[TokenResponse])
async def refresh_token(
    request_data: RefreshRequest,
    tokens: TokenServiceDep,
    ip_address: ClientIp,
) -> ApiResponse[TokenResponse] | JSONResponse:
    """
    Exchange a refresh token for a new token pair.

    The presented token is revoked and replaced in one transaction; presenting
    it again afterwards fails with RefreshToken.Revoked.
    """
    result = await tokens.refresh(request_data.refresh_token, ip_address)
    if isinstance(result, list):
        return error_response(result, "Token refresh failed")
    return ApiResponse.success(_token_response(result), "Token refreshed")


@router.post("/logout", response_model=ApiResponse[None])
async def logout(
    request_data: LogoutRequest,
    user_id: CurrentUserId,
    tokens: TokenServiceDep,
    ip_address: ClientIp,
) -> ApiResponse[None] | JSONResponse:
    """Revoke one refresh token of the caller."""
    result = await tokens.logout(user_id, request_data.refresh_token, ip_address)
    if isinstance(result, list):
        return error_response(result, "Logout failed")
    logger.info("user_logged_out", user_id=user_id)
    return ApiResponse.success_without_data("Successfully logged out")


@router.post("/logout-all", response_model=ApiResponse[LogoutAllResponse])
async def logout_all_devices(
    user_id: CurrentUserId,
    tokens: TokenServiceDep,
    ip_address: ClientIp,
) -> ApiResponse[LogoutAllResponse] | JSONResponse:
    """Revoke every active refresh token of the caller."""
    result = await tokens.logout_all(user_id, ip_address)
    if isinstance(result, list):
        return error_response(result, "Logout failed")
    return ApiResponse.success(
        LogoutAllResponse(revoked_count=result), "Successfully logged out from all devices"
    )


@router.get("/me", response_model=ApiResponse[CurrentUserResponse])
async def get_current_user_info(
    current_user: CurrentUser,
    authorization: CurrentAuthorization,
) -> ApiResponse[CurrentUserResponse]:
    """Current user with the roles, permissions and policies carried by the cache."""
    assert current_user.id is not None
    return ApiResponse.success(
        CurrentUserResponse(
            user_id=current_user.id,
            user_name=current_user.user_name,
            email=current_user.email,
            first_name=current_user.first_name,
            last_name=current_user.last_name,
            roles=authorization.roles,
            permissions=authorization.permissions,
            policies=authorization.policies,
            last_sign_in_at=current_user.last_sign_in_at,
        )
    )
