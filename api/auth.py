# ------------------------------------------
# Authentication API routes (FastAPI)
# - /auth/register        : creates a user, returns access token, sets refresh cookie
# - /auth/login           : authenticates, returns access token, sets refresh cookie
# - /auth/refresh-token   : rotates the refresh cookie, returns a new access token
# - /auth/revoke-token    : revokes a refresh token from body or cookie
# - /auth/logout          : revokes every refresh token of the caller
# - /auth/me              : current user profile
# - /auth/change-password : changes the caller's password
# ------------------------------------------

from typing import Optional
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.errors import AuthErrorKind, ServiceError, status_for
from app.core.security import get_client_ip, get_current_claims
from app.core.tokens import AccessClaims
from app.db.database import get_db
from app.schemas.user import (
    AuthResponse, ChangePasswordRequest, LoginRequest, MessageResponse,
    RegisterRequest, RevokeTokenRequest, UserDataResponse, UserInfoResponse,
)
from app.services.auth_service import AuthResult, AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])


def get_auth_service(db: Session = Depends(get_db), settings: Settings = Depends(get_settings)) -> AuthService:
    return AuthService(db, settings)


def _set_refresh_cookie(response: Response, result: AuthResult, settings: Settings):
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=result.refresh_token,
        max_age=settings.refresh_token_expire_days * 24 * 60 * 60,
        expires=result.refresh_expires_at,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
    )
    if settings.access_token_transport == "cookie":
        response.set_cookie(
            key=settings.access_cookie_name,
            value=result.access_token,
            max_age=settings.access_token_expire_minutes * 60,
            httponly=True,
            secure=settings.cookie_secure,
            samesite="strict",
        )


def _clear_auth_cookies(response: Response, settings: Settings):
    response.delete_cookie(settings.refresh_cookie_name, httponly=True, secure=settings.cookie_secure, samesite="strict")
    if settings.access_token_transport == "cookie":
        response.delete_cookie(settings.access_cookie_name, httponly=True, secure=settings.cookie_secure, samesite="strict")


def _auth_response(result: AuthResult, response: Response, settings: Settings) -> AuthResponse:
    if not result.success:
        response.status_code = status_for(result.error_kind)
        return AuthResponse(success=False, message=result.message, errors=result.errors)

    _set_refresh_cookie(response, result, settings)
    return AuthResponse(
        success=True,
        message=result.message,
        accessToken=result.access_token,
        expiresAt=result.expires_at,
        user=UserInfoResponse.from_info(result.user) if result.user else None,
    )


@router.post("/register", response_model=AuthResponse, response_model_exclude_none=True)
def register(
    payload: RegisterRequest,
    request: Request,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    result = auth.register(payload.email, payload.password, payload.firstName, payload.lastName, get_client_ip(request, settings))
    return _auth_response(result, response, settings)


@router.post("/login", response_model=AuthResponse, response_model_exclude_none=True)
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    result = auth.login(payload.email, payload.password, get_client_ip(request, settings))
    return _auth_response(result, response, settings)


@router.post("/refresh-token", response_model=AuthResponse, response_model_exclude_none=True)
def refresh_token(
    request: Request,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    token = request.cookies.get(settings.refresh_cookie_name)
    if not token:
        response.status_code = status.HTTP_400_BAD_REQUEST
        return AuthResponse(success=False, message="Refresh token is required", errors=[])

    result = auth.refresh(token, get_client_ip(request, settings))
    auth_response = _auth_response(result, response, settings)
    # the refresh endpoint does not echo the profile
    auth_response.user = None
    return auth_response


@router.post("/revoke-token", response_model=MessageResponse, response_model_exclude_none=True)
def revoke_token(
    request: Request,
    response: Response,
    payload: Optional[RevokeTokenRequest] = None,
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    token = (payload.refreshToken if payload else None) or request.cookies.get(settings.refresh_cookie_name)
    if not token:
        response.status_code = status.HTTP_400_BAD_REQUEST
        return MessageResponse(success=False, message="Token is required")

    if auth.revoke(token, get_client_ip(request, settings)):
        return MessageResponse(success=True, message="Token revoked successfully")

    response.status_code = status.HTTP_400_BAD_REQUEST
    return MessageResponse(success=False, message="Failed to revoke token")


@router.post("/logout", response_model=MessageResponse, response_model_exclude_none=True)
def logout(
    response: Response,
    claims: AccessClaims = Depends(get_current_claims),
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    if auth.logout(claims.subject):
        _clear_auth_cookies(response, settings)
        return MessageResponse(success=True, message="Logged out successfully")

    response.status_code = status.HTTP_400_BAD_REQUEST
    return MessageResponse(success=False, message="Failed to logout")


@router.get("/me", response_model=UserDataResponse, response_model_exclude_none=True)
def me(
    claims: AccessClaims = Depends(get_current_claims),
    auth: AuthService = Depends(get_auth_service),
):
    info = auth.get_user_info(claims.subject)
    if info is None:
        raise ServiceError(AuthErrorKind.not_found, "User not found")
    return UserDataResponse(success=True, data=UserInfoResponse.from_info(info))


@router.post("/change-password", response_model=MessageResponse, response_model_exclude_none=True)
def change_password(
    payload: ChangePasswordRequest,
    response: Response,
    claims: AccessClaims = Depends(get_current_claims),
    auth: AuthService = Depends(get_auth_service),
):
    result = auth.change_password(claims.subject, payload.currentPassword, payload.newPassword)
    if result.success:
        return MessageResponse(success=True, message=result.message)

    response.status_code = status_for(result.error_kind)
    return MessageResponse(success=False, message=result.message, errors=result.errors)
