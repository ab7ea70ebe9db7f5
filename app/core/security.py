# ------------------------------------------
# Request-level security dependencies (FastAPI)
# - get_current_claims(): validates the access token from the configured
#   channel (bearer header or cookie) into typed AccessClaims
# - require(): turns an authorization requirement into a 403 gate
# - get_client_ip(): caller address used for refresh-token audit fields,
#   X-Forwarded-For honoured only from TRUSTED_PROXIES
# ------------------------------------------

import logging
from typing import Callable, Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.authorization import (
    OwnershipRequirement,
    PermissionRequirement,
    Requirement,
    RoleRequirement,
    evaluate,
)
from app.core.config import Settings, get_settings
from app.core.tokens import AccessClaims, TokenSigner

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_token_signer(settings: Settings = Depends(get_settings)) -> TokenSigner:
    return TokenSigner(settings)


def get_client_ip(request: Request, settings: Settings) -> str:
    peer = request.client.host if request.client and request.client.host else None
    # X-Forwarded-For is client-controlled unless a trusted proxy set it
    if peer and peer in settings.trusted_proxies:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip() or peer
    return peer or "Unknown"


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized access",
        headers={"WWW-Authenticate": "Bearer"},
    )


def extract_access_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
    settings: Settings,
) -> Optional[str]:
    if settings.access_token_transport == "cookie":
        return request.cookies.get(settings.access_cookie_name)
    if credentials and credentials.scheme.lower() == "bearer":
        return credentials.credentials
    return None


def get_current_claims(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
    signer: TokenSigner = Depends(get_token_signer),
) -> AccessClaims:
    token = extract_access_token(request, credentials, settings)
    if not token:
        raise _unauthorized()

    claims = signer.validate(token)
    if claims is None:
        raise _unauthorized()
    return claims


def authorize(claims: AccessClaims, requirement: Requirement) -> None:
    decision = evaluate(claims, requirement)
    if not decision:
        logger.warning(f"Access denied for user {claims.subject}: {decision.reason}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


def require(requirement: Requirement) -> Callable[..., AccessClaims]:
    """Dependency factory for requirements known at route declaration time."""

    def dependency(claims: AccessClaims = Depends(get_current_claims)) -> AccessClaims:
        authorize(claims, requirement)
        return claims

    return dependency


def require_roles(*roles) -> Callable[..., AccessClaims]:
    return require(RoleRequirement.any_of(*roles))


def require_permission(permission: str) -> Callable[..., AccessClaims]:
    return require(PermissionRequirement(permission))


def require_owner_or_admin(owner_id: str, claims: AccessClaims) -> None:
    authorize(claims, OwnershipRequirement(owner_id))
