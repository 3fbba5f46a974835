"""Shared FastAPI dependencies."""

import logging

import jwt
from fastapi import Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from treebio_domains.config import settings
from treebio_domains.database import get_session
from treebio_domains.schemas.common import raise_api_error
from treebio_domains.services.domain_service import DomainLifecycleManager
from treebio_domains.services.domain_store import DomainStore
from treebio_domains.services.health_service import HealthProber
from treebio_domains.services.verification_checker import (
    VerificationChecker,
    verification_checker,
)

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_current_owner(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """
    Resolve the caller identity from the identity provider's bearer JWT.

    Returns:
        The token's `sub` claim, used as the domain owner id
    """
    if credentials is None:
        raise_api_error(
            code="UNAUTHORIZED",
            message="Missing bearer token",
            status_code=status.HTTP_401_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
        )
    except jwt.ExpiredSignatureError:
        logger.warning("Caller token expired")
        raise_api_error(
            code="UNAUTHORIZED",
            message="Token expired",
            status_code=status.HTTP_401_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid caller token: {e}")
        raise_api_error(
            code="UNAUTHORIZED",
            message="Invalid token",
            status_code=status.HTTP_401_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )

    owner_id = payload.get("sub")
    if not owner_id:
        raise_api_error(
            code="UNAUTHORIZED",
            message="Token has no subject",
            status_code=status.HTTP_401_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return str(owner_id)


def get_verification_checker() -> VerificationChecker:
    """Process-wide verification checker."""
    return verification_checker


def get_health_prober(request: Request) -> HealthProber | None:
    """Background prober started by the app lifespan, if enabled."""
    return getattr(request.app.state, "health_prober", None)


def get_domain_manager(
    db: AsyncSession = Depends(get_session),
    checker: VerificationChecker = Depends(get_verification_checker),
    prober: HealthProber | None = Depends(get_health_prober),
) -> DomainLifecycleManager:
    """Request-scoped lifecycle manager bound to the request's session."""
    return DomainLifecycleManager(store=DomainStore(db), checker=checker, prober=prober)
