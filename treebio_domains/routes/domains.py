"""Custom domain API routes."""

import logging
from typing import NoReturn
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from treebio_domains.dependencies import get_current_owner, get_domain_manager
from treebio_domains.models.domain import VerificationMethod
from treebio_domains.schemas.common import ErrorResponse, raise_api_error
from treebio_domains.schemas.domain import (
    AddDomainRequest,
    DomainAddResponse,
    DomainHealth,
    DomainItem,
    DomainListResponse,
    DomainQuotaResponse,
    DomainRecordsResponse,
    DomainResolveResponse,
    DomainToggleResponse,
    DomainVerifyResponse,
    ToggleDomainRequest,
)
from treebio_domains.services.domain_service import DomainLifecycleManager
from treebio_domains.services.exceptions import (
    DomainAlreadyRegisteredError,
    DomainConflictError,
    DomainError,
    DomainForbiddenError,
    DomainNotFoundError,
    DomainNotVerifiedError,
    DomainQuotaExceededError,
    InvalidDomainFormatError,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
        status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    },
)

ERROR_STATUS = {
    InvalidDomainFormatError: status.HTTP_400_BAD_REQUEST,
    DomainQuotaExceededError: status.HTTP_400_BAD_REQUEST,
    DomainNotVerifiedError: status.HTTP_400_BAD_REQUEST,
    DomainForbiddenError: status.HTTP_403_FORBIDDEN,
    DomainNotFoundError: status.HTTP_404_NOT_FOUND,
    DomainAlreadyRegisteredError: status.HTTP_409_CONFLICT,
    DomainConflictError: status.HTTP_409_CONFLICT,
}


def _raise_domain_error(e: DomainError) -> NoReturn:
    """Translate a lifecycle error into the standard API error envelope."""
    details = None
    if isinstance(e, DomainQuotaExceededError):
        details = {"current": e.current, "limit": e.limit}

    raise_api_error(
        code=e.code,
        message=e.message,
        status_code=ERROR_STATUS.get(type(e), status.HTTP_400_BAD_REQUEST),
        details=details,
    )


@router.get("/domains", response_model=DomainListResponse)
async def list_domains(
    owner_id: str = Depends(get_current_owner),
    manager: DomainLifecycleManager = Depends(get_domain_manager),
) -> DomainListResponse:
    """
    List the caller's custom domains, newest first.
    """
    domains = await manager.list_domains(owner_id)

    return DomainListResponse(
        items=[DomainItem.model_validate(d) for d in domains],
        total=len(domains),
    )


@router.post(
    "/domains",
    response_model=DomainAddResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_domain(
    request: AddDomainRequest,
    owner_id: str = Depends(get_current_owner),
    manager: DomainLifecycleManager = Depends(get_domain_manager),
) -> DomainAddResponse:
    """
    Attach a custom domain to the caller's profile.

    The domain starts unverified and inactive. The response carries the
    exact records to publish.

    **Request Body:**
    ```json
    { "domain": "blog.example.com", "verification_method": "DNS" }
    ```

    **DNS Records Required (DNS method):**
    1. TXT record at `_treebio-verification.blog.example.com` with the token
    2. CNAME record `blog.example.com` → platform host

    **Error Codes:**
    - `INVALID_FORMAT` (400): Not a valid domain name
    - `QUOTA_EXCEEDED` (400): Caller is at the domain limit
    - `ALREADY_REGISTERED` (409): Domain is claimed by some account
    """
    try:
        domain = await manager.add_domain(owner_id, request.domain, request.verification_method)
    except DomainError as e:
        logger.info(f"Rejected domain {request.domain} for {owner_id}: {e.code}")
        _raise_domain_error(e)

    if domain.verification_method == VerificationMethod.FILE:
        message = "Domain added. Serve the verification file, then verify ownership."
    else:
        message = "Domain added. Configure the DNS records below, then verify ownership."

    return DomainAddResponse(
        domain=DomainItem.model_validate(domain),
        dns_records=manager.get_dns_records(domain),
        verification_file=manager.get_verification_file(domain),
        message=message,
    )


@router.get("/domains/quota", response_model=DomainQuotaResponse)
async def check_quota(
    owner_id: str = Depends(get_current_owner),
    manager: DomainLifecycleManager = Depends(get_domain_manager),
) -> DomainQuotaResponse:
    """
    Report whether the caller may add another domain.
    """
    return await manager.can_add_domain(owner_id)


@router.get("/domains/resolve/{hostname}", response_model=DomainResolveResponse)
async def resolve_domain(
    hostname: str,
    manager: DomainLifecycleManager = Depends(get_domain_manager),
) -> DomainResolveResponse:
    """
    Look up the profile owner serving `hostname`.

    Used by routing layers; only verified and active domains resolve.
    """
    record = await manager.resolve_active_domain(hostname)

    if record is None:
        raise_api_error(
            code="NOT_FOUND",
            message=f"No active domain for {hostname}",
            status_code=status.HTTP_404_NOT_FOUND,
        )

    return DomainResolveResponse(
        domain=record.domain,
        domain_id=record.id,
        owner_id=record.owner_id,
    )


@router.get("/domains/{domain_id}/records", response_model=DomainRecordsResponse)
async def get_domain_records(
    domain_id: UUID,
    owner_id: str = Depends(get_current_owner),
    manager: DomainLifecycleManager = Depends(get_domain_manager),
) -> DomainRecordsResponse:
    """
    Get the DNS records and verification file expected for a domain.
    """
    try:
        record = await manager.get_owned_domain(owner_id, domain_id)
    except DomainError as e:
        _raise_domain_error(e)

    return DomainRecordsResponse(
        domain=record.domain,
        dns_records=manager.get_dns_records(record),
        verification_file=manager.get_verification_file(record),
    )


@router.post("/domains/{domain_id}/verify", response_model=DomainVerifyResponse)
async def verify_domain(
    domain_id: UUID,
    owner_id: str = Depends(get_current_owner),
    manager: DomainLifecycleManager = Depends(get_domain_manager),
) -> DomainVerifyResponse:
    """
    Check the ownership proof for a domain.

    A failed check is not an error: the response has `is_verified: false`,
    `error_code: VERIFICATION_FAILED`, the diagnostics, and the exact
    records to publish. Retry once DNS has propagated.
    """
    try:
        result = await manager.verify_domain(domain_id, owner_id=owner_id)
    except DomainError as e:
        _raise_domain_error(e)

    if result.is_verified:
        message = "Domain verified successfully!"
    else:
        message = "Domain verification failed. Please check your DNS settings."

    return DomainVerifyResponse(**result.model_dump(), message=message)


@router.patch("/domains/{domain_id}", response_model=DomainToggleResponse)
async def toggle_domain(
    domain_id: UUID,
    request: ToggleDomainRequest,
    owner_id: str = Depends(get_current_owner),
    manager: DomainLifecycleManager = Depends(get_domain_manager),
) -> DomainToggleResponse:
    """
    Switch a verified domain between active and inactive.

    **Request Body:**
    ```json
    { "action": "toggle" }
    ```

    **Error Codes:**
    - `NOT_VERIFIED` (400): Domain has not been verified yet
    - `FORBIDDEN` (403): Caller does not own the domain
    - `CONFLICT` (409): Domain changed concurrently, retry
    """
    try:
        domain = await manager.toggle_domain_status(owner_id, domain_id)
    except DomainError as e:
        _raise_domain_error(e)

    state = "activated" if domain.is_active else "deactivated"
    return DomainToggleResponse(
        domain=DomainItem.model_validate(domain),
        message=f"Domain {state} successfully",
    )


@router.delete("/domains/{domain_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_domain(
    domain_id: UUID,
    owner_id: str = Depends(get_current_owner),
    manager: DomainLifecycleManager = Depends(get_domain_manager),
) -> Response:
    """
    Permanently remove a domain. There is no recovery.

    **Response:**
    - 204 No Content: Domain removed
    - 403 Forbidden: Caller does not own the domain
    - 404 Not Found: Unknown domain id
    """
    try:
        await manager.remove_domain(owner_id, domain_id)
    except DomainError as e:
        _raise_domain_error(e)

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/domains/{domain_id}/health", response_model=DomainHealth)
async def get_domain_health(
    domain_id: UUID,
    owner_id: str = Depends(get_current_owner),
    manager: DomainLifecycleManager = Depends(get_domain_manager),
) -> DomainHealth:
    """
    Probe whether the domain currently answers over HTTPS.

    Unreachable domains are reported with `is_accessible: false`; this
    endpoint never changes verification state.
    """
    try:
        record = await manager.get_owned_domain(owner_id, domain_id)
    except DomainError as e:
        _raise_domain_error(e)

    return await manager.get_domain_health(record.domain)
