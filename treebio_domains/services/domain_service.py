"""Custom domain lifecycle management.

State machine owned here:

    {verified: no, active: no} --verify ok--> {verified: yes, active: yes}
    {verified: yes, active: *} --toggle----> {verified: yes, active: !active}
    any state --------------------remove---> (deleted)

A domain never goes back to unverified, and can only be active once
verified. All mutations require the caller to own the record.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from treebio_domains.config import settings
from treebio_domains.models.domain import CustomDomain, VerificationMethod
from treebio_domains.schemas.domain import (
    DnsRecord,
    DomainHealth,
    DomainQuotaResponse,
    VerificationFile,
    VerificationResult,
)
from treebio_domains.services.domain_store import DomainStore
from treebio_domains.services.exceptions import (
    DomainAlreadyRegisteredError,
    DomainConflictError,
    DomainForbiddenError,
    DomainNotFoundError,
    DomainNotVerifiedError,
    DomainQuotaExceededError,
    InvalidDomainFormatError,
)
from treebio_domains.services.health_service import HealthProber, probe_domain_health
from treebio_domains.services.verification_checker import VerificationChecker
from treebio_domains.utils.domain_validator import normalize_domain, validate_domain
from treebio_domains.utils.token_generator import generate_verification_token

logger = logging.getLogger(__name__)

VERIFICATION_FAILED = "VERIFICATION_FAILED"


class DomainLifecycleManager:
    """
    Orchestrates registration, verification and activation of custom domains.

    The checker is injected so state transitions can be exercised with a
    deterministic fake instead of real DNS/HTTP.
    """

    def __init__(
        self,
        store: DomainStore,
        checker: VerificationChecker,
        quota: int = settings.DOMAIN_QUOTA,
        health_timeout: float = settings.HEALTH_CHECK_TIMEOUT_SECONDS,
        platform_host: str = settings.PLATFORM_HOST,
        record_ttl: int = settings.DNS_RECORD_TTL,
        prober: HealthProber | None = None,
    ) -> None:
        self.store = store
        self.checker = checker
        self.quota = quota
        self.health_timeout = health_timeout
        self.platform_host = platform_host
        self.record_ttl = record_ttl
        self.prober = prober

    async def add_domain(
        self,
        owner_id: str,
        raw_domain: str,
        verification_method: VerificationMethod = VerificationMethod.DNS,
    ) -> CustomDomain:
        """
        Register a domain for `owner_id` in the unverified, inactive state.

        Args:
            owner_id: Authenticated caller identity
            raw_domain: Domain as typed by the user
            verification_method: Ownership proof method, fixed for the record's life

        Returns:
            Created record

        Raises:
            InvalidDomainFormatError: Domain is not a valid FQDN
            DomainAlreadyRegisteredError: Any owner already holds the domain
            DomainQuotaExceededError: Owner is at the domain limit
        """
        domain = normalize_domain(raw_domain)
        is_valid, error_msg = validate_domain(domain)
        if not is_valid:
            raise InvalidDomainFormatError(f"Invalid domain format: {error_msg}")

        if await self.store.find_by_domain(domain):
            raise DomainAlreadyRegisteredError(f"Domain {domain} is already registered")

        # Held until commit; a concurrent add for this owner waits here
        await self.store.lock_owner(owner_id)

        current = await self.store.count_by_owner(owner_id)
        if current >= self.quota:
            raise DomainQuotaExceededError(
                f"Domain limit reached. You can have maximum {self.quota} domains.",
                current=current,
                limit=self.quota,
            )

        record = await self.store.create(
            owner_id=owner_id,
            domain=domain,
            verification_method=verification_method,
            verification_token=generate_verification_token(),
        )

        logger.info(f"Domain {domain} added for owner {owner_id} ({verification_method.value})")
        return record

    async def list_domains(self, owner_id: str) -> list[CustomDomain]:
        """All domains of `owner_id`, newest first."""
        return await self.store.find_all_by_owner(owner_id)

    async def get_owned_domain(self, owner_id: str, domain_id: UUID) -> CustomDomain:
        """
        Load a record and check that `owner_id` owns it.

        Raises:
            DomainNotFoundError: No such record
            DomainForbiddenError: Record belongs to someone else
        """
        record = await self.store.find_by_id(domain_id)
        if record is None:
            raise DomainNotFoundError(f"Domain {domain_id} not found")
        if record.owner_id != owner_id:
            logger.warning(f"Owner {owner_id} denied access to domain {domain_id}")
            raise DomainForbiddenError("You do not own this domain")
        return record

    async def verify_domain(
        self,
        domain_id: UUID,
        owner_id: str | None = None,
    ) -> VerificationResult:
        """
        Check ownership proof and mark the domain verified and active on success.

        Failure is a normal, retryable outcome returned in the result, never
        raised. Calling again after success is a no-op that re-confirms the
        verified state without re-activating a domain the owner switched off.

        Args:
            domain_id: Record id
            owner_id: If given, the caller must own the record

        Raises:
            DomainNotFoundError: No such record
            DomainForbiddenError: owner_id given and does not match
        """
        if owner_id is not None:
            record = await self.get_owned_domain(owner_id, domain_id)
        else:
            record = await self.store.find_by_id(domain_id)
            if record is None:
                raise DomainNotFoundError(f"Domain {domain_id} not found")

        method = record.verification_method
        outcome = await self.checker.check(record.domain, method, record.verification_token)

        if not outcome.passed:
            logger.info(f"Verification failed for {record.domain}: {outcome.diagnostics}")
            return VerificationResult(
                domain_id=record.id,
                domain=record.domain,
                is_verified=False,
                method=method,
                error_code=VERIFICATION_FAILED,
                errors=outcome.diagnostics or ["Domain verification failed"],
                records=self.get_dns_records(record),
                verification_file=self.get_verification_file(record),
            )

        if not record.is_verified:
            now = datetime.now(timezone.utc)
            updated = await self.store.update(
                record.id,
                {"is_verified": True, "is_active": True, "verified_at": now},
                expected={"is_verified": False},
            )
            if updated is not None:
                logger.info(f"Domain {record.domain} verified via {method.value}")
            # No row matched: a concurrent request verified it or it was removed
            elif await self.store.find_by_id(record.id) is None:
                raise DomainNotFoundError(f"Domain {domain_id} not found")

        return VerificationResult(
            domain_id=record.id,
            domain=record.domain,
            is_verified=True,
            method=method,
        )

    async def toggle_domain_status(self, owner_id: str, domain_id: UUID) -> CustomDomain:
        """
        Flip the active flag of a verified domain.

        Raises:
            DomainNotFoundError: No such record
            DomainForbiddenError: Caller does not own it
            DomainNotVerifiedError: Domain was never verified
            DomainConflictError: Record changed concurrently
        """
        record = await self.get_owned_domain(owner_id, domain_id)

        if not record.is_verified and not record.is_active:
            raise DomainNotVerifiedError("Domain must be verified before activating")

        new_active = not record.is_active
        expected = {"owner_id": owner_id, "is_active": record.is_active}
        if new_active:
            expected["is_verified"] = True

        updated = await self.store.update(record.id, {"is_active": new_active}, expected=expected)
        if updated is None:
            if await self.store.find_by_id(record.id) is None:
                raise DomainNotFoundError(f"Domain {domain_id} not found")
            raise DomainConflictError("Domain was modified by another request, please retry")

        logger.info(
            f"Domain {updated.domain} {'activated' if updated.is_active else 'deactivated'}"
        )
        return updated

    async def remove_domain(self, owner_id: str, domain_id: UUID) -> None:
        """
        Permanently delete a domain owned by `owner_id`.

        Raises:
            DomainNotFoundError: No such record
            DomainForbiddenError: Caller does not own it
        """
        record = await self.get_owned_domain(owner_id, domain_id)

        removed = await self.store.delete(record.id, owner_id=owner_id)
        if not removed:
            raise DomainNotFoundError(f"Domain {domain_id} not found")

        logger.info(f"Domain {record.domain} removed by owner {owner_id}")

    async def can_add_domain(self, owner_id: str) -> DomainQuotaResponse:
        """Whether `owner_id` is below the domain quota."""
        current = await self.store.count_by_owner(owner_id)
        return DomainQuotaResponse(
            can_add=current < self.quota,
            current=current,
            limit=self.quota,
        )

    async def get_domain_health(self, domain: str) -> DomainHealth:
        """
        Reachability of `domain`, never touching its record.

        Serves the background prober's result while it is fresh, and probes
        directly otherwise.
        """
        domain = normalize_domain(domain)
        if self.prober is not None:
            cached = self.prober.cached(domain)
            if cached is not None:
                return cached
        return await probe_domain_health(domain, timeout=self.health_timeout)

    async def resolve_active_domain(self, hostname: str) -> CustomDomain | None:
        """
        Map an incoming host to its record, for routing layers.

        Returns:
            The record if it is verified and active, None otherwise
        """
        record = await self.store.find_by_domain(normalize_domain(hostname))
        if record is None or not (record.is_verified and record.is_active):
            return None
        return record

    def get_dns_records(self, record: CustomDomain) -> list[DnsRecord]:
        """
        DNS records the owner must publish.

        Returns:
            TXT ownership record and CNAME routing record
        """
        return [
            DnsRecord(
                type="TXT",
                name=self.checker.txt_record_name(record.domain),
                value=record.verification_token,
                ttl=self.record_ttl,
            ),
            DnsRecord(
                type="CNAME",
                name=record.domain,
                value=self.platform_host,
                ttl=self.record_ttl,
            ),
        ]

    def get_verification_file(self, record: CustomDomain) -> VerificationFile:
        """Exact URL and body for the FILE method."""
        return VerificationFile(
            url=self.checker.file_url(record.domain),
            content=record.verification_token,
        )
