"""Ownership proof checks for custom domains.

Two methods are supported:
1. DNS: a TXT record at _treebio-verification.<domain> holding the token
2. FILE: https://<domain>/.well-known/treebio-verification.txt serving the token

Example DNS setup required by the owner:
    _treebio-verification.blog.example.com  TXT  "treebio-verify-3f9a..."

A failed check is a normal outcome during DNS propagation, so every network
or resolver failure is reported as a diagnostic rather than raised.
"""

import asyncio
import logging
from dataclasses import dataclass, field

import aiodns
import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from treebio_domains.config import settings
from treebio_domains.models.domain import VerificationMethod

logger = logging.getLogger(__name__)

TIMEOUT_DIAGNOSTIC = "verification check timed out"


class DnsLookupError(Exception):
    """Resolver failure other than a missing name or record."""

    pass


@dataclass
class FetchResponse:
    """Minimal HTTP response used by the FILE method."""

    status: int
    body: str


@dataclass
class CheckOutcome:
    """Pass/fail verdict of a single ownership check."""

    passed: bool
    diagnostics: list[str] = field(default_factory=list)


class DnsResolver:
    """TXT lookups through aiodns."""

    # Missing name or missing record type both mean "not published yet"
    NOT_FOUND_CODES = (aiodns.error.ARES_ENOTFOUND, aiodns.error.ARES_ENODATA)

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout
        self._resolver: aiodns.DNSResolver | None = None

    def _get_resolver(self) -> aiodns.DNSResolver:
        """Create the resolver lazily so it binds to the running event loop."""
        if self._resolver is None:
            options = {"timeout": self.timeout} if self.timeout else {}
            self._resolver = aiodns.DNSResolver(**options)
        return self._resolver

    async def resolve_txt(self, name: str) -> list[str]:
        """
        Resolve TXT values for `name`.

        Returns:
            List of TXT strings (empty when the name or record does not exist)

        Raises:
            DnsLookupError: On any other resolver failure
        """
        resolver = self._get_resolver()
        try:
            result = await resolver.query(name, "TXT")
        except aiodns.error.DNSError as e:
            code = e.args[0] if e.args else None
            if code in self.NOT_FOUND_CODES:
                return []
            message = e.args[1] if len(e.args) > 1 else str(e)
            raise DnsLookupError(message)

        values = []
        for record in result or []:
            text = record.text
            if isinstance(text, bytes):
                text = text.decode("utf-8", errors="replace")
            values.append(text.strip('"').strip("'"))
        return values


class HttpFetcher:
    """GET requests through httpx, retrying once on connection errors."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.transport = transport

    @retry(
        retry=(
            retry_if_exception_type(httpx.TransportError)
            & retry_if_not_exception_type(httpx.TimeoutException)
        ),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.2, max=1),
        reraise=True,
    )
    async def get(self, url: str, timeout: float) -> FetchResponse:
        async with httpx.AsyncClient(
            transport=self.transport,
            timeout=timeout,
            follow_redirects=True,
        ) as client:
            response = await client.get(url)
            return FetchResponse(status=response.status_code, body=response.text)


class VerificationChecker:
    """Runs the DNS or FILE ownership check for a domain."""

    def __init__(
        self,
        resolver: DnsResolver | None = None,
        fetcher: HttpFetcher | None = None,
        timeout: float = settings.VERIFICATION_TIMEOUT_SECONDS,
        record_prefix: str = settings.VERIFICATION_RECORD_PREFIX,
        file_path: str = settings.VERIFICATION_FILE_PATH,
    ) -> None:
        self.resolver = resolver or DnsResolver(timeout=timeout)
        self.fetcher = fetcher or HttpFetcher()
        self.timeout = timeout
        self.record_prefix = record_prefix
        self.file_path = file_path

    def txt_record_name(self, domain: str) -> str:
        return f"{self.record_prefix}.{domain}"

    def file_url(self, domain: str) -> str:
        return f"https://{domain}{self.file_path}"

    async def check(
        self,
        domain: str,
        method: VerificationMethod,
        token: str,
    ) -> CheckOutcome:
        """
        Run the check for `method` under a hard deadline.

        Args:
            domain: Normalized domain name
            method: DNS or FILE
            token: Expected verification token

        Returns:
            CheckOutcome; never raises for network failures or timeouts
        """
        if method == VerificationMethod.FILE:
            check = self.check_file(domain, token)
        else:
            check = self.check_dns(domain, token)

        try:
            return await asyncio.wait_for(check, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{method.value} verification for {domain} timed out")
            return CheckOutcome(passed=False, diagnostics=[TIMEOUT_DIAGNOSTIC])

    async def check_dns(self, domain: str, token: str) -> CheckOutcome:
        name = self.txt_record_name(domain)

        try:
            values = await self.resolver.resolve_txt(name)
        except DnsLookupError as e:
            logger.info(f"TXT lookup for {name} failed: {e}")
            return CheckOutcome(
                passed=False,
                diagnostics=[f"TXT record not found at {name}", f"DNS lookup failed: {e}"],
            )
        except Exception as e:
            logger.error(f"Unexpected resolver error for {name}: {e}")
            return CheckOutcome(
                passed=False,
                diagnostics=[f"TXT record not found at {name}", "DNS lookup failed"],
            )

        if not values:
            return CheckOutcome(passed=False, diagnostics=[f"TXT record not found at {name}"])

        if token in values:
            return CheckOutcome(passed=True)

        return CheckOutcome(
            passed=False,
            diagnostics=[f"TXT record at {name} does not match the verification token"],
        )

    async def check_file(self, domain: str, token: str) -> CheckOutcome:
        url = self.file_url(domain)

        try:
            response = await self.fetcher.get(url, timeout=self.timeout)
        except httpx.TimeoutException:
            return CheckOutcome(passed=False, diagnostics=[TIMEOUT_DIAGNOSTIC])
        except httpx.HTTPError as e:
            logger.info(f"Could not fetch {url}: {e}")
            return CheckOutcome(
                passed=False,
                diagnostics=[f"Could not access verification file at {url}"],
            )

        if not 200 <= response.status < 300:
            return CheckOutcome(
                passed=False,
                diagnostics=[f"Verification file at {url} returned HTTP {response.status}"],
            )

        if response.body.strip() != token:
            return CheckOutcome(
                passed=False,
                diagnostics=["Verification file content mismatch"],
            )

        return CheckOutcome(passed=True)


# Global verification checker instance
verification_checker = VerificationChecker()
