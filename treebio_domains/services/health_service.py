"""Reachability probes for custom domains.

Probes are diagnostic reads: they never touch verification state, and a
domain that cannot be reached is reported as inaccessible, not raised.
"""

import asyncio
import logging
import ssl
import time
from datetime import datetime, timezone

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from treebio_domains.config import settings
from treebio_domains.schemas.domain import DomainHealth
from treebio_domains.services.domain_store import DomainStore

logger = logging.getLogger(__name__)


def _is_tls_failure(exc: BaseException) -> bool:
    """Walk the exception chain looking for an SSL error."""
    while exc is not None:
        if isinstance(exc, ssl.SSLError):
            return True
        exc = exc.__cause__ or exc.__context__
    return False


async def probe_domain_health(
    domain: str,
    timeout: float = settings.HEALTH_CHECK_TIMEOUT_SECONDS,
    transport: httpx.AsyncBaseTransport | None = None,
) -> DomainHealth:
    """
    Issue a single HEAD request against https://<domain>.

    Args:
        domain: Domain to probe
        timeout: Hard timeout in seconds
        transport: Optional httpx transport (used by tests)

    Returns:
        DomainHealth with latency and accessibility
    """
    started = time.perf_counter()
    status_code = None
    ssl_valid = False
    error = None

    try:
        async with httpx.AsyncClient(
            transport=transport,
            timeout=timeout,
            follow_redirects=True,
        ) as client:
            response = await asyncio.wait_for(
                client.head(f"https://{domain}"),
                timeout=timeout,
            )
        status_code = response.status_code
        # A completed HTTPS exchange means the certificate validated
        ssl_valid = True
        is_accessible = response.is_success
    except (httpx.TimeoutException, asyncio.TimeoutError):
        is_accessible = False
        error = "health check timed out"
    except httpx.HTTPError as e:
        is_accessible = False
        error = "TLS handshake failed" if _is_tls_failure(e) else f"connection failed: {e}"

    elapsed_ms = int((time.perf_counter() - started) * 1000)

    return DomainHealth(
        domain=domain,
        is_accessible=is_accessible,
        response_time_ms=elapsed_ms,
        checked_at=datetime.now(timezone.utc),
        status_code=status_code,
        ssl_valid=ssl_valid,
        error=error,
    )


class HealthProber:
    """
    Periodically probes every active domain.

    The latest result per domain is kept in `latest`. A failed cycle is
    logged and the loop keeps running.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        interval: float = settings.HEALTH_PROBE_INTERVAL_SECONDS,
        timeout: float = settings.HEALTH_CHECK_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.interval = interval
        self.timeout = timeout
        self.transport = transport
        self.latest: dict[str, DomainHealth] = {}
        self._task: asyncio.Task | None = None

    def cached(self, domain: str) -> DomainHealth | None:
        """Latest result for `domain` if it is younger than one probe interval."""
        health = self.latest.get(domain)
        if health is None:
            return None
        age = (datetime.now(timezone.utc) - health.checked_at).total_seconds()
        return health if age < self.interval else None

    async def run_once(self) -> list[DomainHealth]:
        """Probe all active domains concurrently and record the results."""
        async with self.session_factory() as session:
            domains = [d.domain for d in await DomainStore(session).find_all_active()]

        results = await asyncio.gather(
            *(probe_domain_health(d, self.timeout, self.transport) for d in domains)
        )

        for health in results:
            self.latest[health.domain] = health
            if not health.is_accessible:
                logger.warning(f"Active domain {health.domain} unreachable: {health.error}")

        # Forget domains that are no longer active
        for stale in set(self.latest) - set(domains):
            del self.latest[stale]

        logger.debug(f"Health probe cycle complete ({len(results)} domains)")
        return list(results)

    async def _run(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Health probe cycle failed: {e}")
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())
            logger.info(f"Health prober started (interval={self.interval}s)")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Health prober stopped")
