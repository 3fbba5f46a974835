"""Tests for domain reachability probes."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from treebio_domains.models.domain import CustomDomain, VerificationMethod
from treebio_domains.schemas.domain import DomainHealth
from treebio_domains.services.health_service import HealthProber, probe_domain_health


def _transport(status_code: int = 200, error: Exception | None = None, seen: list | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if error is not None:
            raise error
        return httpx.Response(status_code)

    return httpx.MockTransport(handler)


class TestProbeDomainHealth:
    async def test_reachable_domain(self):
        seen = []
        health = await probe_domain_health("blog.example.com", timeout=1.0, transport=_transport(200, seen=seen))

        assert health.is_accessible is True
        assert health.status_code == 200
        assert health.ssl_valid is True
        assert health.error is None
        assert health.response_time_ms >= 0
        assert health.checked_at <= datetime.now(timezone.utc)
        assert seen[0].method == "HEAD"
        assert seen[0].url.scheme == "https"
        assert seen[0].url.host == "blog.example.com"

    async def test_server_error_is_not_accessible(self):
        health = await probe_domain_health("blog.example.com", timeout=1.0, transport=_transport(503))

        assert health.is_accessible is False
        assert health.status_code == 503

    async def test_connection_failure_is_reported_not_raised(self):
        health = await probe_domain_health(
            "down.example.com",
            timeout=1.0,
            transport=_transport(error=httpx.ConnectError("connection refused")),
        )

        assert health.is_accessible is False
        assert health.status_code is None
        assert health.ssl_valid is False
        assert health.error.startswith("connection failed")

    async def test_timeout_is_reported_not_raised(self):
        health = await probe_domain_health(
            "slow.example.com",
            timeout=1.0,
            transport=_transport(error=httpx.ConnectTimeout("timed out")),
        )

        assert health.is_accessible is False
        assert health.error == "health check timed out"


async def _add_domain(factory, domain: str, verified: bool, active: bool) -> None:
    async with factory() as session:
        session.add(CustomDomain(
            id=uuid4(),
            owner_id="u1",
            domain=domain,
            verification_method=VerificationMethod.DNS,
            verification_token=f"treebio-verify-{uuid4().hex}",
            is_verified=verified,
            is_active=active,
        ))
        await session.commit()


class TestHealthProber:
    async def test_run_once_probes_only_active_domains(
        self, session_factory: async_sessionmaker[AsyncSession]
    ):
        await _add_domain(session_factory, "live.example.com", verified=True, active=True)
        await _add_domain(session_factory, "paused.example.com", verified=True, active=False)
        await _add_domain(session_factory, "new.example.com", verified=False, active=False)

        seen = []
        prober = HealthProber(session_factory, interval=60, timeout=1.0, transport=_transport(200, seen=seen))

        results = await prober.run_once()

        assert [h.domain for h in results] == ["live.example.com"]
        assert [r.url.host for r in seen] == ["live.example.com"]
        assert prober.latest["live.example.com"].is_accessible is True

    async def test_unreachable_domain_recorded(self, session_factory):
        await _add_domain(session_factory, "down.example.com", verified=True, active=True)

        prober = HealthProber(
            session_factory,
            timeout=1.0,
            transport=_transport(error=httpx.ConnectError("refused")),
        )

        await prober.run_once()

        assert prober.latest["down.example.com"].is_accessible is False

    async def test_probe_does_not_change_verification_state(self, session_factory):
        await _add_domain(session_factory, "down.example.com", verified=True, active=True)
        prober = HealthProber(
            session_factory,
            timeout=1.0,
            transport=_transport(error=httpx.ConnectError("refused")),
        )

        await prober.run_once()

        async with session_factory() as session:
            record = (await session.execute(
                CustomDomain.__table__.select().where(CustomDomain.domain == "down.example.com")
            )).one()
        assert record.is_verified is True
        assert record.is_active is True

    async def test_stale_results_dropped(self, session_factory):
        prober = HealthProber(session_factory, timeout=1.0, transport=_transport(200))
        prober.latest["gone.example.com"] = None

        await prober.run_once()

        assert "gone.example.com" not in prober.latest

    async def test_start_and_stop(self, session_factory):
        prober = HealthProber(session_factory, interval=3600, timeout=1.0, transport=_transport(200))

        prober.start()
        assert prober._task is not None
        await prober.stop()

        assert prober._task is None


class TestHealthProberCache:
    def _health(self, domain: str, age_seconds: float) -> DomainHealth:
        return DomainHealth(
            domain=domain,
            is_accessible=True,
            response_time_ms=12,
            checked_at=datetime.now(timezone.utc) - timedelta(seconds=age_seconds),
            status_code=200,
            ssl_valid=True,
        )

    def test_fresh_result_is_served(self, session_factory):
        prober = HealthProber(session_factory, interval=300)
        prober.latest["live.example.com"] = self._health("live.example.com", 10)

        assert prober.cached("live.example.com") is prober.latest["live.example.com"]

    def test_stale_result_is_ignored(self, session_factory):
        prober = HealthProber(session_factory, interval=300)
        prober.latest["live.example.com"] = self._health("live.example.com", 301)

        assert prober.cached("live.example.com") is None

    def test_unknown_domain(self, session_factory):
        prober = HealthProber(session_factory, interval=300)
        assert prober.cached("nope.example.com") is None

    async def test_cycle_results_are_served(self, session_factory):
        await _add_domain(session_factory, "live.example.com", verified=True, active=True)
        prober = HealthProber(session_factory, interval=300, timeout=1.0, transport=_transport(200))

        await prober.run_once()

        cached = prober.cached("live.example.com")
        assert cached is not None
        assert cached.status_code == 200
