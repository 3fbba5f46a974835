"""SQL-backed store for custom domain records."""

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from treebio_domains.models.domain import CustomDomain, DomainOwnerLock, VerificationMethod
from treebio_domains.services.exceptions import DomainAlreadyRegisteredError

logger = logging.getLogger(__name__)


class DomainStore:
    """
    Persistence for CustomDomain records over an AsyncSession.

    Uniqueness of `domain` is enforced by the table's unique constraint, and
    state changes go through conditional UPDATE/DELETE statements so that two
    requests racing on the same record cannot interleave.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        owner_id: str,
        domain: str,
        verification_method: VerificationMethod,
        verification_token: str,
    ) -> CustomDomain:
        """
        Insert a new, unverified and inactive record.

        Raises:
            DomainAlreadyRegisteredError: If the unique constraint on domain fires
        """
        now = datetime.now(timezone.utc)
        record = CustomDomain(
            id=uuid4(),
            owner_id=owner_id,
            domain=domain,
            verification_method=verification_method,
            verification_token=verification_token,
            is_verified=False,
            is_active=False,
            created_at=now,
            updated_at=now,
        )

        try:
            self.db.add(record)
            await self.db.flush()
        except IntegrityError:
            # Race condition - domain was claimed by another request
            logger.warning(f"Race condition registering domain: {domain}")
            raise DomainAlreadyRegisteredError(f"Domain {domain} is already registered")

        await self.db.refresh(record)
        return record

    async def find_by_id(self, domain_id: UUID) -> CustomDomain | None:
        result = await self.db.execute(
            select(CustomDomain).where(CustomDomain.id == domain_id)
        )
        return result.scalar_one_or_none()

    async def find_by_domain(self, domain: str) -> CustomDomain | None:
        result = await self.db.execute(
            select(CustomDomain).where(CustomDomain.domain == domain.lower())
        )
        return result.scalar_one_or_none()

    async def find_all_by_owner(self, owner_id: str) -> list[CustomDomain]:
        result = await self.db.execute(
            select(CustomDomain)
            .where(CustomDomain.owner_id == owner_id)
            .order_by(CustomDomain.created_at.desc())
        )
        return list(result.scalars().all())

    async def find_all_active(self) -> list[CustomDomain]:
        result = await self.db.execute(
            select(CustomDomain).where(CustomDomain.is_active.is_(True))
        )
        return list(result.scalars().all())

    async def lock_owner(self, owner_id: str) -> None:
        """
        Serialize quota-checked inserts for `owner_id` until the transaction ends.

        Creates the owner's lock row if missing, then takes a row lock on it
        with SELECT ... FOR UPDATE. SQLite has no row locks; there the insert
        already holds the database write lock until commit.
        """
        if self.db.get_bind().dialect.name == "postgresql":
            insert_stmt = pg_insert(DomainOwnerLock)
        else:
            insert_stmt = sqlite_insert(DomainOwnerLock)

        await self.db.execute(
            insert_stmt.values(owner_id=owner_id).on_conflict_do_nothing()
        )
        await self.db.execute(
            select(DomainOwnerLock.owner_id)
            .where(DomainOwnerLock.owner_id == owner_id)
            .with_for_update()
        )

    async def count_by_owner(self, owner_id: str) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(CustomDomain)
            .where(CustomDomain.owner_id == owner_id)
        )
        return result.scalar() or 0

    async def update(
        self,
        domain_id: UUID,
        patch: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> CustomDomain | None:
        """
        Apply `patch` only if the record still matches `expected`.

        Args:
            domain_id: Record id
            patch: Column values to set (updated_at is always refreshed)
            expected: Column values the row must currently hold

        Returns:
            The refreshed record, or None if no row matched
        """
        values = {**patch, "updated_at": datetime.now(timezone.utc)}

        stmt = update(CustomDomain).where(CustomDomain.id == domain_id)
        for column, value in (expected or {}).items():
            stmt = stmt.where(getattr(CustomDomain, column) == value)
        stmt = stmt.values(**values).execution_options(synchronize_session=False)

        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            return None

        record = await self.db.get(CustomDomain, domain_id, populate_existing=True)
        return record

    async def delete(self, domain_id: UUID, owner_id: str | None = None) -> bool:
        """
        Hard-delete a record, optionally only if owned by `owner_id`.

        Returns:
            True if a row was removed
        """
        stmt = delete(CustomDomain).where(CustomDomain.id == domain_id)
        if owner_id is not None:
            stmt = stmt.where(CustomDomain.owner_id == owner_id)

        result = await self.db.execute(stmt.execution_options(synchronize_session=False))
        return bool(result.rowcount)
