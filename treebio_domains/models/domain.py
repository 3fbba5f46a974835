"""Custom domain model for profile domains."""

import enum
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, DateTime, Enum, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from treebio_domains.database import Base


class VerificationMethod(str, enum.Enum):
    """How the owner proves control of the domain."""

    DNS = "DNS"
    FILE = "FILE"


class CustomDomain(Base):
    """Represents an external domain attached to a user's profile."""

    __tablename__ = "custom_domains"
    __table_args__ = (
        # A domain can only route traffic once ownership is proven
        CheckConstraint(
            "NOT is_active OR is_verified",
            name="ck_custom_domains_active_requires_verified",
        ),
    )

    # Primary key
    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )

    # Caller identity from the identity provider
    owner_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )

    # Domain name (globally unique)
    domain: Mapped[str] = mapped_column(
        String(253),
        unique=True,
        nullable=False,
    )

    verification_method: Mapped[VerificationMethod] = mapped_column(
        Enum(VerificationMethod, name="verification_method", native_enum=False, length=10),
        nullable=False,
        default=VerificationMethod.DNS,
    )

    verification_token: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )

    # Lifecycle flags
    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    # Timestamps
    verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<CustomDomain(domain={self.domain}, verified={self.is_verified}, "
            f"active={self.is_active})>"
        )


class DomainOwnerLock(Base):
    """One row per owner, row-locked while a domain is added under the quota."""

    __tablename__ = "domain_owner_locks"

    owner_id: Mapped[str] = mapped_column(String(255), primary_key=True)
