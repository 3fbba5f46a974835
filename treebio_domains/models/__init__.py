"""SQLAlchemy models."""

from treebio_domains.models.domain import CustomDomain, DomainOwnerLock, VerificationMethod

__all__ = [
    "CustomDomain",
    "DomainOwnerLock",
    "VerificationMethod",
]
