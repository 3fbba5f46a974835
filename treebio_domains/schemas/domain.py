"""Custom domain Pydantic schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from treebio_domains.models.domain import VerificationMethod


class AddDomainRequest(BaseModel):
    """Request schema for attaching a custom domain."""

    domain: str = Field(..., description="Domain name to attach (e.g., blog.example.com)")
    verification_method: VerificationMethod = Field(
        default=VerificationMethod.DNS,
        description="Ownership proof method (DNS or FILE)",
    )

    @field_validator("domain")
    @classmethod
    def strip_domain(cls, v: str) -> str:
        """Reject blank input; full format checks happen in the service."""
        v = v.strip()
        if not v:
            raise ValueError("Domain is required")
        return v


class ToggleDomainRequest(BaseModel):
    """Request schema for PATCH /domains/{id}."""

    action: Literal["toggle"] = Field(..., description="Only 'toggle' is supported")


class DnsRecord(BaseModel):
    """A single DNS record the owner must publish."""

    type: str = Field(..., description="DNS record type (TXT or CNAME)")
    name: str = Field(..., description="DNS record name/host")
    value: str = Field(..., description="DNS record value")
    ttl: int = Field(..., description="Suggested TTL in seconds")


class VerificationFile(BaseModel):
    """Exact file the owner must serve for the FILE method."""

    url: str
    content: str


class DomainItem(BaseModel):
    """Custom domain record."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: str
    domain: str
    verification_method: VerificationMethod
    verification_token: str
    is_verified: bool
    is_active: bool
    verified_at: datetime | None
    created_at: datetime
    updated_at: datetime


class DomainAddResponse(BaseModel):
    """Response for adding a domain, with setup instructions."""

    domain: DomainItem
    dns_records: list[DnsRecord]
    verification_file: VerificationFile
    message: str


class DomainListResponse(BaseModel):
    """Response for domain list endpoint."""

    items: list[DomainItem]
    total: int


class DomainRecordsResponse(BaseModel):
    """Response for domain DNS records."""

    domain: str
    dns_records: list[DnsRecord]
    verification_file: VerificationFile


class VerificationResult(BaseModel):
    """Outcome of an ownership check."""

    domain_id: UUID
    domain: str
    is_verified: bool
    method: VerificationMethod
    error_code: str | None = None
    errors: list[str] = Field(default_factory=list)
    records: list[DnsRecord] = Field(default_factory=list)
    verification_file: VerificationFile | None = None


class DomainVerifyResponse(VerificationResult):
    """Response for the verify endpoint."""

    message: str


class DomainToggleResponse(BaseModel):
    """Response for toggling a domain's active flag."""

    domain: DomainItem
    message: str


class DomainQuotaResponse(BaseModel):
    """Whether the caller may add another domain."""

    can_add: bool
    current: int
    limit: int


class DomainHealth(BaseModel):
    """Reachability probe result. Never affects verification state."""

    domain: str
    is_accessible: bool
    response_time_ms: int
    checked_at: datetime
    status_code: int | None = None
    ssl_valid: bool = False
    error: str | None = None


class DomainResolveResponse(BaseModel):
    """Active domain lookup for routing layers."""

    domain: str
    domain_id: UUID
    owner_id: str
