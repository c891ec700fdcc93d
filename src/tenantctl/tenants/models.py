"""Tenant entity and deployment status types.

The tenant record is the single source of truth for domain provisioning. Each
component writes back only its own field group:

- verification: DNS_FIELDS + VERIFICATION_FIELDS
- certificates: SSL_FIELDS
- route provisioning: ROUTE_FIELDS
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


def _parse_dt(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _format_dt(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class DeploymentStatus(Enum):
    """Overall lifecycle state of a tenant deployment."""

    PENDING = "pending"
    DEPLOYING = "deploying"
    ACTIVE = "active"
    FAILED = "failed"
    SUSPENDED = "suspended"


class SslStatus(Enum):
    """Certificate state as of the last check."""

    PENDING = "pending"
    ACTIVE = "active"
    ERROR = "error"
    EXPIRED = "expired"


class NginxStatus(Enum):
    """Virtual host state (VPS mode only)."""

    PENDING = "pending"
    ACTIVE = "active"
    ERROR = "error"
    DELETED = "deleted"


class DomainState(Enum):
    """Classification produced by the last domain verification."""

    ACTIVE = "active"
    PENDING_SSL = "pending_ssl"
    DNS_PROPAGATING = "dns_propagating"
    DNS_WRONG_IP = "dns_wrong_ip"
    DNS_NOT_CONFIGURED = "dns_not_configured"
    NO_DOMAIN = "no_domain"
    FAILURE = "failure"


PENDING_DNS_STATES = frozenset(
    {DomainState.DNS_NOT_CONFIGURED, DomainState.DNS_WRONG_IP, DomainState.DNS_PROPAGATING}
)

HELD_STATUSES = frozenset({DeploymentStatus.FAILED, DeploymentStatus.SUSPENDED})

DNS_FIELDS = ("dns_verified", "dns_verified_at")
SSL_FIELDS = ("ssl_status", "ssl_expires_at", "ssl_issued_at")
ROUTE_FIELDS = (
    "frontend_url",
    "deployment_status",
    "deployment_path",
    "deployed_at",
    "nginx_status",
    "nginx_config_file",
)
VERIFICATION_FIELDS = ("domain_state", "deployment_status")
DOMAIN_FIELDS = ("domain", "additional_domains", "frontend_url")
LIFECYCLE_FIELDS = ("is_active", "deployment_status")


@dataclass
class Tenant:
    """A customer account routed to the shared frontend.

    Only the deployment-related fields are managed here; content belongs to the
    admin application.
    """

    id: int
    name: str
    slug: str
    api_key: str
    domain: str | None = None
    additional_domains: list[str] = field(default_factory=list)
    is_active: bool = True
    server_ip: str | None = None
    frontend_url: str | None = None
    deployment_status: DeploymentStatus = DeploymentStatus.PENDING
    deployment_path: str | None = None
    deployed_at: datetime | None = None
    domain_state: DomainState | None = None
    dns_verified: bool = False
    dns_verified_at: datetime | None = None
    ssl_status: SslStatus = SslStatus.PENDING
    ssl_expires_at: datetime | None = None
    ssl_issued_at: datetime | None = None
    nginx_status: NginxStatus = NginxStatus.PENDING
    nginx_config_file: str | None = None
    created_at: datetime = field(default_factory=_utc_now)

    @property
    def has_domain(self) -> bool:
        return bool(self.domain and self.domain.strip())

    @property
    def is_held(self) -> bool:
        """Inactive, failed or suspended. Nothing moves it forward until an operator resumes it."""
        return not self.is_active or self.deployment_status in HELD_STATUSES

    @property
    def held_reason(self) -> str:
        if not self.is_active:
            return "inactive"
        return self.deployment_status.value

    def all_domains(self) -> list[str]:
        """Canonical domain followed by its aliases."""
        if not self.has_domain:
            return []
        return [self.domain, *[d for d in self.additional_domains if d != self.domain]]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "api_key": self.api_key,
            "domain": self.domain,
            "additional_domains": list(self.additional_domains),
            "is_active": self.is_active,
            "server_ip": self.server_ip,
            "frontend_url": self.frontend_url,
            "deployment_status": self.deployment_status.value,
            "deployment_path": self.deployment_path,
            "deployed_at": _format_dt(self.deployed_at),
            "domain_state": self.domain_state.value if self.domain_state else None,
            "dns_verified": self.dns_verified,
            "dns_verified_at": _format_dt(self.dns_verified_at),
            "ssl_status": self.ssl_status.value,
            "ssl_expires_at": _format_dt(self.ssl_expires_at),
            "ssl_issued_at": _format_dt(self.ssl_issued_at),
            "nginx_status": self.nginx_status.value,
            "nginx_config_file": self.nginx_config_file,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Tenant:
        """Create from dictionary (JSON deserialization)."""
        return cls(
            id=int(data["id"]),
            name=data["name"],
            slug=data.get("slug") or data["name"].lower(),
            api_key=data.get("api_key", ""),
            domain=data.get("domain"),
            additional_domains=list(data.get("additional_domains") or []),
            is_active=data.get("is_active", True),
            server_ip=data.get("server_ip"),
            frontend_url=data.get("frontend_url"),
            deployment_status=DeploymentStatus(data.get("deployment_status", "pending")),
            deployment_path=data.get("deployment_path"),
            deployed_at=_parse_dt(data.get("deployed_at")),
            domain_state=DomainState(data["domain_state"]) if data.get("domain_state") else None,
            dns_verified=data.get("dns_verified", False),
            dns_verified_at=_parse_dt(data.get("dns_verified_at")),
            ssl_status=SslStatus(data.get("ssl_status", "pending")),
            ssl_expires_at=_parse_dt(data.get("ssl_expires_at")),
            ssl_issued_at=_parse_dt(data.get("ssl_issued_at")),
            nginx_status=NginxStatus(data.get("nginx_status", "pending")),
            nginx_config_file=data.get("nginx_config_file"),
            created_at=_parse_dt(data.get("created_at")) or _utc_now(),
        )

    def reset_deployment(self) -> None:
        """Return every deployment field to its default (used when the domain changes)."""
        self.deployment_status = DeploymentStatus.PENDING
        self.deployment_path = None
        self.deployed_at = None
        self.domain_state = None
        self.dns_verified = False
        self.dns_verified_at = None
        self.ssl_status = SslStatus.PENDING
        self.ssl_expires_at = None
        self.ssl_issued_at = None
        self.nginx_status = NginxStatus.PENDING
        self.nginx_config_file = None
