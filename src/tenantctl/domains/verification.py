"""Classified verification of a tenant domain.

A verification is always a fresh check:
1. Resolve the domain and compare with the expected server IP
2. Probe HTTPS and HTTP reachability
3. Refresh the certificate status

Each result carries the state plus everything a person needs to act on it
(expected vs. resolved IP, DNS record instructions, manual commands).

Example DNS setup required from the tenant:
    example.com      A  203.0.113.9
    www.example.com  A  203.0.113.9
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

import aiodns
import structlog

from tenantctl.certificates.manager import CertificateManager, CertificateResult
from tenantctl.core.config import CertificateConfig, VerificationConfig
from tenantctl.core.exceptions import NoDomainSetError
from tenantctl.domains.names import normalize_domain
from tenantctl.domains.reachability import ReachabilityChecker
from tenantctl.domains.resolver import DomainResolver, ResolvedIPs
from tenantctl.tenants.models import DeploymentStatus, DomainState, SslStatus, Tenant

logger = structlog.get_logger()

DNS_RECORD_TTL = 600
NGINX_CHECK_COMMAND = "sudo nginx -t && sudo systemctl status nginx"


class Outcome(Enum):
    """Bucket a verification falls into for reporting and exit codes."""

    ACTIVE = "active"
    PENDING = "pending"
    FAILED = "failed"


_OUTCOMES = {
    DomainState.ACTIVE: Outcome.ACTIVE,
    DomainState.PENDING_SSL: Outcome.PENDING,
    DomainState.DNS_PROPAGATING: Outcome.PENDING,
}


@dataclass
class VerificationResult:
    """Result of one domain verification."""

    domain: str | None
    state: DomainState
    message: str
    url: str | None = None
    resolved_ip: str | None = None
    expected_ip: str | None = None
    instructions: list[str] = field(default_factory=list)
    hint: str | None = None
    certificate: CertificateResult | None = None

    @property
    def outcome(self) -> Outcome:
        return _OUTCOMES.get(self.state, Outcome.FAILED)

    @property
    def is_active(self) -> bool:
        return self.state == DomainState.ACTIVE


def dns_instructions(domain: str, server_ip: str) -> list[str]:
    """Steps the tenant has to take at their DNS provider."""
    return [
        f"Log in to the DNS provider for {domain}",
        f"Add an A record: host @, value {server_ip}, TTL {DNS_RECORD_TTL}",
        f"Add an A record: host www, value {server_ip}, TTL {DNS_RECORD_TTL}",
        "Wait for propagation (usually 5-30 minutes, up to 48 hours)",
        "Run: tenantctl domain verify --pending",
    ]


class DomainVerificationEngine:
    """Classifies a tenant domain and moves its persisted state forward.

    The engine mutates the tenant in memory only. Callers persist the
    DNS_FIELDS, SSL_FIELDS and VERIFICATION_FIELDS groups afterwards.
    """

    def __init__(
        self,
        config: VerificationConfig,
        resolver: DomainResolver | None = None,
        reachability: ReachabilityChecker | None = None,
        certificates: CertificateManager | None = None,
    ) -> None:
        """Initialize verification engine.

        Args:
            config: Expected IP, hosting mode and probe timeout.
            resolver: DNS lookup.
            reachability: HTTP(S) probes.
            certificates: Certificate status and issuance.
        """
        self.config = config
        self.resolver = resolver or DomainResolver()
        self.reachability = reachability or ReachabilityChecker(timeout=config.http_timeout)
        self.certificates = certificates or CertificateManager(CertificateConfig())

    def expected_ip(self, tenant: Tenant) -> str | None:
        return tenant.server_ip or self.config.server_ip

    async def verify(self, tenant: Tenant, auto_ssl: bool = False) -> VerificationResult:
        """Verify a tenant's domain.

        Args:
            tenant: Tenant to check. Its DNS, SSL and verification fields are updated.
            auto_ssl: Issue a certificate when the domain is reachable without one.

        Returns:
            VerificationResult with the classified state.
        """
        if not tenant.has_domain:
            logger.warning("verification_no_domain", tenant_id=tenant.id)
            return VerificationResult(
                domain=None,
                state=DomainState.NO_DOMAIN,
                message=str(NoDomainSetError(tenant.id, tenant.name)),
            )

        domain = normalize_domain(tenant.domain)

        if tenant.is_held:
            return VerificationResult(
                domain=domain,
                state=DomainState.FAILURE,
                message=f"Tenant is {tenant.held_reason}; resume it before verifying its domain",
            )

        expected = self.expected_ip(tenant)
        if not expected:
            return VerificationResult(
                domain=domain,
                state=DomainState.FAILURE,
                message="Server IP is not configured (set TENANTCTL_SERVER_IP)",
            )

        logger.info("verification_started", tenant_id=tenant.id, domain=domain, expected_ip=expected)
        result = await self._classify(tenant, domain, expected, auto_ssl)
        tenant.domain_state = result.state

        log = logger.info if result.outcome != Outcome.FAILED else logger.warning
        log(
            "verification_finished",
            tenant_id=tenant.id,
            domain=domain,
            state=result.state.value,
            resolved_ip=result.resolved_ip,
        )
        return result

    async def _classify(
        self, tenant: Tenant, domain: str, expected: str, auto_ssl: bool
    ) -> VerificationResult:
        try:
            resolved = await self.resolver.resolve(domain)
        except (TimeoutError, aiodns.error.DNSError, OSError) as e:
            logger.error("verification_resolver_error", domain=domain, error=repr(e))
            return VerificationResult(
                domain=domain,
                state=DomainState.FAILURE,
                message=f"DNS lookup for {domain} failed: {e!r}",
                expected_ip=expected,
            )

        if not isinstance(resolved, ResolvedIPs):
            if resolved.timed_out:
                return VerificationResult(
                    domain=domain,
                    state=DomainState.FAILURE,
                    message=f"DNS lookup for {domain} failed: {resolved.reason}",
                    expected_ip=expected,
                )
            tenant.dns_verified = False
            return VerificationResult(
                domain=domain,
                state=DomainState.DNS_NOT_CONFIGURED,
                message=f"DNS is not configured for {domain}",
                expected_ip=expected,
                instructions=dns_instructions(domain, expected),
            )

        if not resolved.matches(expected):
            tenant.dns_verified = False
            return VerificationResult(
                domain=domain,
                state=DomainState.DNS_WRONG_IP,
                message=f"{domain} points to {resolved.first}, expected {expected}",
                resolved_ip=resolved.first,
                expected_ip=expected,
                instructions=dns_instructions(domain, expected),
            )

        tenant.dns_verified = True
        tenant.dns_verified_at = datetime.now(UTC)

        https_ok, http_ok = await asyncio.gather(
            self.reachability.is_reachable(domain, https=True),
            self.reachability.is_reachable(domain, https=False),
        )
        ssl_status = await self.certificates.check_status(tenant, remote=https_ok)

        if https_ok and ssl_status == SslStatus.ACTIVE:
            return self._success(tenant, domain, expected)

        if https_ok or http_ok:
            return await self._pending_ssl(tenant, domain, expected, auto_ssl)

        return VerificationResult(
            domain=domain,
            state=DomainState.DNS_PROPAGATING,
            message=f"DNS for {domain} is correct but the site is not reachable yet",
            resolved_ip=expected,
            expected_ip=expected,
            hint=self._propagating_hint(tenant, domain),
        )

    async def _pending_ssl(
        self, tenant: Tenant, domain: str, expected: str, auto_ssl: bool
    ) -> VerificationResult:
        certificate = None
        if auto_ssl:
            certificate = await self.certificates.generate_certificate(tenant)
            if certificate.success and not certificate.skipped:
                result = self._success(tenant, domain, expected)
                result.certificate = certificate
                return result

        if certificate is not None and certificate.skipped:
            message = f"{domain} is reachable; {certificate.message.lower()}"
        elif certificate is not None:
            message = f"{domain} is reachable but certificate generation failed"
        else:
            message = f"{domain} is reachable over HTTP but has no valid certificate"

        command = (
            certificate.raw_command
            if certificate is not None and certificate.raw_command
            else self.certificates.issue_command(tenant)
        )
        return VerificationResult(
            domain=domain,
            state=DomainState.PENDING_SSL,
            message=message,
            resolved_ip=expected,
            expected_ip=expected,
            hint=f"Issue a certificate: {command}",
            certificate=certificate,
        )

    def _success(self, tenant: Tenant, domain: str, expected: str) -> VerificationResult:
        tenant.deployment_status = DeploymentStatus.ACTIVE
        url = f"https://{domain}"
        return VerificationResult(
            domain=domain,
            state=DomainState.ACTIVE,
            message=f"{domain} is live",
            url=url,
            resolved_ip=expected,
            expected_ip=expected,
        )

    def _propagating_hint(self, tenant: Tenant, domain: str) -> str:
        if self.config.hosting_mode == "vps":
            return f"Check nginx: {NGINX_CHECK_COMMAND}"
        target = f"{self.config.domains_base_path.rstrip('/')}/{domain}/{self.config.route_dir_name}"
        return (
            f"Check that {target} links to the shared frontend "
            f"(tenantctl domain provision-route {tenant.id})"
        )
