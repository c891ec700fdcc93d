"""Certificate lifecycle for tenant domains.

Operations:
- generate_certificate: issue a certificate for a tenant's domains via the ACME client
- renew_all_certificates: one bulk renewal run for every managed certificate
- check_status: refresh ssl_status / ssl_expires_at from the certificate actually in use

In development mode issuance and renewal never reach the ACME client; they are
reported as skipped. ACME failures are not retried here: the raw command is
returned so an operator can run it by hand (rate limits and port 80 problems
are environment specific).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import structlog

from tenantctl.certificates.acme import AcmeClient, CertbotClient
from tenantctl.certificates.inspect import CertificateInspector
from tenantctl.core.config import CertificateConfig
from tenantctl.domains.names import normalize_domain, with_www
from tenantctl.tenants.models import SslStatus, Tenant

logger = structlog.get_logger()


@dataclass
class CertificateResult:
    """Result of a certificate issuance attempt."""

    success: bool
    message: str
    skipped: bool = False
    raw_command: str | None = None
    output: str | None = None
    error: str | None = None
    expires_at: datetime | None = None


@dataclass
class RenewalResult:
    """Result of a bulk renewal run."""

    success: bool
    message: str
    skipped: bool = False
    output: str | None = None
    error: str | None = None


class CertificateManager:
    """Issues, renews and tracks TLS certificates for tenants."""

    def __init__(
        self,
        config: CertificateConfig,
        client: AcmeClient | None = None,
        inspector: CertificateInspector | None = None,
    ) -> None:
        """Initialize certificate manager.

        Args:
            config: Certificate settings.
            client: ACME client boundary. Defaults to certbot.
            inspector: Expiry lookup. Defaults to the configured live directory.
        """
        self.config = config
        self.client = client or CertbotClient(config)
        self.inspector = inspector or CertificateInspector(
            config.live_path, probe_timeout=config.probe_timeout
        )

    def domains_for(self, tenant: Tenant) -> list[str]:
        """Names the certificate must cover, canonical domain first."""
        domains = [normalize_domain(d) for d in tenant.all_domains()]
        return with_www(domains) if self.config.include_www else domains

    def issue_command(self, tenant: Tenant) -> str | None:
        if not tenant.has_domain:
            return None
        return self.client.issue_command(self.domains_for(tenant), self.config.admin_email)

    async def generate_certificate(self, tenant: Tenant) -> CertificateResult:
        """Issue a certificate for the tenant's domain and aliases.

        On success updates ssl_status, ssl_issued_at and ssl_expires_at. On
        failure the tenant is left untouched and the raw command is returned.
        """
        if not tenant.has_domain:
            return CertificateResult(success=False, message="No domain configured for tenant")

        domains = self.domains_for(tenant)
        command = self.client.issue_command(domains, self.config.admin_email)

        if self.config.development_mode:
            logger.info("certificate_skipped_dev_mode", tenant_id=tenant.id, domains=domains)
            return CertificateResult(
                success=True,
                skipped=True,
                message="Certificate generation skipped in development mode",
                raw_command=command,
            )

        logger.info("certificate_generating", tenant_id=tenant.id, domains=domains, command=command)
        result = await self.client.issue(domains, self.config.admin_email)

        if not result.ok:
            logger.error(
                "certificate_generation_failed",
                tenant_id=tenant.id,
                domains=domains,
                error=result.error,
            )
            return CertificateResult(
                success=False,
                message="ACME client command failed",
                raw_command=command,
                output=result.stdout or None,
                error=result.error,
            )

        now = datetime.now(UTC)
        expires_at = await self.inspector.find_expiry(domains[0], remote=False)
        if expires_at is None:
            expires_at = now + timedelta(days=self.config.validity_days)

        tenant.ssl_status = SslStatus.ACTIVE
        tenant.ssl_issued_at = now
        tenant.ssl_expires_at = expires_at

        logger.info(
            "certificate_generated",
            tenant_id=tenant.id,
            domain=domains[0],
            expires_at=expires_at.isoformat(),
        )
        return CertificateResult(
            success=True,
            message=f"SSL certificate generated for {domains[0]}",
            output=result.stdout or None,
            expires_at=expires_at,
        )

    async def renew_all_certificates(self) -> RenewalResult:
        """Run the ACME client's bulk renewal once for all certificates."""
        if self.config.development_mode:
            logger.info("certificate_renewal_skipped_dev_mode")
            return RenewalResult(
                success=True,
                skipped=True,
                message="SSL renewal skipped in development mode",
            )

        result = await self.client.renew_all()
        if result.ok:
            logger.info("certificate_renewal_completed")
            return RenewalResult(success=True, message="Renewal completed", output=result.stdout)

        logger.error("certificate_renewal_failed", error=result.error)
        return RenewalResult(
            success=False,
            message="Renewal failed",
            output=result.stdout or None,
            error=result.error,
        )

    async def check_status(self, tenant: Tenant, remote: bool = True) -> SslStatus:
        """Refresh the tenant's certificate state.

        Looks for the certificate in use (live directory, then a TLS probe when
        ``remote``). Without one, an active status whose recorded expiry has
        passed becomes expired.
        """
        if not tenant.has_domain:
            return tenant.ssl_status

        now = datetime.now(UTC)
        domain = normalize_domain(tenant.domain)
        expires_at = await self.inspector.find_expiry(domain, remote=remote)

        if expires_at is not None:
            tenant.ssl_expires_at = expires_at
            tenant.ssl_status = SslStatus.ACTIVE if expires_at > now else SslStatus.EXPIRED
        elif (
            tenant.ssl_status == SslStatus.ACTIVE
            and tenant.ssl_expires_at is not None
            and tenant.ssl_expires_at <= now
        ):
            tenant.ssl_status = SslStatus.EXPIRED

        if tenant.ssl_status == SslStatus.EXPIRED:
            logger.warning(
                "certificate_expired",
                tenant_id=tenant.id,
                domain=domain,
                expired_at=tenant.ssl_expires_at.isoformat() if tenant.ssl_expires_at else None,
            )
        return tenant.ssl_status
