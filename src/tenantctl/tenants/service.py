"""Tenant creation, domain assignment and operator lifecycle changes."""

from __future__ import annotations

import re
import secrets
from collections.abc import Iterable

import structlog

from tenantctl.domains.names import clean_domain, unique_domains
from tenantctl.tenants.models import DOMAIN_FIELDS, LIFECYCLE_FIELDS, DeploymentStatus, Tenant
from tenantctl.tenants.storage import TenantStore

logger = structlog.get_logger()

API_KEY_PREFIX = "tk_"


def generate_api_key() -> str:
    """Generate the frontend access token for a tenant."""
    return f"{API_KEY_PREFIX}{secrets.token_urlsafe(32)}"


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "tenant"


class TenantService:
    """Creates tenants and changes their domains.

    Deployment fields are reset whenever the domain changes: a new domain has
    never been verified, routed, or certified.
    """

    def __init__(self, store: TenantStore) -> None:
        self.store = store

    async def create_tenant(
        self,
        name: str,
        domain: str | None = None,
        aliases: Iterable[str] = (),
        server_ip: str | None = None,
    ) -> Tenant:
        """Create a tenant with its API key.

        Raises:
            InvalidDomainError: If the domain or an alias is not a valid hostname.
        """
        existing_slugs = {t.slug for t in await self.store.list_all()}
        base_slug = slugify(name)
        slug = base_slug
        counter = 1
        while slug in existing_slugs:
            slug = f"{base_slug}-{counter}"
            counter += 1

        tenant = Tenant(
            id=await self.store.next_id(),
            name=name,
            slug=slug,
            api_key=generate_api_key(),
            server_ip=server_ip,
        )
        if domain:
            self._apply_domain(tenant, domain, aliases)

        return await self.store.add(tenant)

    async def assign_domain(
        self, tenant: Tenant, domain: str, aliases: Iterable[str] = ()
    ) -> Tenant:
        """Point a tenant at a new domain and restart its deployment lifecycle."""
        previous = tenant.domain
        self._apply_domain(tenant, domain, aliases)
        if tenant.domain != previous:
            tenant.reset_deployment()
            await self.store.save(tenant)
        else:
            await self.store.save(tenant, fields=DOMAIN_FIELDS)

        logger.info(
            "tenant_domain_assigned",
            tenant_id=tenant.id,
            domain=tenant.domain,
            previous=previous,
            aliases=tenant.additional_domains,
        )
        return tenant

    async def regenerate_api_key(self, tenant: Tenant) -> str:
        tenant.api_key = generate_api_key()
        await self.store.save(tenant, fields=("api_key",))
        logger.info("tenant_api_key_rotated", tenant_id=tenant.id)
        return tenant.api_key

    async def suspend(self, tenant: Tenant) -> Tenant:
        """Hold the tenant: verification and routing refuse it until resumed."""
        tenant.deployment_status = DeploymentStatus.SUSPENDED
        await self.store.save(tenant, fields=LIFECYCLE_FIELDS)
        logger.info("tenant_suspended", tenant_id=tenant.id)
        return tenant

    async def resume(self, tenant: Tenant) -> Tenant:
        """Release a held tenant. Its next verification starts over from pending."""
        tenant.is_active = True
        tenant.deployment_status = DeploymentStatus.PENDING
        await self.store.save(tenant, fields=LIFECYCLE_FIELDS)
        logger.info("tenant_resumed", tenant_id=tenant.id)
        return tenant

    def _apply_domain(self, tenant: Tenant, domain: str, aliases: Iterable[str]) -> None:
        cleaned = clean_domain(domain)
        tenant.domain = cleaned
        tenant.additional_domains = unique_domains(cleaned, aliases)
        tenant.frontend_url = f"https://{cleaned}"
