"""Run verification or route provisioning across many tenants.

Tenants are processed one at a time, in the order given. A failure for one
tenant is recorded and the run moves on; nothing a single tenant does can stop
the batch.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

import structlog

from tenantctl.core.exceptions import ConfigurationError
from tenantctl.domains.verification import DomainVerificationEngine, Outcome, VerificationResult
from tenantctl.routing.base import RouteProvisioner, RouteResult, RouteStatus
from tenantctl.tenants.models import (
    DNS_FIELDS,
    ROUTE_FIELDS,
    SSL_FIELDS,
    VERIFICATION_FIELDS,
    DomainState,
    Tenant,
)
from tenantctl.tenants.storage import TenantStore

logger = structlog.get_logger()

VERIFY_SAVE_FIELDS = (*DNS_FIELDS, *SSL_FIELDS, *VERIFICATION_FIELDS)


@dataclass
class BatchSummary:
    """Aggregate of a verification run."""

    success_count: int = 0
    pending_count: int = 0
    fail_count: int = 0
    results: list[tuple[Tenant, VerificationResult]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    def add(self, tenant: Tenant, result: VerificationResult) -> None:
        self.results.append((tenant, result))
        if result.outcome == Outcome.ACTIVE:
            self.success_count += 1
        elif result.outcome == Outcome.PENDING:
            self.pending_count += 1
        else:
            self.fail_count += 1


@dataclass
class RouteBatchSummary:
    """Aggregate of a route provisioning run."""

    success_count: int = 0
    fail_count: int = 0
    results: list[tuple[Tenant, RouteResult]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    def add(self, tenant: Tenant, result: RouteResult) -> None:
        self.results.append((tenant, result))
        if result.ok:
            self.success_count += 1
        else:
            self.fail_count += 1


class BatchOrchestrator:
    """Applies verification and provisioning to tenants and persists the results.

    Each tenant write covers only the field groups the operation owns, so a
    verification run never overwrites route fields and vice versa.
    """

    def __init__(
        self,
        engine: DomainVerificationEngine,
        store: TenantStore,
        provisioner: RouteProvisioner | None = None,
    ) -> None:
        self.engine = engine
        self.store = store
        self.provisioner = provisioner

    async def verify_one(self, tenant: Tenant, auto_ssl: bool = False) -> VerificationResult:
        """Verify a single tenant and save its DNS, SSL and verification fields."""
        result = await self.engine.verify(tenant, auto_ssl=auto_ssl)
        if result.state != DomainState.NO_DOMAIN:
            await self.store.save(tenant, fields=VERIFY_SAVE_FIELDS)
        return result

    async def verify_many(
        self,
        tenants: Iterable[Tenant],
        auto_ssl: bool = False,
        on_result: Callable[[Tenant, VerificationResult], None] | None = None,
    ) -> BatchSummary:
        """Verify tenants sequentially.

        Args:
            tenants: Tenants to check, processed in this order.
            auto_ssl: Issue certificates for reachable domains that lack one.
            on_result: Called after each tenant, for progress output.

        Returns:
            BatchSummary with per-bucket counts and every result.
        """
        summary = BatchSummary()
        for tenant in tenants:
            try:
                result = await self.verify_one(tenant, auto_ssl=auto_ssl)
            except Exception as e:
                logger.exception("verification_crashed", tenant_id=tenant.id, domain=tenant.domain)
                result = VerificationResult(
                    domain=tenant.domain,
                    state=DomainState.FAILURE,
                    message=f"Unexpected error: {e}",
                )
            summary.add(tenant, result)
            if on_result is not None:
                on_result(tenant, result)

        logger.info(
            "batch_verification_finished",
            total=summary.total,
            success=summary.success_count,
            pending=summary.pending_count,
            failed=summary.fail_count,
        )
        return summary

    def _require_provisioner(self) -> RouteProvisioner:
        if self.provisioner is None:
            raise ConfigurationError("No route provisioner configured")
        return self.provisioner

    async def provision_one(self, tenant: Tenant, force: bool = False) -> RouteResult:
        """Provision one tenant's route and save its route fields if they changed."""
        result = await self._require_provisioner().provision_route(tenant, force=force)
        if result.tenant_updated:
            await self.store.save(tenant, fields=ROUTE_FIELDS)
        return result

    async def remove_one(self, tenant: Tenant) -> RouteResult:
        result = await self._require_provisioner().remove_route(tenant)
        if result.tenant_updated:
            await self.store.save(tenant, fields=ROUTE_FIELDS)
        return result

    async def provision_many(
        self,
        tenants: Iterable[Tenant],
        force: bool = False,
        on_result: Callable[[Tenant, RouteResult], None] | None = None,
    ) -> RouteBatchSummary:
        """Provision routes sequentially, continuing past failures."""
        self._require_provisioner()
        summary = RouteBatchSummary()
        for tenant in tenants:
            try:
                result = await self.provision_one(tenant, force=force)
            except Exception as e:
                logger.exception("route_provisioning_crashed", tenant_id=tenant.id, domain=tenant.domain)
                result = RouteResult(
                    domain=tenant.domain,
                    status=RouteStatus.FAILED,
                    message=f"Unexpected error: {e}",
                )
            summary.add(tenant, result)
            if on_result is not None:
                on_result(tenant, result)

        logger.info(
            "batch_provisioning_finished",
            total=summary.total,
            success=summary.success_count,
            failed=summary.fail_count,
        )
        return summary
