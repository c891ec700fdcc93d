"""Route provisioning contract shared by the hosting backends.

A route makes a tenant domain serve the shared frontend build:
- shared hosting: <domains_base_path>/<domain>/public_html -> shared frontend (symlink)
- VPS: nginx virtual host in sites-available, enabled in sites-enabled

Both backends honor the same rules: an already correct route is a no-op,
unrecognized content is never removed without ``force``, and failures come back
with a command an operator can run by hand.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from tenantctl.tenants.models import Tenant

if TYPE_CHECKING:
    from tenantctl.core.config import Settings


class RouteStatus(Enum):
    """Outcome of a provisioning or removal call."""

    OK = "ok"
    CONFLICT = "conflict"
    HOST_NOT_CONFIGURED = "host_not_configured"
    FAILED = "failed"
    NO_DOMAIN = "no_domain"


@dataclass
class RouteResult:
    """Result of a route operation.

    Attributes:
        changed: The filesystem was modified.
        tenant_updated: Route fields on the tenant were changed and need saving.
        offending_files: Up to five unrecognized entries blocking the route (CONFLICT).
        manual_command: What an operator can run to finish the job by hand.
    """

    domain: str | None
    status: RouteStatus
    message: str
    target: str | None = None
    changed: bool = False
    tenant_updated: bool = False
    offending_files: list[str] = field(default_factory=list)
    manual_command: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == RouteStatus.OK


def held_result(tenant: Tenant, domain: str) -> RouteResult | None:
    """Refusal for a tenant an operator has to resume before it is routed again."""
    if not tenant.is_held:
        return None
    return RouteResult(
        domain=domain,
        status=RouteStatus.FAILED,
        message=f"Tenant is {tenant.held_reason}; resume the tenant first",
    )


class RouteProvisioner(Protocol):
    """What the CLI and batch runner need from a hosting backend."""

    async def provision_route(self, tenant: Tenant, force: bool = False) -> RouteResult: ...

    async def remove_route(self, tenant: Tenant) -> RouteResult: ...


def build_provisioner(settings: Settings) -> RouteProvisioner:
    """Create the backend matching ``settings.hosting_mode``."""
    if settings.hosting_mode == "vps":
        from tenantctl.routing.nginx import NginxController
        from tenantctl.routing.vhost import VirtualHostRouteProvisioner

        config = settings.virtual_host_config()
        return VirtualHostRouteProvisioner(config, NginxController(config))

    from tenantctl.routing.symlink import SymlinkRouteProvisioner

    return SymlinkRouteProvisioner(settings.shared_hosting_config())
