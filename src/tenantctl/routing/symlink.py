"""Shared hosting routes via filesystem symlinks.

The hosting provider creates one folder per domain with a default web root:

    <domains_base_path>/example.com/public_html/   (index.html, cgi-bin, ...)

Provisioning replaces that web root with a link to the shared frontend build:

    <domains_base_path>/example.com/public_html -> <frontend_public_html_path>

The default scaffold is removed only when it holds nothing but placeholder
files. Anything else is reported as a conflict unless ``force`` is given.
"""

from __future__ import annotations

import asyncio
import os
import shlex
import shutil
from datetime import UTC, datetime
from functools import partial
from pathlib import Path

import structlog

from tenantctl.core.config import SharedHostingConfig
from tenantctl.core.exceptions import NoDomainSetError
from tenantctl.domains.names import normalize_domain
from tenantctl.routing.base import RouteResult, RouteStatus, held_result
from tenantctl.tenants.models import DeploymentStatus, Tenant

logger = structlog.get_logger()

MAX_REPORTED_FILES = 5


def _link_points_to(link: Path, expected: Path) -> bool:
    target = Path(os.readlink(link))
    if not target.is_absolute():
        target = link.parent / target
    return os.path.normpath(target) == os.path.normpath(expected)


class SymlinkRouteProvisioner:
    """Routes tenant domains by linking their web root to the shared frontend."""

    def __init__(self, config: SharedHostingConfig) -> None:
        self.config = config
        self.base_path = Path(config.domains_base_path)
        self.frontend_path = Path(config.frontend_public_html_path)
        self.placeholders = frozenset(config.placeholder_files)

    def host_dir(self, domain: str) -> Path:
        return self.base_path / domain

    def route_target(self, domain: str) -> Path:
        return self.host_dir(domain) / self.config.route_dir_name

    def manual_command(self, target: Path) -> str:
        return shlex.join(["ln", "-s", str(self.frontend_path), str(target)])

    async def provision_route(self, tenant: Tenant, force: bool = False) -> RouteResult:
        """Point the tenant's web root at the shared frontend.

        Args:
            tenant: Tenant whose canonical domain is routed.
            force: Replace the web root even if it holds unrecognized content,
                and recreate a link that is already correct.

        Returns:
            RouteResult. On success the tenant's route fields are updated.
        """
        if not tenant.has_domain:
            return RouteResult(
                domain=None,
                status=RouteStatus.NO_DOMAIN,
                message=str(NoDomainSetError(tenant.id, tenant.name)),
            )

        domain = normalize_domain(tenant.domain)
        held = held_result(tenant, domain)
        if held is not None:
            logger.warning("route_refused_held", tenant_id=tenant.id, domain=domain)
            return held

        result = await asyncio.to_thread(self._provision, domain, force)

        if result.ok and result.changed:
            tenant.frontend_url = f"https://{domain}"
            tenant.deployment_status = DeploymentStatus.ACTIVE
            tenant.deployment_path = result.target
            tenant.deployed_at = datetime.now(UTC)
            result.tenant_updated = True
            logger.info("route_linked", tenant_id=tenant.id, domain=domain, target=result.target)
        elif not result.ok:
            logger.warning(
                "route_not_provisioned",
                tenant_id=tenant.id,
                domain=domain,
                status=result.status.value,
                detail=result.message,
            )
        return result

    def _provision(self, domain: str, force: bool) -> RouteResult:
        host_dir = self.host_dir(domain)
        target = self.route_target(domain)

        if not host_dir.is_dir():
            return RouteResult(
                domain=domain,
                status=RouteStatus.HOST_NOT_CONFIGURED,
                message=(
                    f"Domain folder {host_dir} does not exist. "
                    "Add the domain in the hosting control panel first, then retry."
                ),
                target=str(target),
            )

        if not self.frontend_path.is_dir():
            return RouteResult(
                domain=domain,
                status=RouteStatus.FAILED,
                message=f"Shared frontend build not found at {self.frontend_path}",
                target=str(target),
            )

        if target.is_symlink():
            if not force and _link_points_to(target, self.frontend_path):
                return RouteResult(
                    domain=domain,
                    status=RouteStatus.OK,
                    message=f"{target} already links to the shared frontend",
                    target=str(target),
                )
            remove = target.unlink
        elif target.is_dir():
            entries = sorted(os.listdir(target))
            unknown = [name for name in entries if name not in self.placeholders]
            if unknown and not force:
                return self._conflict(domain, target, unknown)
            remove = partial(shutil.rmtree, target)
        elif target.exists():
            if not force:
                return self._conflict(domain, target, [target.name])
            remove = target.unlink
        else:
            remove = None

        try:
            if remove is not None:
                remove()
                logger.info("route_target_removed", domain=domain, target=str(target), force=force)
            os.symlink(self.frontend_path, target, target_is_directory=True)
        except OSError as e:
            return RouteResult(
                domain=domain,
                status=RouteStatus.FAILED,
                message=f"Could not link {target}: {e}",
                target=str(target),
                changed=remove is not None and not target.exists(),
                manual_command=self.manual_command(target),
            )

        return RouteResult(
            domain=domain,
            status=RouteStatus.OK,
            message=f"{domain} now serves the shared frontend",
            target=str(target),
            changed=True,
        )

    def _conflict(self, domain: str, target: Path, unknown: list[str]) -> RouteResult:
        return RouteResult(
            domain=domain,
            status=RouteStatus.CONFLICT,
            message=(
                f"{target} contains files that are not hosting placeholders. "
                "Review them, then re-run with --force to replace the folder."
            ),
            target=str(target),
            offending_files=unknown[:MAX_REPORTED_FILES],
        )

    async def remove_route(self, tenant: Tenant) -> RouteResult:
        """Remove the link to the shared frontend. Real directories are never touched."""
        if not tenant.has_domain:
            return RouteResult(
                domain=None,
                status=RouteStatus.NO_DOMAIN,
                message=str(NoDomainSetError(tenant.id, tenant.name)),
            )

        domain = normalize_domain(tenant.domain)
        result = await asyncio.to_thread(self._remove, domain)
        if result.ok and result.changed:
            tenant.deployment_status = DeploymentStatus.PENDING
            tenant.deployment_path = None
            tenant.deployed_at = None
            result.tenant_updated = True
            logger.info("route_removed", tenant_id=tenant.id, domain=domain)
        return result

    def _remove(self, domain: str) -> RouteResult:
        target = self.route_target(domain)
        if target.is_symlink():
            if not _link_points_to(target, self.frontend_path):
                return RouteResult(
                    domain=domain,
                    status=RouteStatus.CONFLICT,
                    message=f"{target} links somewhere other than the shared frontend; left in place",
                    target=str(target),
                )
            try:
                target.unlink()
            except OSError as e:
                return RouteResult(
                    domain=domain,
                    status=RouteStatus.FAILED,
                    message=f"Could not remove {target}: {e}",
                    target=str(target),
                    manual_command=shlex.join(["rm", str(target)]),
                )
            return RouteResult(
                domain=domain,
                status=RouteStatus.OK,
                message=f"Removed route for {domain}",
                target=str(target),
                changed=True,
            )

        if target.exists():
            return RouteResult(
                domain=domain,
                status=RouteStatus.CONFLICT,
                message=f"{target} is not a link to the shared frontend; left in place",
                target=str(target),
            )

        return RouteResult(
            domain=domain,
            status=RouteStatus.OK,
            message=f"No route to remove for {domain}",
            target=str(target),
        )
