"""VPS routes via nginx virtual hosts.

Each tenant gets one file in sites-available, named after its canonical domain
(``shop.example.com`` -> ``shop_example_com.conf``), enabled with a symlink in
sites-enabled. Every provisioning run goes through ``nginx -t`` before the
reload; a config that fails the test is rolled back.

Files written here start with MANAGED_MARKER. A file with the same name but no
marker belongs to someone else and is only replaced with ``force``.
"""

from __future__ import annotations

import asyncio
import os
import shlex
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import structlog

from tenantctl.core.config import VirtualHostConfig
from tenantctl.core.exceptions import NoDomainSetError
from tenantctl.domains.names import normalize_domain, sanitize_for_filename, with_www
from tenantctl.routing.base import RouteResult, RouteStatus, held_result
from tenantctl.routing.nginx import NginxController
from tenantctl.tenants.models import DeploymentStatus, NginxStatus, Tenant

logger = structlog.get_logger()

MANAGED_MARKER = "# Managed by tenantctl. Manual changes are overwritten on the next provision-route."

_STATIC_EXTENSIONS = "jpg|jpeg|png|gif|ico|css|js|pdf|woff|woff2|ttf|eot|svg"
_GZIP_TYPES = (
    "text/plain text/css text/xml text/javascript application/x-javascript "
    "application/xml application/javascript application/json"
)


def _common_locations(tenant: Tenant, config: VirtualHostConfig, cache_days: int) -> str:
    return f"""
    root {config.frontend_path};
    index index.html;

    gzip on;
    gzip_vary on;
    gzip_min_length 1024;
    gzip_types {_GZIP_TYPES};

    add_header X-Frame-Options "SAMEORIGIN" always;
    add_header X-Content-Type-Options "nosniff" always;
    add_header Referrer-Policy "strict-origin-when-cross-origin" always;
    add_header X-Tenant-ID "{tenant.id}" always;

    location ~* \\.({_STATIC_EXTENSIONS})$ {{
        expires {cache_days}d;
        add_header Cache-Control "public";
        try_files $uri =404;
    }}

    location / {{
        try_files $uri $uri.html $uri/ /index.html;
    }}

    location /api/ {{
        proxy_pass {config.api_upstream};
        proxy_http_version 1.1;
        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;
        proxy_set_header X-Tenant-Domain $host;
        proxy_read_timeout 60s;
    }}

    location /health {{
        access_log off;
        add_header Content-Type text/plain;
        return 200 'OK';
    }}

    location ~ /\\. {{
        deny all;
    }}
"""


def render_virtual_host(
    tenant: Tenant,
    config: VirtualHostConfig,
    server_names: list[str],
    with_ssl: bool,
) -> str:
    """Render the nginx config for a tenant.

    Args:
        tenant: Tenant being routed (name and id go into the file).
        config: Frontend root, API upstream and certificate directory.
        server_names: Canonical domain first, then aliases.
        with_ssl: Render the HTTPS server plus a redirect instead of plain HTTP.
    """
    canonical = server_names[0]
    names = " ".join(server_names)
    log_name = sanitize_for_filename(canonical)
    header = f"{MANAGED_MARKER}\n# Tenant: {tenant.name} (ID: {tenant.id})\n# Domain: {canonical}\n"
    logs = (
        f"    access_log /var/log/nginx/{log_name}_access.log;\n"
        f"    error_log /var/log/nginx/{log_name}_error.log;\n"
    )

    if not with_ssl:
        return (
            f"{header}\n"
            "server {\n"
            "    listen 80;\n"
            "    listen [::]:80;\n"
            f"    server_name {names};\n"
            f"{_common_locations(tenant, config, cache_days=7)}\n"
            f"{logs}"
            "}\n"
        )

    live = Path(config.live_path) / canonical
    return (
        f"{header}\n"
        "server {\n"
        "    listen 80;\n"
        "    listen [::]:80;\n"
        f"    server_name {names};\n"
        "    return 301 https://$host$request_uri;\n"
        "}\n"
        "\n"
        "server {\n"
        "    listen 443 ssl http2;\n"
        "    listen [::]:443 ssl http2;\n"
        f"    server_name {names};\n"
        "\n"
        f"    ssl_certificate {live / 'fullchain.pem'};\n"
        f"    ssl_certificate_key {live / 'privkey.pem'};\n"
        f"{_common_locations(tenant, config, cache_days=30)}\n"
        f"{logs}"
        "}\n"
    )


@dataclass
class _ExistingState:
    content: str | None
    link_ok: bool
    link_blocked: bool
    link_is_dir: bool = False


class VirtualHostRouteProvisioner:
    """Routes tenant domains through per-tenant nginx virtual hosts."""

    def __init__(self, config: VirtualHostConfig, nginx: NginxController | None = None) -> None:
        """Initialize virtual host provisioner.

        Args:
            config: nginx directories and frontend paths.
            nginx: Config test and reload. Defaults to running nginx directly.
        """
        self.config = config
        self.nginx = nginx or NginxController(config)
        self.sites_available = Path(config.sites_available)
        self.sites_enabled = Path(config.sites_enabled)

    def config_file(self, domain: str) -> Path:
        return self.sites_available / f"{sanitize_for_filename(domain)}.conf"

    def enabled_link(self, domain: str) -> Path:
        return self.sites_enabled / f"{sanitize_for_filename(domain)}.conf"

    def server_names(self, tenant: Tenant) -> list[str]:
        domains = [normalize_domain(d) for d in tenant.all_domains()]
        return with_www(domains) if self.config.include_www else domains

    def has_certificate(self, domain: str) -> bool:
        return (Path(self.config.live_path) / domain / "fullchain.pem").is_file()

    def render(self, tenant: Tenant) -> str:
        names = self.server_names(tenant)
        return render_virtual_host(tenant, self.config, names, self.has_certificate(names[0]))

    def manual_command(self, domain: str) -> str:
        path = self.config_file(domain)
        link = self.enabled_link(domain)
        sudo = ["sudo"] if self.config.use_sudo else []
        return " && ".join(
            [
                shlex.join([*sudo, "ln", "-sf", str(path), str(link)]),
                self.nginx.command("-t"),
                self.nginx.command("-s", "reload"),
            ]
        )

    async def provision_route(self, tenant: Tenant, force: bool = False) -> RouteResult:
        """Write, enable, test and load the tenant's virtual host.

        Returns:
            RouteResult. On success nginx_status becomes active; on a failed
            test or reload it becomes error.
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

        path = self.config_file(domain)
        link = self.enabled_link(domain)

        if not self.sites_available.is_dir() or not self.sites_enabled.is_dir():
            return RouteResult(
                domain=domain,
                status=RouteStatus.HOST_NOT_CONFIGURED,
                message=(
                    f"nginx directories {self.sites_available} and {self.sites_enabled} "
                    "must exist. Install and configure nginx first."
                ),
                target=str(path),
            )

        content = await asyncio.to_thread(self.render, tenant)
        existing = await asyncio.to_thread(self._inspect, path, link)

        if existing.link_is_dir:
            return RouteResult(
                domain=domain,
                status=RouteStatus.CONFLICT,
                message=(
                    f"{link} is a directory, not a symlink. "
                    "Move it out of sites-enabled by hand; --force does not remove directories."
                ),
                target=str(path),
                offending_files=[str(link)],
            )

        unmanaged = existing.content is not None and not existing.content.startswith(MANAGED_MARKER)
        if (unmanaged or existing.link_blocked) and not force:
            blocking = [path.name] if unmanaged else [str(link)]
            return RouteResult(
                domain=domain,
                status=RouteStatus.CONFLICT,
                message=(
                    f"{blocking[0]} exists and is not managed by tenantctl. "
                    "Review it, then re-run with --force to replace it."
                ),
                target=str(path),
                offending_files=blocking,
            )

        if existing.content == content and existing.link_ok and not force:
            return RouteResult(
                domain=domain,
                status=RouteStatus.OK,
                message=f"Virtual host for {domain} is already up to date",
                target=str(path),
            )

        try:
            link_created = await asyncio.to_thread(self._write, path, link, content)
        except OSError as e:
            try:
                await asyncio.to_thread(self._rollback, path, link, existing.content, False)
            except OSError as rollback_error:
                logger.error(
                    "vhost_rollback_failed", tenant_id=tenant.id, domain=domain, error=str(rollback_error)
                )
            return self._failed(tenant, domain, path, f"Could not write {path}: {e}")

        test = await self.nginx.test()
        if not test.ok:
            await asyncio.to_thread(self._rollback, path, link, existing.content, link_created)
            logger.error("vhost_rolled_back", tenant_id=tenant.id, domain=domain, error=test.error)
            return self._failed(
                tenant, domain, path, f"nginx config test failed, changes rolled back: {test.error}"
            )

        reload = await self.nginx.reload()
        if not reload.ok:
            return self._failed(tenant, domain, path, f"nginx reload failed: {reload.error}")

        tenant.nginx_status = NginxStatus.ACTIVE
        tenant.nginx_config_file = str(path)
        tenant.frontend_url = f"https://{domain}"
        tenant.deployment_status = DeploymentStatus.ACTIVE
        tenant.deployment_path = self.config.frontend_path
        tenant.deployed_at = datetime.now(UTC)
        logger.info("vhost_activated", tenant_id=tenant.id, domain=domain, config_file=str(path))
        return RouteResult(
            domain=domain,
            status=RouteStatus.OK,
            message=f"{domain} is served by {path.name}",
            target=str(path),
            changed=True,
            tenant_updated=True,
        )

    def _failed(self, tenant: Tenant, domain: str, path: Path, message: str) -> RouteResult:
        tenant.nginx_status = NginxStatus.ERROR
        return RouteResult(
            domain=domain,
            status=RouteStatus.FAILED,
            message=message,
            target=str(path),
            tenant_updated=True,
            manual_command=self.manual_command(domain),
        )

    def _inspect(self, path: Path, link: Path) -> _ExistingState:
        content = path.read_text(encoding="utf-8") if path.is_file() else None
        link_ok = link.is_symlink() and os.path.normpath(os.readlink(link)) == os.path.normpath(path)
        link_blocked = link.exists() and not link.is_symlink()
        link_is_dir = link_blocked and link.is_dir()
        return _ExistingState(
            content=content, link_ok=link_ok, link_blocked=link_blocked, link_is_dir=link_is_dir
        )

    def _write(self, path: Path, link: Path, content: str) -> bool:
        """Write the config and enable it. Returns True if the link was (re)created."""
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(content, encoding="utf-8")
        tmp_path.replace(path)

        if link.is_symlink() and os.path.normpath(os.readlink(link)) == os.path.normpath(path):
            return False
        if link.is_symlink() or link.exists():
            link.unlink()
        link.symlink_to(path)
        return True

    def _rollback(self, path: Path, link: Path, previous: str | None, link_created: bool) -> None:
        path.with_name(path.name + ".tmp").unlink(missing_ok=True)
        if previous is None:
            path.unlink(missing_ok=True)
        else:
            path.write_text(previous, encoding="utf-8")
        if link_created and previous is None:
            link.unlink(missing_ok=True)

    async def remove_route(self, tenant: Tenant) -> RouteResult:
        """Disable and delete the tenant's virtual host, then reload nginx."""
        if not tenant.has_domain:
            return RouteResult(
                domain=None,
                status=RouteStatus.NO_DOMAIN,
                message=str(NoDomainSetError(tenant.id, tenant.name)),
            )

        domain = normalize_domain(tenant.domain)
        path = self.config_file(domain)
        link = self.enabled_link(domain)
        existing = await asyncio.to_thread(self._inspect, path, link)

        if existing.content is not None and not existing.content.startswith(MANAGED_MARKER):
            return RouteResult(
                domain=domain,
                status=RouteStatus.CONFLICT,
                message=f"{path.name} is not managed by tenantctl; left in place",
                target=str(path),
                offending_files=[path.name],
            )

        if existing.content is None and not link.is_symlink():
            return RouteResult(
                domain=domain,
                status=RouteStatus.OK,
                message=f"No virtual host to remove for {domain}",
                target=str(path),
            )

        try:
            await asyncio.to_thread(self._delete, path, link)
        except OSError as e:
            return self._failed(tenant, domain, path, f"Could not remove {path}: {e}")

        reload = await self.nginx.reload()
        if not reload.ok:
            return self._failed(tenant, domain, path, f"nginx reload failed: {reload.error}")

        tenant.nginx_status = NginxStatus.DELETED
        tenant.nginx_config_file = None
        tenant.deployment_status = DeploymentStatus.PENDING
        tenant.deployment_path = None
        tenant.deployed_at = None
        logger.info("vhost_removed", tenant_id=tenant.id, domain=domain)
        return RouteResult(
            domain=domain,
            status=RouteStatus.OK,
            message=f"Removed virtual host for {domain}",
            target=str(path),
            changed=True,
            tenant_updated=True,
        )

    def _delete(self, path: Path, link: Path) -> None:
        if link.is_symlink():
            link.unlink()
        path.unlink(missing_ok=True)
