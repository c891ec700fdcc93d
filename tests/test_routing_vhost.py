"""Tests for nginx virtual host provisioning."""

from __future__ import annotations

import os
from unittest.mock import AsyncMock, MagicMock

import pytest

from tenantctl.core.config import Settings, VirtualHostConfig
from tenantctl.core.process import CommandResult
from tenantctl.routing.base import RouteStatus, build_provisioner
from tenantctl.routing.nginx import NginxController
from tenantctl.routing.symlink import SymlinkRouteProvisioner
from tenantctl.routing.vhost import MANAGED_MARKER, VirtualHostRouteProvisioner, render_virtual_host
from tenantctl.tenants.models import DeploymentStatus, NginxStatus


def _ok(*argv: str) -> CommandResult:
    return CommandResult(argv=argv, returncode=0)


def _fail(stderr: str) -> CommandResult:
    return CommandResult(argv=("nginx", "-t"), returncode=1, stderr=stderr)


@pytest.fixture
def config(tmp_path):
    available = tmp_path / "sites-available"
    enabled = tmp_path / "sites-enabled"
    available.mkdir()
    enabled.mkdir()
    return VirtualHostConfig(
        sites_available=str(available),
        sites_enabled=str(enabled),
        frontend_path="/var/www/frontend/public",
        live_path=str(tmp_path / "live"),
        use_sudo=False,
    )


@pytest.fixture
def nginx():
    controller = MagicMock(spec=NginxController)
    controller.test = AsyncMock(return_value=_ok("nginx", "-t"))
    controller.reload = AsyncMock(return_value=_ok("nginx", "-s", "reload"))
    controller.command = MagicMock(side_effect=lambda *args: " ".join(["nginx", *args]))
    return controller


@pytest.fixture
def provisioner(config, nginx):
    return VirtualHostRouteProvisioner(config, nginx)


class TestRenderVirtualHost:
    """Tests for the rendered nginx config."""

    def test_http_only(self, config, make_tenant):
        """Test a domain without a certificate gets a plain HTTP server."""
        tenant = make_tenant(7, name="Shop", domain="shop.example.com")

        content = render_virtual_host(tenant, config, ["shop.example.com", "www.shop.example.com"], with_ssl=False)

        assert content.startswith(MANAGED_MARKER)
        assert "server_name shop.example.com www.shop.example.com;" in content
        assert "listen 80;" in content
        assert "listen 443" not in content
        assert 'add_header X-Tenant-ID "7" always;' in content
        assert "root /var/www/frontend/public;" in content
        assert "proxy_set_header X-Tenant-Domain $host;" in content
        assert "try_files $uri $uri.html $uri/ /index.html;" in content

    def test_with_ssl(self, config, make_tenant):
        """Test the certificate variant redirects HTTP and serves HTTPS."""
        tenant = make_tenant(domain="shop.example.com")

        content = render_virtual_host(tenant, config, ["shop.example.com"], with_ssl=True)

        assert "return 301 https://$host$request_uri;" in content
        assert "listen 443 ssl http2;" in content
        assert f"ssl_certificate {config.live_path}/shop.example.com/fullchain.pem;" in content
        assert f"ssl_certificate_key {config.live_path}/shop.example.com/privkey.pem;" in content


class TestProvisionRoute:
    """Tests for VirtualHostRouteProvisioner.provision_route."""

    @pytest.mark.asyncio
    async def test_writes_and_enables(self, provisioner, config, nginx, make_tenant):
        """Test a new tenant gets a config file, an enabled link and a reload."""
        tenant = make_tenant(domain="https://Shop.Example.com/")

        result = await provisioner.provision_route(tenant)

        path = provisioner.config_file("shop.example.com")
        link = provisioner.enabled_link("shop.example.com")
        assert result.status == RouteStatus.OK
        assert result.changed is True
        assert result.tenant_updated is True
        assert path.name == "shop_example_com.conf"
        assert path.read_text().startswith(MANAGED_MARKER)
        assert os.readlink(link) == str(path)
        nginx.test.assert_awaited_once()
        nginx.reload.assert_awaited_once()
        assert tenant.nginx_status == NginxStatus.ACTIVE
        assert tenant.nginx_config_file == str(path)
        assert tenant.deployment_status == DeploymentStatus.ACTIVE
        assert tenant.deployment_path == config.frontend_path

    @pytest.mark.asyncio
    async def test_second_call_is_noop(self, provisioner, nginx, make_tenant):
        """Test an up-to-date virtual host is not rewritten or reloaded."""
        await provisioner.provision_route(make_tenant(domain="shop.example.com"))
        path = provisioner.config_file("shop.example.com")
        mtime = path.stat().st_mtime_ns
        nginx.test.reset_mock()
        nginx.reload.reset_mock()
        tenant = make_tenant(domain="shop.example.com")

        result = await provisioner.provision_route(tenant)

        assert result.ok
        assert result.changed is False
        assert result.tenant_updated is False
        assert path.stat().st_mtime_ns == mtime
        nginx.test.assert_not_awaited()
        nginx.reload.assert_not_awaited()
        assert tenant.nginx_status == NginxStatus.PENDING

    @pytest.mark.asyncio
    async def test_aliases_become_server_names(self, provisioner, make_tenant):
        """Test additional domains are served by the same virtual host."""
        tenant = make_tenant(domain="shop.example.com", additional_domains=["shop.example.org"])

        await provisioner.provision_route(tenant)

        content = provisioner.config_file("shop.example.com").read_text()
        assert (
            "server_name shop.example.com www.shop.example.com shop.example.org www.shop.example.org;"
            in content
        )

    @pytest.mark.asyncio
    async def test_uses_ssl_when_certificate_exists(self, provisioner, config, tmp_path, make_tenant):
        """Test an issued certificate switches the config to HTTPS."""
        live = tmp_path / "live" / "shop.example.com"
        live.mkdir(parents=True)
        (live / "fullchain.pem").write_text("cert")

        await provisioner.provision_route(make_tenant(domain="shop.example.com"))

        content = provisioner.config_file("shop.example.com").read_text()
        assert "listen 443 ssl http2;" in content

    @pytest.mark.asyncio
    async def test_unmanaged_file_conflicts(self, provisioner, nginx, make_tenant):
        """Test a hand-written config with the same name is left alone."""
        path = provisioner.config_file("shop.example.com")
        path.write_text("server { listen 80; }\n")

        result = await provisioner.provision_route(make_tenant(domain="shop.example.com"))

        assert result.status == RouteStatus.CONFLICT
        assert result.offending_files == ["shop_example_com.conf"]
        assert path.read_text() == "server { listen 80; }\n"
        nginx.test.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_force_replaces_unmanaged_file(self, provisioner, make_tenant):
        """Test force takes over an unmanaged config."""
        path = provisioner.config_file("shop.example.com")
        path.write_text("server { listen 80; }\n")

        result = await provisioner.provision_route(make_tenant(domain="shop.example.com"), force=True)

        assert result.ok
        assert path.read_text().startswith(MANAGED_MARKER)

    @pytest.mark.asyncio
    async def test_directory_at_enabled_path_conflicts_even_with_force(self, provisioner, nginx, make_tenant):
        """Test a directory in sites-enabled blocks the route and the unmanaged config survives."""
        path = provisioner.config_file("example.com")
        path.write_text("server { listen 80; }\n")
        link = provisioner.enabled_link("example.com")
        link.mkdir()

        result = await provisioner.provision_route(make_tenant(domain="example.com"), force=True)

        assert result.status == RouteStatus.CONFLICT
        assert result.offending_files == [str(link)]
        assert path.name == "example_com.conf"
        assert path.read_text() == "server { listen 80; }\n"
        assert link.is_dir()
        nginx.test.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_write_failure_restores_replaced_config(self, provisioner, nginx, make_tenant, monkeypatch):
        """Test a failure while enabling puts the overwritten config back."""
        path = provisioner.config_file("example.com")
        path.write_text("server { listen 80; }\n")

        def deny(*args, **kwargs):
            raise PermissionError("Permission denied")

        monkeypatch.setattr(os, "symlink", deny)

        result = await provisioner.provision_route(make_tenant(domain="example.com"), force=True)

        assert result.status == RouteStatus.FAILED
        assert "Permission denied" in result.message
        assert path.read_text() == "server { listen 80; }\n"
        assert not path.with_name(path.name + ".tmp").exists()
        assert not os.path.lexists(provisioner.enabled_link("example.com"))
        nginx.test.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_test_rolls_back(self, provisioner, nginx, make_tenant):
        """Test a config rejected by nginx -t is removed and the reload skipped."""
        nginx.test.return_value = _fail("nginx: [emerg] unknown directive")
        tenant = make_tenant(domain="shop.example.com")

        result = await provisioner.provision_route(tenant)

        assert result.status == RouteStatus.FAILED
        assert "unknown directive" in result.message
        assert result.manual_command is not None
        assert "nginx -t" in result.manual_command
        assert not provisioner.config_file("shop.example.com").exists()
        assert not os.path.lexists(provisioner.enabled_link("shop.example.com"))
        nginx.reload.assert_not_awaited()
        assert tenant.nginx_status == NginxStatus.ERROR
        assert result.tenant_updated is True
        assert tenant.deployment_status == DeploymentStatus.PENDING

    @pytest.mark.asyncio
    async def test_failed_test_restores_previous_config(self, provisioner, nginx, make_tenant):
        """Test a rejected update puts the previous managed config back."""
        await provisioner.provision_route(make_tenant(domain="shop.example.com"))
        path = provisioner.config_file("shop.example.com")
        previous = path.read_text()
        nginx.test.return_value = _fail("nginx: [emerg] bad")

        result = await provisioner.provision_route(
            make_tenant(domain="shop.example.com", additional_domains=["shop.example.org"])
        )

        assert result.status == RouteStatus.FAILED
        assert path.read_text() == previous
        assert os.path.islink(provisioner.enabled_link("shop.example.com"))

    @pytest.mark.asyncio
    async def test_failed_reload(self, provisioner, nginx, make_tenant):
        """Test a failed reload marks the virtual host as errored."""
        nginx.reload.return_value = CommandResult(argv=("nginx", "-s", "reload"), returncode=1, stderr="no pid")
        tenant = make_tenant(domain="shop.example.com")

        result = await provisioner.provision_route(tenant)

        assert result.status == RouteStatus.FAILED
        assert "reload failed" in result.message
        assert tenant.nginx_status == NginxStatus.ERROR

    @pytest.mark.asyncio
    async def test_missing_nginx_directories(self, tmp_path, nginx, make_tenant):
        """Test a host without nginx directories is reported."""
        config = VirtualHostConfig(
            sites_available=str(tmp_path / "nope-available"),
            sites_enabled=str(tmp_path / "nope-enabled"),
        )

        result = await VirtualHostRouteProvisioner(config, nginx).provision_route(
            make_tenant(domain="shop.example.com")
        )

        assert result.status == RouteStatus.HOST_NOT_CONFIGURED
        nginx.test.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_domain(self, provisioner, make_tenant):
        result = await provisioner.provision_route(make_tenant())

        assert result.status == RouteStatus.NO_DOMAIN

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"deployment_status": DeploymentStatus.SUSPENDED},
            {"deployment_status": DeploymentStatus.FAILED},
            {"is_active": False},
        ],
    )
    async def test_held_tenant_refused(self, provisioner, config, nginx, make_tenant, overrides):
        """Test a held tenant gets no virtual host and nginx is left alone."""
        tenant = make_tenant(domain="shop.example.com", **overrides)
        status = tenant.deployment_status

        result = await provisioner.provision_route(tenant)

        assert result.status == RouteStatus.FAILED
        assert "resume the tenant first" in result.message
        assert tenant.deployment_status == status
        assert tenant.nginx_status == NginxStatus.PENDING
        assert os.listdir(config.sites_available) == []
        assert os.listdir(config.sites_enabled) == []
        nginx.test.assert_not_awaited()
        nginx.reload.assert_not_awaited()


class TestRemoveRoute:
    """Tests for VirtualHostRouteProvisioner.remove_route."""

    @pytest.mark.asyncio
    async def test_removes_and_reloads(self, provisioner, nginx, make_tenant):
        """Test removal deletes the file and link and reloads nginx."""
        tenant = make_tenant(domain="shop.example.com")
        await provisioner.provision_route(tenant)
        nginx.reload.reset_mock()

        result = await provisioner.remove_route(tenant)

        assert result.ok
        assert result.changed is True
        assert not provisioner.config_file("shop.example.com").exists()
        assert not os.path.lexists(provisioner.enabled_link("shop.example.com"))
        nginx.reload.assert_awaited_once()
        assert tenant.nginx_status == NginxStatus.DELETED
        assert tenant.nginx_config_file is None

    @pytest.mark.asyncio
    async def test_keeps_unmanaged_file(self, provisioner, make_tenant):
        path = provisioner.config_file("shop.example.com")
        path.write_text("server {}\n")

        result = await provisioner.remove_route(make_tenant(domain="shop.example.com"))

        assert result.status == RouteStatus.CONFLICT
        assert path.exists()

    @pytest.mark.asyncio
    async def test_nothing_to_remove(self, provisioner, nginx, make_tenant):
        result = await provisioner.remove_route(make_tenant(domain="shop.example.com"))

        assert result.ok
        assert result.changed is False
        nginx.reload.assert_not_awaited()


class TestNginxController:
    """Tests for the nginx command wrapper."""

    def test_command_with_sudo(self):
        controller = NginxController(VirtualHostConfig(use_sudo=True))

        assert controller.command("-t") == "sudo nginx -t"

    def test_command_without_sudo(self):
        controller = NginxController(VirtualHostConfig(use_sudo=False, nginx_binary="/usr/sbin/nginx"))

        assert controller.command("-s", "reload") == "/usr/sbin/nginx -s reload"


class TestBuildProvisioner:
    """Tests for backend selection."""

    def test_shared_mode(self):
        provisioner = build_provisioner(Settings(hosting_mode="shared"))

        assert isinstance(provisioner, SymlinkRouteProvisioner)

    def test_vps_mode(self):
        provisioner = build_provisioner(Settings(hosting_mode="vps"))

        assert isinstance(provisioner, VirtualHostRouteProvisioner)
        assert isinstance(provisioner.nginx, NginxController)
