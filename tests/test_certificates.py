"""Tests for certificate issuance, renewal and status tracking."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from tenantctl.certificates.acme import CertbotClient
from tenantctl.certificates.inspect import CertificateInspector, covers_domain
from tenantctl.certificates.manager import CertificateManager
from tenantctl.core.config import CertificateConfig
from tenantctl.tenants.models import SslStatus


def build_certificate(
    common_name: str, not_after: datetime, san: list[str] | None = None
) -> x509.Certificate:
    """Self-signed certificate expiring at not_after, with optional SAN DNS names."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_after - timedelta(days=90))
        .not_valid_after(not_after)
    )
    if san:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(n) for n in san]), critical=False
        )
    return builder.sign(key, hashes.SHA256())


def write_certificate(live_path: Path, domain: str, not_after: datetime) -> Path:
    """Write a self-signed fullchain.pem for a domain, expiring at not_after."""
    cert = build_certificate(domain, not_after)
    path = live_path / domain / "fullchain.pem"
    path.parent.mkdir(parents=True)
    path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    return path


def _manager(fake_acme, fake_inspector, **config) -> CertificateManager:
    values = {"development_mode": False, "admin_email": "ops@example.com"}
    values.update(config)
    return CertificateManager(CertificateConfig(**values), fake_acme, fake_inspector)


class TestCertbotClient:
    """Tests for certbot argv construction."""

    def test_issue_argv(self):
        """Test the certbot invocation for a domain and its www alias."""
        client = CertbotClient(CertificateConfig(admin_email="ops@example.com"))

        argv = client.issue_argv(["example.com", "www.example.com"], "ops@example.com")

        assert argv == [
            "sudo", "certbot", "--nginx",
            "-d", "example.com", "-d", "www.example.com",
            "--non-interactive", "--agree-tos",
            "--email", "ops@example.com", "--redirect",
        ]

    def test_issue_argv_without_sudo(self):
        """Test sudo can be turned off."""
        client = CertbotClient(CertificateConfig(use_sudo=False))

        assert client.issue_argv(["example.com"], "a@example.com")[0] == "certbot"

    def test_issue_argv_requires_domain(self):
        """Test an empty domain list is a programmer error."""
        client = CertbotClient(CertificateConfig())

        with pytest.raises(ValueError):
            client.issue_argv([], "a@example.com")

    def test_issue_command_is_shell_ready(self):
        """Test the manual command is a single shell line."""
        client = CertbotClient(CertificateConfig(use_sudo=False))

        command = client.issue_command(["example.com"], "ops@example.com")

        assert command.startswith("certbot --nginx -d example.com")
        assert command.endswith("--email ops@example.com --redirect")


class TestCertificateInspector:
    """Tests for reading expiry from the live directory."""

    def test_local_expiry(self, tmp_path):
        """Test expiry is read from fullchain.pem."""
        not_after = datetime(2030, 1, 1, tzinfo=UTC)
        write_certificate(tmp_path, "example.com", not_after)
        inspector = CertificateInspector(tmp_path)

        assert inspector.local_expiry("example.com") == not_after

    def test_local_expiry_missing(self, tmp_path):
        """Test a missing certificate gives None."""
        inspector = CertificateInspector(tmp_path)

        assert inspector.local_expiry("example.com") is None

    def test_local_expiry_garbage(self, tmp_path):
        """Test an unreadable file gives None."""
        path = tmp_path / "example.com" / "fullchain.pem"
        path.parent.mkdir()
        path.write_text("not a certificate")

        assert CertificateInspector(tmp_path).local_expiry("example.com") is None

    @pytest.mark.asyncio
    async def test_find_expiry_local_only(self, tmp_path):
        """Test find_expiry uses the live directory without probing."""
        not_after = datetime(2030, 1, 1, tzinfo=UTC)
        write_certificate(tmp_path, "example.com", not_after)
        inspector = CertificateInspector(tmp_path)

        assert await inspector.find_expiry("example.com", remote=False) == not_after
        assert await inspector.find_expiry("other.example.com", remote=False) is None


def _tls_connection(cert: x509.Certificate):
    """open_connection stand-in whose TLS peer presents cert."""
    ssl_object = MagicMock()
    ssl_object.getpeercert.return_value = cert.public_bytes(serialization.Encoding.DER)
    writer = MagicMock()
    writer.get_extra_info.return_value = ssl_object
    return AsyncMock(return_value=(MagicMock(), writer))


class TestCertificateNames:
    """Tests for matching the presented certificate to the domain."""

    NOT_AFTER = datetime(2030, 1, 1, tzinfo=UTC)

    def test_san_exact(self):
        cert = build_certificate("example.com", self.NOT_AFTER, san=["example.com", "www.example.com"])

        assert covers_domain(cert, "www.example.com")
        assert covers_domain(cert, "Example.com.")
        assert not covers_domain(cert, "shop.example.com")

    def test_wildcard_covers_one_label(self):
        cert = build_certificate("*.example.com", self.NOT_AFTER, san=["*.example.com"])

        assert covers_domain(cert, "shop.example.com")
        assert not covers_domain(cert, "example.com")
        assert not covers_domain(cert, "a.shop.example.com")

    def test_san_takes_precedence_over_common_name(self):
        """Test the subject CN is ignored once a SAN extension is present."""
        cert = build_certificate("example.com", self.NOT_AFTER, san=["other-tenant.test"])

        assert not covers_domain(cert, "example.com")

    def test_common_name_without_san(self):
        cert = build_certificate("example.com", self.NOT_AFTER)

        assert covers_domain(cert, "example.com")

    @pytest.mark.asyncio
    async def test_remote_expiry_for_matching_certificate(self, tmp_path):
        cert = build_certificate("example.com", self.NOT_AFTER, san=["example.com"])

        with patch("tenantctl.certificates.inspect.asyncio.open_connection", _tls_connection(cert)):
            expiry = await CertificateInspector(tmp_path).remote_expiry("example.com")

        assert expiry == self.NOT_AFTER

    @pytest.mark.asyncio
    async def test_remote_expiry_ignores_other_sites_certificate(self, tmp_path):
        """Test a default server answering with another tenant's certificate is not counted."""
        cert = build_certificate("other-tenant.test", self.NOT_AFTER, san=["other-tenant.test"])

        with patch("tenantctl.certificates.inspect.asyncio.open_connection", _tls_connection(cert)):
            inspector = CertificateInspector(tmp_path)
            assert await inspector.remote_expiry("example.com") is None
            assert await inspector.find_expiry("example.com") is None

    @pytest.mark.asyncio
    async def test_status_stays_pending_with_foreign_certificate(self, tmp_path, make_tenant, fake_acme):
        cert = build_certificate("other-tenant.test", self.NOT_AFTER, san=["other-tenant.test"])
        manager = CertificateManager(
            CertificateConfig(development_mode=False), fake_acme, CertificateInspector(tmp_path)
        )
        tenant = make_tenant(domain="example.com")

        with patch("tenantctl.certificates.inspect.asyncio.open_connection", _tls_connection(cert)):
            status = await manager.check_status(tenant)

        assert status == SslStatus.PENDING
        assert tenant.ssl_expires_at is None


class TestDevelopmentMode:
    """Certificate operations never reach the ACME client in development mode."""

    @pytest.mark.asyncio
    async def test_generate_skipped(self, make_tenant, fake_acme, fake_inspector):
        """Test generation reports success-with-skip and does not call the client."""
        manager = _manager(fake_acme, fake_inspector, development_mode=True)
        tenant = make_tenant(domain="example.com")

        result = await manager.generate_certificate(tenant)

        assert result.success is True
        assert result.skipped is True
        assert "example.com" in result.raw_command
        assert fake_acme.calls == 0
        assert tenant.ssl_status == SslStatus.PENDING

    @pytest.mark.asyncio
    async def test_renew_skipped(self, fake_acme, fake_inspector):
        """Test renewal reports success-with-skip and does not call the client."""
        manager = _manager(fake_acme, fake_inspector, development_mode=True)

        result = await manager.renew_all_certificates()

        assert result.success is True
        assert result.skipped is True
        assert fake_acme.calls == 0


class TestGenerateCertificate:
    """Tests for CertificateManager.generate_certificate."""

    @pytest.mark.asyncio
    async def test_no_domain(self, make_tenant, fake_acme, fake_inspector):
        """Test a tenant without a domain fails before the client is called."""
        result = await _manager(fake_acme, fake_inspector).generate_certificate(make_tenant())

        assert result.success is False
        assert fake_acme.calls == 0

    @pytest.mark.asyncio
    async def test_success_updates_tenant(self, make_tenant, fake_acme, fake_inspector):
        """Test success records status, issue time and a default expiry."""
        tenant = make_tenant(domain="example.com", additional_domains=["example.net"])
        before = datetime.now(UTC)

        result = await _manager(fake_acme, fake_inspector).generate_certificate(tenant)

        assert result.success is True
        assert result.skipped is False
        assert fake_acme.issued == [
            (["example.com", "www.example.com", "example.net", "www.example.net"], "ops@example.com")
        ]
        assert tenant.ssl_status == SslStatus.ACTIVE
        assert tenant.ssl_issued_at >= before
        assert timedelta(days=89) < tenant.ssl_expires_at - before < timedelta(days=91)

    @pytest.mark.asyncio
    async def test_success_uses_real_expiry(self, make_tenant, fake_acme, fake_inspector):
        """Test the issued certificate's expiry wins over the default."""
        fake_inspector.expiry = datetime(2031, 5, 1, tzinfo=UTC)
        tenant = make_tenant(domain="example.com")

        await _manager(fake_acme, fake_inspector).generate_certificate(tenant)

        assert tenant.ssl_expires_at == datetime(2031, 5, 1, tzinfo=UTC)
        assert fake_inspector.lookups == [("example.com", False)]

    @pytest.mark.asyncio
    async def test_without_www(self, make_tenant, fake_acme, fake_inspector):
        """Test www names can be left off."""
        tenant = make_tenant(domain="example.com")

        await _manager(fake_acme, fake_inspector, include_www=False).generate_certificate(tenant)

        assert fake_acme.issued[0][0] == ["example.com"]

    @pytest.mark.asyncio
    async def test_failure_leaves_state(self, make_tenant, make_acme, fake_inspector):
        """Test a failed run surfaces the error and raw command without touching the tenant."""
        client = make_acme(returncode=1, stderr="too many certificates already issued")
        tenant = make_tenant(domain="example.com")

        result = await _manager(client, fake_inspector).generate_certificate(tenant)

        assert result.success is False
        assert result.error == "too many certificates already issued"
        assert "example.com" in result.raw_command
        assert tenant.ssl_status == SslStatus.PENDING
        assert tenant.ssl_expires_at is None
        assert len(client.issued) == 1


class TestRenewAll:
    """Tests for bulk renewal."""

    @pytest.mark.asyncio
    async def test_renew_runs_once(self, fake_acme, fake_inspector):
        """Test renewal is one client call for all certificates."""
        fake_acme.stdout = "No renewals were attempted."

        result = await _manager(fake_acme, fake_inspector).renew_all_certificates()

        assert result.success is True
        assert result.output == "No renewals were attempted."
        assert fake_acme.renew_calls == 1
        assert fake_acme.issued == []

    @pytest.mark.asyncio
    async def test_renew_failure(self, make_acme, fake_inspector):
        """Test a failed renewal returns the error."""
        client = make_acme(returncode=1, stderr="renewal failed")

        result = await _manager(client, fake_inspector).renew_all_certificates()

        assert result.success is False
        assert result.error == "renewal failed"


class TestCheckStatus:
    """Tests for CertificateManager.check_status."""

    @pytest.mark.asyncio
    async def test_found_certificate_marks_active(self, make_tenant, fake_acme, fake_inspector):
        """Test a valid certificate in use marks the tenant active."""
        fake_inspector.expiry = datetime.now(UTC) + timedelta(days=60)
        tenant = make_tenant(domain="example.com")

        status = await _manager(fake_acme, fake_inspector).check_status(tenant)

        assert status == SslStatus.ACTIVE
        assert tenant.ssl_expires_at == fake_inspector.expiry

    @pytest.mark.asyncio
    async def test_found_expired_certificate(self, make_tenant, fake_acme, fake_inspector):
        """Test an expired certificate in use marks the tenant expired."""
        fake_inspector.expiry = datetime.now(UTC) - timedelta(days=1)
        tenant = make_tenant(domain="example.com", ssl_status=SslStatus.ACTIVE)

        status = await _manager(fake_acme, fake_inspector).check_status(tenant)

        assert status == SslStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_recorded_expiry_passed(self, make_tenant, fake_acme, fake_inspector):
        """Test an active status is not trusted past its recorded expiry."""
        tenant = make_tenant(
            domain="example.com",
            ssl_status=SslStatus.ACTIVE,
            ssl_expires_at=datetime.now(UTC) - timedelta(hours=1),
        )

        status = await _manager(fake_acme, fake_inspector).check_status(tenant)

        assert status == SslStatus.EXPIRED
        assert tenant.ssl_status == SslStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_recorded_expiry_in_future(self, make_tenant, fake_acme, fake_inspector):
        """Test a recorded active certificate stays active until its expiry."""
        tenant = make_tenant(
            domain="example.com",
            ssl_status=SslStatus.ACTIVE,
            ssl_expires_at=datetime.now(UTC) + timedelta(days=60),
        )

        status = await _manager(fake_acme, fake_inspector).check_status(tenant)

        assert status == SslStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_remote_flag_passed_through(self, make_tenant, fake_acme, fake_inspector):
        """Test the TLS probe can be skipped."""
        tenant = make_tenant(domain="https://Example.com/")

        await _manager(fake_acme, fake_inspector).check_status(tenant, remote=False)

        assert fake_inspector.lookups == [("example.com", False)]
