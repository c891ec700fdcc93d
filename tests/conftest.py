"""Shared fixtures for tenantctl tests."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

import pytest

from tenantctl.core.process import CommandResult
from tenantctl.tenants.models import Tenant
from tenantctl.tenants.storage import TenantStore


class FakeAcmeClient:
    """ACME client stand-in that records calls instead of spawning certbot."""

    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.issued: list[tuple[list[str], str]] = []
        self.renew_calls = 0

    def issue_command(self, domains: Sequence[str], contact_email: str) -> str:
        args = " ".join(f"-d {d}" for d in domains)
        return f"certbot --nginx {args} --email {contact_email}"

    async def issue(self, domains: Sequence[str], contact_email: str) -> CommandResult:
        self.issued.append((list(domains), contact_email))
        return CommandResult(
            argv=("certbot", *domains),
            returncode=self.returncode,
            stdout=self.stdout,
            stderr=self.stderr,
        )

    async def renew_all(self) -> CommandResult:
        self.renew_calls += 1
        return CommandResult(
            argv=("certbot", "renew"),
            returncode=self.returncode,
            stdout=self.stdout,
            stderr=self.stderr,
        )

    @property
    def calls(self) -> int:
        return len(self.issued) + self.renew_calls


class FakeInspector:
    """Certificate inspector returning a fixed expiry."""

    def __init__(self, expiry: datetime | None = None) -> None:
        self.expiry = expiry
        self.lookups: list[tuple[str, bool]] = []

    async def find_expiry(self, domain: str, remote: bool = True) -> datetime | None:
        self.lookups.append((domain, remote))
        return self.expiry


@pytest.fixture
def make_tenant():
    """Factory for tenant records with sensible defaults."""

    def _make(tenant_id: int = 1, **overrides) -> Tenant:
        values = {
            "id": tenant_id,
            "name": f"Tenant {tenant_id}",
            "slug": f"tenant-{tenant_id}",
            "api_key": f"tk_test{tenant_id}",
        }
        values.update(overrides)
        return Tenant(**values)

    return _make


@pytest.fixture
def store(tmp_path):
    """Tenant store backed by a temporary file."""
    return TenantStore(tmp_path / "tenants.json")


@pytest.fixture
def fake_acme():
    return FakeAcmeClient()


@pytest.fixture
def fake_inspector():
    return FakeInspector()


@pytest.fixture
def make_acme():
    """Factory for fake ACME clients with a chosen exit code and output."""
    return FakeAcmeClient
