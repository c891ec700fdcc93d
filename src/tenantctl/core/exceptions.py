"""Caller errors.

Operational failures (bad DNS, a conflicting web root, a failed ACME run) are
returned as result objects, not raised. The exceptions here mark mistakes in
how a command was invoked and are meant to stop it immediately.
"""

from __future__ import annotations


class TenantctlError(Exception):
    """Base class for tenantctl errors."""


class TenantNotFoundError(TenantctlError):
    """No tenant exists with the requested id."""

    def __init__(self, tenant_id: int) -> None:
        self.tenant_id = tenant_id
        super().__init__(f"Tenant (ID: {tenant_id}) not found")


class NoDomainSetError(TenantctlError):
    """The tenant has no domain, so there is nothing to provision."""

    def __init__(self, tenant_id: int, name: str = "") -> None:
        self.tenant_id = tenant_id
        label = f"'{name}'" if name else f"(ID: {tenant_id})"
        super().__init__(f"Tenant {label} does not have a domain set")


class InvalidDomainError(TenantctlError, ValueError):
    """A domain name failed validation."""


class ConfigurationError(TenantctlError):
    """Settings are missing or inconsistent for the requested operation."""
