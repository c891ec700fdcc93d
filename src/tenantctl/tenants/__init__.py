"""Tenant records and persistence."""

from tenantctl.tenants.models import (
    DeploymentStatus,
    DomainState,
    NginxStatus,
    SslStatus,
    Tenant,
)
from tenantctl.tenants.service import TenantService, generate_api_key
from tenantctl.tenants.storage import TenantStore

__all__ = [
    "DeploymentStatus",
    "DomainState",
    "NginxStatus",
    "SslStatus",
    "Tenant",
    "TenantService",
    "TenantStore",
    "generate_api_key",
]
