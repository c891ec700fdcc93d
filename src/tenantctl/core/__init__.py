"""Core."""

from .config import (
    CertificateConfig,
    ResolverConfig,
    Settings,
    SharedHostingConfig,
    VerificationConfig,
    VirtualHostConfig,
    load_settings,
)
from .exceptions import (
    ConfigurationError,
    InvalidDomainError,
    NoDomainSetError,
    TenantctlError,
    TenantNotFoundError,
)

__all__ = [
    "CertificateConfig",
    "ConfigurationError",
    "InvalidDomainError",
    "NoDomainSetError",
    "ResolverConfig",
    "Settings",
    "SharedHostingConfig",
    "TenantNotFoundError",
    "TenantctlError",
    "VerificationConfig",
    "VirtualHostConfig",
    "load_settings",
]
