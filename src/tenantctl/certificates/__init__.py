"""TLS certificate issuance, renewal and status tracking.

Usage:
    from tenantctl.certificates import CertificateManager

    manager = CertificateManager(settings.certificate_config())
    result = await manager.generate_certificate(tenant)
    if not result.success:
        print(result.raw_command)
"""

from tenantctl.certificates.acme import AcmeClient, CertbotClient
from tenantctl.certificates.inspect import CertificateInspector
from tenantctl.certificates.manager import CertificateManager, CertificateResult, RenewalResult

__all__ = [
    "AcmeClient",
    "CertbotClient",
    "CertificateInspector",
    "CertificateManager",
    "CertificateResult",
    "RenewalResult",
]
