"""Read certificate expiry dates.

Two sources, tried in order by the certificate manager:
1. The ACME client's live directory: <live_path>/<domain>/fullchain.pem
2. A TLS handshake with the domain itself. Chain validation is off so an
   expired or self-signed certificate is still reported, but the certificate
   must name the domain: a default server presenting another site's
   certificate counts as no certificate.
"""

from __future__ import annotations

import asyncio
import ssl
from datetime import datetime
from pathlib import Path

import structlog
from cryptography import x509
from cryptography.x509.oid import NameOID

logger = structlog.get_logger()


def certificate_names(cert: x509.Certificate) -> list[str]:
    """DNS names a certificate is valid for (SAN entries, else the subject CN)."""
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return [str(attr.value) for attr in cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)]
    return san.value.get_values_for_type(x509.DNSName)


def covers_domain(cert: x509.Certificate, domain: str) -> bool:
    """Check a certificate name matches the domain. A wildcard covers one label.

    Examples:
        *.example.com covers shop.example.com but not example.com or a.b.example.com
    """
    domain = domain.lower().rstrip(".")
    for name in certificate_names(cert):
        name = name.lower().rstrip(".")
        if name == domain:
            return True
        if name.startswith("*.") and "." in domain and domain.split(".", 1)[1] == name[2:]:
            return True
    return False


class CertificateInspector:
    """Finds the expiry of the certificate serving a domain."""

    def __init__(self, live_path: str | Path, probe_timeout: float = 10.0) -> None:
        self.live_path = Path(live_path)
        self.probe_timeout = probe_timeout

    def certificate_path(self, domain: str) -> Path:
        return self.live_path / domain / "fullchain.pem"

    def local_expiry(self, domain: str) -> datetime | None:
        """Expiry of the leaf certificate in the live directory, if present."""
        path = self.certificate_path(domain)
        try:
            pem = path.read_bytes()
        except OSError:
            return None

        try:
            cert = x509.load_pem_x509_certificate(pem)
        except ValueError as e:
            logger.warning("certificate_unreadable", domain=domain, path=str(path), error=str(e))
            return None
        return cert.not_valid_after_utc

    async def remote_expiry(self, domain: str, port: int = 443) -> datetime | None:
        """Expiry of the certificate presented by the domain over TLS."""
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(domain, port, ssl=context, server_hostname=domain),
                timeout=self.probe_timeout,
            )
        except (OSError, ssl.SSLError, TimeoutError) as e:
            logger.debug("tls_probe_failed", domain=domain, error=str(e))
            return None

        try:
            ssl_object = writer.get_extra_info("ssl_object")
            der = ssl_object.getpeercert(binary_form=True) if ssl_object else None
        finally:
            writer.close()

        if not der:
            return None
        try:
            cert = x509.load_der_x509_certificate(der)
        except ValueError as e:
            logger.warning("tls_probe_unparseable", domain=domain, error=str(e))
            return None
        if not covers_domain(cert, domain):
            logger.warning(
                "tls_certificate_name_mismatch", domain=domain, names=certificate_names(cert)
            )
            return None
        return cert.not_valid_after_utc

    async def find_expiry(self, domain: str, remote: bool = True) -> datetime | None:
        expiry = await asyncio.to_thread(self.local_expiry, domain)
        if expiry is None and remote:
            expiry = await self.remote_expiry(domain)
        return expiry
