"""DNS lookup for tenant domains.

Resolution is a pure lookup: A records first, AAAA as a fallback. Every lookup
is bounded by a timeout because misconfigured domains can hang the resolver.
Failures come back as ``Unresolvable`` instead of raising; retry policy is left
to the caller (a scheduled batch simply runs again later).
"""

from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass

import aiodns
import structlog

from tenantctl.core.config import ResolverConfig

logger = structlog.get_logger()


@dataclass(frozen=True)
class ResolvedIPs:
    """Domain resolved to one or more addresses."""

    domain: str
    addresses: tuple[str, ...]

    @property
    def first(self) -> str:
        return self.addresses[0]

    def matches(self, expected_ip: str) -> bool:
        return expected_ip in self.addresses


@dataclass(frozen=True)
class Unresolvable:
    """Domain did not resolve (NXDOMAIN, no records, or timeout)."""

    domain: str
    reason: str
    timed_out: bool = False


ResolveResult = ResolvedIPs | Unresolvable


class DomainResolver:
    """Resolves domains to IP addresses with a bounded timeout."""

    def __init__(self, config: ResolverConfig | None = None) -> None:
        """Initialize the resolver.

        Args:
            config: Lookup timeout settings.
        """
        self.config = config or ResolverConfig()
        self._resolver: aiodns.DNSResolver | None = None

    def _get_resolver(self) -> aiodns.DNSResolver:
        """Get or create the DNS resolver. Only called from coroutines."""
        if self._resolver is None:
            if sys.platform == "win32":
                self._resolver = aiodns.DNSResolver(
                    loop=asyncio.get_running_loop(), timeout=self.config.timeout
                )
            else:
                self._resolver = aiodns.DNSResolver(timeout=self.config.timeout)
        return self._resolver

    async def _query(self, domain: str, record_type: str) -> tuple[str, ...]:
        resolver = self._get_resolver()
        records = await asyncio.wait_for(
            resolver.query(domain, record_type), timeout=self.config.timeout
        )
        return tuple(record.host for record in records or ())

    async def resolve(self, domain: str) -> ResolveResult:
        """Resolve a domain to its addresses.

        Args:
            domain: Normalized domain name.

        Returns:
            ResolvedIPs, or Unresolvable on NXDOMAIN, empty answers or timeout.
        """
        last_error = "no A or AAAA records"
        for record_type in ("A", "AAAA"):
            try:
                addresses = await self._query(domain, record_type)
            except TimeoutError:
                logger.warning("dns_lookup_timeout", domain=domain, record_type=record_type)
                return Unresolvable(
                    domain, f"DNS lookup timed out after {self.config.timeout}s", timed_out=True
                )
            except aiodns.error.DNSError as e:
                code = e.args[0] if e.args else None
                if code == aiodns.error.ARES_ETIMEOUT:
                    logger.warning("dns_lookup_timeout", domain=domain, record_type=record_type)
                    return Unresolvable(domain, "DNS server timed out", timed_out=True)
                last_error = e.args[1] if len(e.args) > 1 else str(e)
                continue

            if addresses:
                logger.debug("dns_resolved", domain=domain, addresses=addresses)
                return ResolvedIPs(domain, addresses)

        return Unresolvable(domain, last_error)
