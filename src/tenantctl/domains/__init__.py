"""Tenant domain checks.

This package resolves tenant domains, probes their reachability and classifies
the result:

- names: normalization and validation of domain names
- resolver: DomainResolver (A/AAAA lookup with a bounded timeout)
- reachability: ReachabilityChecker (HTTP and HTTPS HEAD probes)
- verification: DomainVerificationEngine and VerificationResult
- batch: BatchOrchestrator for runs over many tenants

Usage:
    from tenantctl.domains.batch import BatchOrchestrator
    from tenantctl.domains.verification import DomainVerificationEngine

    engine = DomainVerificationEngine(settings.verification_config())
    summary = await BatchOrchestrator(engine, store).verify_many(tenants)

Only the leaf modules are re-exported here; verification and batch depend on
the certificates and routing packages, which import from this one.
"""

from tenantctl.domains.names import clean_domain, is_valid_domain, normalize_domain
from tenantctl.domains.reachability import ReachabilityChecker
from tenantctl.domains.resolver import DomainResolver, ResolvedIPs, Unresolvable

__all__ = [
    "DomainResolver",
    "ReachabilityChecker",
    "ResolvedIPs",
    "Unresolvable",
    "clean_domain",
    "is_valid_domain",
    "normalize_domain",
]
