"""Domain name normalization.

Tenants type domains in many shapes ("https://Example.com/", " example.com").
Everything downstream (DNS lookups, folder names, nginx server_name, certbot -d
arguments) works on the normalized form produced here.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from tenantctl.core.exceptions import InvalidDomainError

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_LABEL_RE = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")


def normalize_domain(domain: str) -> str:
    """Strip the protocol prefix and trailing slashes, lowercase.

    Examples:
        >>> normalize_domain("https://Example.com/")
        'example.com'
        >>> normalize_domain("shop.example.com")
        'shop.example.com'
    """
    cleaned = _SCHEME_RE.sub("", domain.strip())
    return cleaned.rstrip("/").lower()


def is_valid_domain(domain: str) -> bool:
    """Check that a normalized domain is a plausible public hostname."""
    if not domain or len(domain) > 253 or "." not in domain:
        return False
    return all(_LABEL_RE.match(label) for label in domain.split("."))


def clean_domain(domain: str) -> str:
    """Normalize and validate a domain.

    Raises:
        InvalidDomainError: If the result is not a valid hostname.
    """
    cleaned = normalize_domain(domain)
    if not is_valid_domain(cleaned):
        raise InvalidDomainError(f"Invalid domain name: {domain!r}")
    return cleaned


def unique_domains(canonical: str | None, aliases: Iterable[str]) -> list[str]:
    """Normalize aliases, drop duplicates and the canonical domain, keep order."""
    seen = {canonical} if canonical else set()
    result: list[str] = []
    for alias in aliases:
        cleaned = clean_domain(alias)
        if cleaned not in seen:
            seen.add(cleaned)
            result.append(cleaned)
    return result


def with_www(domains: Iterable[str]) -> list[str]:
    """Add www.<domain> after each apex-style domain that lacks it."""
    result: list[str] = []
    for domain in domains:
        if domain not in result:
            result.append(domain)
        if not domain.startswith("www."):
            www = f"www.{domain}"
            if www not in result:
                result.append(www)
    return result


def sanitize_for_filename(domain: str) -> str:
    """Make a domain safe to use as a config file stem.

    Examples:
        >>> sanitize_for_filename("shop.example.com")
        'shop_example_com'
    """
    return domain.replace(".", "_").replace(":", "_")
