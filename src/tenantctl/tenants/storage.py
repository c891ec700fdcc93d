"""Storage for tenant records.

This module provides JSON file-based storage for tenants, suitable for a single
admin host where the CLI and scheduled jobs share one file.

Storage file format (tenants.json):
    {
        "tenants": {
            "1": {
                "id": 1,
                "name": "Acme Dental",
                "domain": "acmedental.com",
                "deployment_status": "active",
                "dns_verified": true,
                "ssl_status": "active",
                ...
            }
        }
    }

Writes can be scoped to a field group: ``save(tenant, fields=SSL_FIELDS)``
re-reads the file and replaces only those fields, so a certificate update never
overwrites a route update made by another process in the meantime.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable
from pathlib import Path

import structlog

from tenantctl.core.exceptions import TenantNotFoundError
from tenantctl.tenants.models import PENDING_DNS_STATES, Tenant

logger = structlog.get_logger()


class TenantStore:
    """JSON file-based storage for tenants.

    Serialized via an asyncio lock. Every read goes to disk: the file may be
    changed by a scheduled job running alongside an operator command.
    """

    def __init__(self, storage_path: str | Path = "tenants.json") -> None:
        """Initialize tenant store.

        Args:
            storage_path: Path to the JSON storage file.
        """
        self.storage_path = Path(storage_path)
        self._lock = asyncio.Lock()

    async def _load_raw(self) -> dict[str, dict]:
        """Load raw tenant dictionaries keyed by id string."""
        if not self.storage_path.exists():
            return {}

        content = await asyncio.to_thread(self.storage_path.read_text, encoding="utf-8")
        if not content.strip():
            return {}
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f"Tenant storage {self.storage_path} is not valid JSON: {e}") from e
        return dict(data.get("tenants", {}))

    async def _save_raw(self, tenants: dict[str, dict]) -> None:
        """Write the whole file via a temp file and rename."""
        data = {"tenants": dict(sorted(tenants.items(), key=lambda item: int(item[0])))}
        content = json.dumps(data, indent=2)
        tmp_path = self.storage_path.with_name(self.storage_path.name + ".tmp")

        def _write() -> None:
            self.storage_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(content, encoding="utf-8")
            tmp_path.replace(self.storage_path)

        await asyncio.to_thread(_write)

    async def next_id(self) -> int:
        async with self._lock:
            tenants = await self._load_raw()
            return max((int(key) for key in tenants), default=0) + 1

    async def add(self, tenant: Tenant) -> Tenant:
        """Insert a new tenant.

        Raises:
            ValueError: If the id is already taken.
        """
        async with self._lock:
            tenants = await self._load_raw()
            key = str(tenant.id)
            if key in tenants:
                raise ValueError(f"Tenant id {tenant.id} already exists")
            tenants[key] = tenant.to_dict()
            await self._save_raw(tenants)
        logger.info("tenant_created", tenant_id=tenant.id, name=tenant.name)
        return tenant

    async def save(self, tenant: Tenant, fields: Iterable[str] | None = None) -> None:
        """Save a tenant, optionally only a subset of its fields.

        Args:
            tenant: The tenant to persist.
            fields: Field names to write. None writes the whole record.
        """
        async with self._lock:
            tenants = await self._load_raw()
            key = str(tenant.id)
            data = tenant.to_dict()
            if fields is None or key not in tenants:
                tenants[key] = data
            else:
                record = tenants[key]
                for name in fields:
                    record[name] = data[name]
            await self._save_raw(tenants)

    async def get(self, tenant_id: int) -> Tenant | None:
        """Get a tenant by id.

        Returns:
            The tenant if found, None otherwise.
        """
        async with self._lock:
            tenants = await self._load_raw()
            data = tenants.get(str(tenant_id))
            return Tenant.from_dict(data) if data else None

    async def require(self, tenant_id: int) -> Tenant:
        """Get a tenant by id or raise TenantNotFoundError."""
        tenant = await self.get(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)
        return tenant

    async def list_all(self) -> list[Tenant]:
        async with self._lock:
            tenants = await self._load_raw()
            return [Tenant.from_dict(data) for data in tenants.values()]

    async def list_with_domains(self, active_only: bool = True) -> list[Tenant]:
        """Tenants that have a domain, in id order.

        Held tenants (inactive, failed or suspended) are excluded when
        ``active_only`` is set.
        """
        result = []
        for tenant in await self.list_all():
            if not tenant.has_domain:
                continue
            if active_only and tenant.is_held:
                continue
            result.append(tenant)
        return sorted(result, key=lambda t: t.id)

    async def list_pending_dns(self) -> list[Tenant]:
        """Active tenants whose DNS has not yet been seen working."""
        return [
            tenant
            for tenant in await self.list_with_domains(active_only=True)
            if tenant.domain_state is None or tenant.domain_state in PENDING_DNS_STATES
        ]

    async def delete(self, tenant_id: int) -> bool:
        """Delete a tenant.

        Returns:
            True if deleted, False if not found.
        """
        async with self._lock:
            tenants = await self._load_raw()
            if str(tenant_id) in tenants:
                del tenants[str(tenant_id)]
                await self._save_raw(tenants)
                return True
            return False
