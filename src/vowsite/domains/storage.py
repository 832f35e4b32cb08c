"""Storage for custom domain configs.

This module provides JSON file-based storage for custom domain configs,
keyed by tenant, with a secondary index on the normalized domain. The index
is the uniqueness constraint: a domain may be claimed by one tenant only.

See vowsite.domains.models for the file format.
"""

from __future__ import annotations

import asyncio
import copy
import json
import os
import tempfile
from pathlib import Path

import structlog

from vowsite.core.exceptions import DomainAlreadyClaimedError, StorageError
from vowsite.domains.models import CustomDomainConfig

logger = structlog.get_logger()


def _build_index(configs: dict[str, CustomDomainConfig]) -> dict[str, str]:
    return {config.domain: tenant_id for tenant_id, config in configs.items()}


class DomainStore:
    """JSON file-based storage for custom domain configs.

    Safe for concurrent coroutines via a single asyncio lock. Writes go to a
    temporary file that replaces the storage file, and the in-memory cache is
    only updated once the write succeeded. With ``storage_path=None`` the
    store is memory only.

    Configs handed out are copies; callers persist changes with save().
    """

    def __init__(self, storage_path: str | Path | None = "domains.json") -> None:
        """Initialize domain store.

        Args:
            storage_path: Path to the JSON storage file, None for memory only.
        """
        self.storage_path = Path(storage_path) if storage_path is not None else None
        self._lock = asyncio.Lock()
        self._cache: dict[str, CustomDomainConfig] | None = None
        # normalized domain -> tenant_id
        self._domain_index: dict[str, str] = {}

    async def _load(self) -> dict[str, CustomDomainConfig]:
        """Load configs from storage file."""
        if self._cache is not None:
            return self._cache

        if self.storage_path is None or not self.storage_path.exists():
            self._cache = {}
            self._domain_index = {}
            return self._cache

        try:
            content = await asyncio.to_thread(self.storage_path.read_text)
            data = json.loads(content)
            configs = {
                tenant_id: CustomDomainConfig.from_dict(item)
                for tenant_id, item in data.get("domains", {}).items()
            }
        except OSError as e:
            raise StorageError(f"Cannot read {self.storage_path}: {e}") from e
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            # Refuse to start from an empty store and overwrite the file.
            raise StorageError(f"Corrupt domain store {self.storage_path}: {e}") from e

        self._cache = configs
        self._domain_index = _build_index(configs)
        return self._cache

    def _write_file(self, content: str) -> None:
        assert self.storage_path is not None
        directory = self.storage_path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".domains-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_path, self.storage_path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    async def _save(self, configs: dict[str, CustomDomainConfig]) -> None:
        """Save configs to storage file."""
        if self.storage_path is not None:
            data = {"domains": {tenant_id: c.to_dict() for tenant_id, c in configs.items()}}
            content = json.dumps(data, indent=2)
            try:
                await asyncio.to_thread(self._write_file, content)
            except OSError as e:
                logger.error("Domain store write failed", path=str(self.storage_path), error=str(e))
                raise StorageError(f"Cannot write {self.storage_path}: {e}") from e
        self._cache = configs
        self._domain_index = _build_index(configs)

    async def save(self, config: CustomDomainConfig) -> None:
        """Insert or replace the config of config.tenant_id.

        Claiming the domain and writing happen under one lock, so two tenants
        racing for the same domain cannot both succeed.

        Raises:
            DomainAlreadyClaimedError: If another tenant holds the domain.
            StorageError: If the file cannot be written.
        """
        async with self._lock:
            configs = await self._load()
            owner = self._domain_index.get(config.domain)
            if owner is not None and owner != config.tenant_id:
                raise DomainAlreadyClaimedError(config.domain)
            updated = dict(configs)
            updated[config.tenant_id] = copy.deepcopy(config)
            await self._save(updated)

    async def get(self, tenant_id: str) -> CustomDomainConfig | None:
        """Get the config attached to a tenant.

        Args:
            tenant_id: The tenant to look up.

        Returns:
            A copy of the config if found, None otherwise.
        """
        async with self._lock:
            configs = await self._load()
            config = configs.get(tenant_id)
            return copy.deepcopy(config) if config else None

    async def get_by_domain(self, domain: str) -> CustomDomainConfig | None:
        """Get the config that claims a normalized domain."""
        async with self._lock:
            configs = await self._load()
            owner = self._domain_index.get(domain)
            return copy.deepcopy(configs[owner]) if owner else None

    async def list_all(self) -> list[CustomDomainConfig]:
        """Get all configs."""
        async with self._lock:
            configs = await self._load()
            return [copy.deepcopy(c) for c in configs.values()]

    async def delete(self, tenant_id: str) -> bool:
        """Delete a tenant's config.

        Returns:
            True if deleted, False if not found.
        """
        async with self._lock:
            configs = await self._load()
            if tenant_id not in configs:
                return False
            updated = dict(configs)
            del updated[tenant_id]
            await self._save(updated)
            return True

    def invalidate_cache(self) -> None:
        """Invalidate the in-memory cache.

        Call this after external modifications to the storage file.
        """
        self._cache = None
