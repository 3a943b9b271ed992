"""
Tenant Directory - maps an inbound request to a tenant.

Three strategies are supported:
- domain: the full host is a tenant's custom domain (or a static mapping)
- subdomain: the first label of the host is the tenant slug
- path: the first path segment is the tenant slug

Resolutions are cached in-process for the life of the directory; there is
no expiry, callers invalidate with clear_cache() after editing tenants.
Both caches are size-capped LRUs.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Generic, Hashable, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from rest_api.models import Tenant
from shared.config.constants import ResolutionStrategy
from shared.config.logging import tenant_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import SessionLocal


@dataclass(frozen=True)
class TenantIdentity:
    """The cached subset of a tenant needed per request."""

    id: int
    slug: str
    name: str
    domain: str | None = None


K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MISSING = object()


class BoundedCache(Generic[K, V]):
    """Least-recently-used mapping holding at most maxsize entries. None is a valid value."""

    def __init__(self, maxsize: int):
        if maxsize < 1:
            raise ValueError("maxsize must be positive")
        self.maxsize = maxsize
        self._entries: OrderedDict[K, V] = OrderedDict()

    def get(self, key: K, default=_MISSING):
        if key not in self._entries:
            return default
        self._entries.move_to_end(key)
        return self._entries[key]

    def put(self, key: K, value: V) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.maxsize:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def first_path_segment(path: str | None) -> str:
    """First non-empty segment of a request path, lower-cased ("" for "/")."""
    for segment in (path or "").split("/"):
        if segment:
            return segment.lower()
    return ""


def normalize_host(host: str | None) -> str:
    """Lower-case the host and drop any port."""
    if not host:
        return ""
    host = host.strip().lower()
    if host.startswith("["):
        # IPv6 literal: [::1]:8000
        return host.split("]", 1)[0] + "]"
    return host.split(":", 1)[0]


class TenantDirectory:
    """
    Resolves tenants by domain, subdomain or path.

    Usage:
        directory = get_tenant_directory()
        slug = directory.resolve("pizzaria.mesa.app", "/", "subdomain")
        tenant = directory.get_tenant(slug) if slug else None
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        *,
        identify_by: str | None = None,
        default_slug: str | None = None,
        domain_mapping: dict[str, str] | None = None,
        excluded_paths: list[str] | None = None,
        cache_size: int | None = None,
    ):
        self._session_factory = session_factory
        self._strategy = identify_by or settings.tenant_identify_by
        self._default_slug = settings.tenant_default_slug if default_slug is None else default_slug
        mapping = settings.tenant_domain_mapping if domain_mapping is None else domain_mapping
        self._domain_mapping = {normalize_host(host): slug for host, slug in mapping.items()}
        paths = settings.tenant_excluded_paths if excluded_paths is None else excluded_paths
        self._excluded_paths = {p.rstrip("/").lower() for p in paths}

        size = cache_size or settings.tenant_cache_size
        self._resolved: BoundedCache[tuple[str, str], str | None] = BoundedCache(size)
        self._tenants: BoundedCache[str, TenantIdentity | None] = BoundedCache(size)

    @property
    def strategy(self) -> str:
        return self._strategy

    def resolve(
        self,
        request_host: str | None,
        request_path: str | None,
        strategy: str | None = None,
    ) -> str | None:
        """
        Return the tenant slug for the request, or the configured default.

        Returns None only when nothing matched and no default slug is set.
        """
        strategy = strategy or self._strategy
        if strategy not in ResolutionStrategy.ALL:
            raise ValueError(f"Unknown tenant resolution strategy: {strategy}")

        if strategy == ResolutionStrategy.PATH:
            raw_key = first_path_segment(request_path)
        else:
            raw_key = normalize_host(request_host)

        cache_key = (strategy, raw_key)
        cached = self._resolved.get(cache_key)
        if cached is not _MISSING:
            return cached

        if strategy == ResolutionStrategy.DOMAIN:
            slug = self._from_domain(raw_key)
        elif strategy == ResolutionStrategy.SUBDOMAIN:
            slug = self._from_subdomain(raw_key)
        else:
            slug = self._from_path(raw_key)

        if slug is None and self._default_slug:
            logger.debug("Falling back to default tenant", strategy=strategy, key=raw_key)
            slug = self._default_slug

        self._resolved.put(cache_key, slug)
        logger.debug("Tenant resolved", strategy=strategy, key=raw_key, slug=slug)
        return slug

    def tenant_exists(self, slug: str) -> bool:
        """True when an active tenant has this slug."""
        return self.get_tenant(slug) is not None

    def get_tenant(self, slug: str) -> TenantIdentity | None:
        """Active tenant by slug, cached."""
        if not slug:
            return None
        cached = self._tenants.get(slug)
        if cached is not _MISSING:
            return cached

        with self._session_factory() as db:
            tenant = db.scalar(
                select(Tenant).where(Tenant.slug == slug, Tenant.is_active.is_(True))
            )
            identity = (
                TenantIdentity(
                    id=tenant.id,
                    slug=tenant.slug,
                    name=tenant.name,
                    domain=tenant.domain,
                )
                if tenant
                else None
            )

        self._tenants.put(slug, identity)
        return identity

    def clear_cache(self) -> None:
        """Forget every resolution and tenant lookup."""
        self._resolved.clear()
        self._tenants.clear()
        logger.info("Tenant directory cache cleared")

    # =========================================================================
    # Strategies
    # =========================================================================

    def _from_domain(self, host: str) -> str | None:
        if not host:
            return None
        if host in self._domain_mapping:
            return self._domain_mapping[host]

        with self._session_factory() as db:
            return db.scalar(
                select(Tenant.slug).where(
                    Tenant.domain == host,
                    Tenant.is_active.is_(True),
                )
            )

    def _from_subdomain(self, host: str) -> str | None:
        labels = host.split(".")
        # "mesa.app" has no tenant label; "demo.mesa.app" does
        if len(labels) <= 2 or not labels[0]:
            return None
        candidate = labels[0]
        return candidate if self.tenant_exists(candidate) else None

    def _from_path(self, candidate: str) -> str | None:
        if not candidate:
            return None
        if f"/{candidate}" in self._excluded_paths:
            return None
        return candidate if self.tenant_exists(candidate) else None


@lru_cache
def get_tenant_directory() -> TenantDirectory:
    """Process-wide directory; also the FastAPI dependency."""
    return TenantDirectory()
