"""Local SQLite cache for Gerrit changes.

This package provides three layers:

* :mod:`~ger.cache.policy` -- pure TTL and fingerprint rules.
* :class:`CacheStore` -- durable SQLAlchemy-backed storage of change rows
  and metadata blobs.
* :class:`CacheManager` -- the expiry-aware facade used by
  :class:`~ger.client.GerritClient` and the CLI commands.

The database location comes from :func:`~ger.config.get_cache_db_path`
and is controlled by the ``cache`` section of the global configuration
(:class:`~ger.models.CacheConfig`).
"""

from ger.cache.manager import CacheManager
from ger.cache.policy import CacheTTL, compute_fingerprint, compute_ttl, is_expired
from ger.cache.store import CachedRow, CacheStore, MetadataEntry, SweepResult

__all__ = [
    "CacheManager",
    "CacheStore",
    "CacheTTL",
    "CachedRow",
    "MetadataEntry",
    "SweepResult",
    "compute_fingerprint",
    "compute_ttl",
    "is_expired",
]
