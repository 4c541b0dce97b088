"""Versioned persistent cache store for swcache.

This package provides :class:`CacheStore`, a set of :mod:`diskcache`
backed namespaces (one per deployed ``title-version``), and
:class:`Namespace`, the handle the strategies read from and write to.

The store is consumed by :class:`~swcache.lifecycle.ServiceWorker`
(seeding at install, clean-up at activate) and by the strategies in
:mod:`swcache.strategies` (lookups and write-backs at fetch time).
"""

from swcache.store.store import CacheStore, Namespace, request_key

__all__ = ["CacheStore", "Namespace", "request_key"]
