"""swcache -- offline-first request cache with versioned namespaces.

This package sits between an application and the network and decides, per
request, whether to answer from a persistent local store, from the network,
or from both.  The store is partitioned into one namespace per deployed
version; installing a version seeds its namespace with a fixed asset
manifest and activating it removes every older namespace.

Typical workflow::

    swcache config init --title shop --cache-version v2.0
    swcache install          # seed shop-v2.0, all or nothing
    swcache activate         # drop shop-v1.x
    swcache fetch /          # resolve a request with the configured strategy

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration resolution.
    store: Versioned diskcache-backed response store.
    manifest: Static asset manifest.
    strategies: The five resolution strategies.
    dispatcher: Per-request strategy selection.
    lifecycle: Install / activate / upgrade of engine instances.
    network: httpx-backed network access.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting with Rich support.
"""

__version__ = "0.1.0"
