"""Built-in CLI sub-commands for swcache.

This package groups the Typer sub-command modules that form the CLI's
command tree:

* :mod:`~swcache.commands.lifecycle` -- ``install``, ``activate`` and
  ``version``.
* :mod:`~swcache.commands.fetch` -- resolve one request through the
  configured strategy.
* :mod:`~swcache.commands.cache` -- inspect and prune store namespaces.
* :mod:`~swcache.commands.config` -- show or create configuration.

Shared plumbing (config lookup from the Typer context, store and network
set-up, async execution with error mapping) lives in
:mod:`~swcache.commands.common`.
"""
