"""Lifecycle commands -- install, activate and report the deployed version.

``swcache install`` is the deployment gate: it exits with
:data:`~swcache.exit_codes.EXIT_SEED_FAILURE` when any asset of the
manifest cannot be seeded, so a pipeline can refuse to promote the build.
``swcache activate`` then removes the namespaces of older versions.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from swcache.commands.common import get_config, open_runtime, open_store, run_async
from swcache.manifest import AssetManifest
from swcache.output import OutputFormat, format_response, get_output, info, print_data, success


def install_command(
    ctx: typer.Context,
    manifest: Optional[Path] = typer.Option(
        None,
        "--manifest",
        "-m",
        help="JSON or YAML manifest to seed instead of contentToCache.",
        exists=True,
        dir_okay=False,
    ),
) -> None:
    """Seed the current namespace with every asset of the manifest.

    Either all assets are stored or none are.

    Example::

        swcache install
        swcache install --manifest dist/precache.json
    """
    from swcache.lifecycle import ServiceWorker

    config = get_config(ctx)

    async def _install() -> int:
        assets = AssetManifest.load(manifest) if manifest else AssetManifest.from_config(config)
        async with open_runtime(config) as (store, network):
            worker = ServiceWorker(config, store, network, manifest=assets)
            await worker.install()
        return len(assets)

    count = run_async(_install())
    success(f"Installed {config.cache_name} ({count} assets)")


def activate_command(ctx: typer.Context) -> None:
    """Make the current namespace the only one, deleting older versions.

    Example::

        swcache activate
    """
    from swcache.lifecycle import ServiceWorker

    config = get_config(ctx)

    async def _activate() -> list[str]:
        async with open_runtime(config) as (store, network):
            worker = ServiceWorker(config, store, network)
            await worker.restore()
            return await worker.activate()

    removed = run_async(_activate())
    for name in removed:
        info(f"Removed {name}")
    success(f"Activated {config.cache_name}")


def version_command(ctx: typer.Context) -> None:
    """Print the deployed cache version (the ``GET_VERSION`` reply).

    Example::

        swcache version
        swcache version --json
    """
    config = get_config(ctx)
    store = open_store(config)
    try:
        installed = run_async(store.is_installed(config.cache_name))
    finally:
        store.close()

    if get_output().format == OutputFormat.JSON:
        format_response(
            {
                "name": config.cache_name,
                "version": config.cache_version,
                "installed": installed,
            }
        )
        return
    print_data(config.cache_version)
    if not installed:
        info(f"{config.cache_name} is not installed")
