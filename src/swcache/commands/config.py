"""Config commands -- view the effective configuration or create a starter file.

Provides the ``swcache config`` sub-command group.  ``show`` prints the
configuration after every precedence layer has been applied (see
:func:`~swcache.config.resolve_config`); ``init`` writes a project-local
``swcache.json`` using the deployment key names.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from swcache.commands.common import get_config
from swcache.output import error, format_response, info, success

config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration.

    Example::

        swcache config show
        swcache config show --json
    """
    from swcache.config import get_store_dir

    config = get_config(ctx)
    info(f"Store directory: {get_store_dir(config)}")
    format_response(config.model_dump(mode="json", by_alias=True))


@config_app.command("init")
def config_init(
    title: str = typer.Option("yourAppName", "--title", help="cacheTitle"),
    version: str = typer.Option("v1.0", "--cache-version", help="cacheVersion"),
    strategy: str = typer.Option("cacheFirst", "--strategy", help="requestProcessingMethod"),
    dynamic_folder: str = typer.Option("/api/", "--dynamic-folder", help="dynamicFolder"),
    origin: str = typer.Option("http://localhost:8000/", "--origin", help="Site origin"),
    path: Optional[Path] = typer.Option(None, "--path", help="Where to write (default ./swcache.json)."),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file."),
) -> None:
    """Write a starter config file.

    Example::

        swcache config init --title shop --cache-version v2.0 --strategy networkFirst
    """
    from pydantic import ValidationError

    from swcache.config import PROJECT_CONFIG_FILENAME, save_engine_config
    from swcache.models import EngineConfig
    from swcache.strategies import StrategyId

    target = path or Path.cwd() / PROJECT_CONFIG_FILENAME
    if target.exists() and not force:
        error(f"{target} already exists (use --force to overwrite)")
        raise typer.Exit(code=2)

    if StrategyId.lookup(strategy) is None:
        choices = ", ".join(s.value for s in StrategyId)
        error(f"Unknown strategy '{strategy}' (choose from: {choices})")
        raise typer.Exit(code=2)

    try:
        config = EngineConfig(
            cache_title=title,
            cache_version=version,
            request_processing_method=strategy,
            dynamic_folder=dynamic_folder,
            origin=origin,
        )
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_engine_config(config, target)
    success(f"Wrote {target}")
