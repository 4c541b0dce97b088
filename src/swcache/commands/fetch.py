"""Fetch command -- resolve one request the way the engine would.

Useful to check what an offline client will see: the request goes through
the dispatcher with the configured (or ``--strategy``) strategy, reading
and writing the current namespace of the store.
"""

from __future__ import annotations

from typing import Optional

import httpx
import typer

from swcache.commands.common import get_config, open_runtime, run_async
from swcache.exceptions import InvalidUsageError
from swcache.output import debug, get_output


def build_request(target: str, origin: str, method: str = "GET") -> httpx.Request:
    """Build a request for *target*: an absolute URL or a path under *origin*."""
    url = httpx.URL(target)
    if not url.is_absolute_url:
        url = httpx.URL(origin).join(target)
    elif url.scheme not in ("http", "https"):
        raise InvalidUsageError(f"Unsupported URL scheme: {url.scheme}")
    return httpx.Request(method.upper(), url)


def fetch_command(
    ctx: typer.Context,
    target: str = typer.Argument(help="Absolute URL, or a path relative to the origin."),
    strategy: Optional[str] = typer.Option(
        None,
        "--strategy",
        "-s",
        help="Override requestProcessingMethod for this request.",
    ),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
) -> None:
    """Resolve a request through the engine and print the response.

    Example::

        swcache fetch /
        swcache fetch assets/js/scripts.js --strategy cacheOnly
        swcache fetch https://shop.example/api/cart --json
    """
    from swcache.dispatcher import Dispatcher

    config = get_config(ctx)
    if strategy is not None:
        config = config.model_copy(update={"request_processing_method": strategy})

    async def _fetch() -> httpx.Response:
        request = build_request(target, config.origin, method)
        async with open_runtime(config) as (store, network):
            dispatcher = Dispatcher(config, store.open(config.namespace), network)
            selected = dispatcher.select(request)
            debug(f"Strategy: {selected.value if selected else 'pass-through'}")
            return await dispatcher.handle(request)

    response = run_async(_fetch())
    get_output().print_http_response(response)
