from typing import Annotated

import httpx
import typer
from botocore.exceptions import BotoCoreError, ClientError

from fetchcache.cache.engine import request_key
from fetchcache.cache.factory import create_cache
from fetchcache.cli._logging import configure_logging
from fetchcache.cli._output import print_body, print_error, print_headers, print_json, print_key, print_warning
from fetchcache.config import create_config
from fetchcache.exceptions import CacheWriteError, FetchCacheException

app = typer.Typer(name="fetchcache", help="fetchcache: read-through cache for HTTP resources")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable DEBUG logging")] = False,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Only log warnings and errors")] = False,
    config_path: Annotated[str, typer.Option("--config", help="YAML config file")] = "fetchcache.yaml",
) -> None:
    """fetchcache: read-through cache for HTTP resources."""
    configure_logging(verbose=verbose, quiet=quiet)
    ctx.obj = create_config(yaml_path=config_path)
    if ctx.invoked_subcommand is None:
        raise typer.Exit()


_UrlArg = Annotated[str, typer.Argument(help="URL of the resource")]
_TtlOpt = Annotated[
    float | None,
    typer.Option("--ttl", help="Maximum age in seconds (0 = refresh, negative = never expire)"),
]
_MethodOpt = Annotated[str, typer.Option("--method", "-X", help="HTTP method")]


@app.command()
def get(
    ctx: typer.Context,
    url: _UrlArg,
    ttl: _TtlOpt = None,
    as_json: Annotated[bool, typer.Option("--json", help="Decode the body as JSON")] = False,
    headers: Annotated[bool, typer.Option("--headers", "-i", help="Show response headers")] = False,
) -> None:
    """Fetch a URL through the cache and print the body."""
    config = ctx.obj
    ttl_seconds = ttl if ttl is not None else float(str(config["cache.default_ttl"]))
    try:
        with create_cache(config) as cache:
            if as_json:
                try:
                    value = cache.cache_url_json(url, ttl_seconds)
                except CacheWriteError as e:
                    print_warning(f"{e}: {e.__cause__}")
                    value = e.data
                print_json(value)
                return
            try:
                response = cache.cache_url(url, ttl_seconds)
            except CacheWriteError as e:
                print_warning(f"{e}: {e.__cause__}")
                response = e.data
            try:
                if headers:
                    print_headers(response)
                print_body(response.read())
            finally:
                response.close()
    except (FetchCacheException, httpx.HTTPError, OSError, ValueError, TypeError) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e


@app.command()
def key(url: _UrlArg, method: _MethodOpt = "GET") -> None:
    """Print the cache key a request is stored under."""
    print_key(request_key(httpx.Request(method.upper(), url)))


@app.command()
def delete(ctx: typer.Context, url: _UrlArg, method: _MethodOpt = "GET") -> None:
    """Remove the cached response for a request."""
    try:
        with create_cache(ctx.obj) as cache:
            cache.delete_request(httpx.Request(method.upper(), url))
    except FileNotFoundError as e:
        print_error(f"not cached: {url}")
        raise typer.Exit(code=1) from e
    except (FetchCacheException, OSError, BotoCoreError, ClientError) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
