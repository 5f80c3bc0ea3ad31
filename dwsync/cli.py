"""CLI interface for dwsync."""

import logging
import time
from pathlib import Path
from typing import Any, Callable, Optional

import click
from rich.progress import Progress, SpinnerColumn, TextColumn

from .api import WebDAVClient
from .config import ConnectionConfig, load_config
from .exceptions import DwConfigError, NoCartridgesError, WatcherError
from .output import OutputFormatter
from .sync.cartridges import CartridgeIndex, CartridgeRegistry
from .sync.dispatcher import DEFAULT_MAX_WORKERS, RemoteSyncDispatcher
from .sync.resolver import MatchStrategy, PathResolver
from .sync.watcher import CartridgeWatcher

logger = logging.getLogger(__name__)


def connection_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add options overriding the values from dw.json."""
    options = [
        click.option("--hostname", envvar="DW_HOSTNAME", help="WebDAV hostname"),
        click.option(
            "--code-version", envvar="DW_CODE_VERSION", help="Target code version"
        ),
        click.option("--username", "-u", envvar="DW_USERNAME", help="User name"),
        click.option("--password", "-p", envvar="DW_PASSWORD", help="Password"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _load_config(
    ctx: Any,
    root: Path,
    hostname: Optional[str],
    code_version: Optional[str],
    username: Optional[str],
    password: Optional[str],
) -> ConnectionConfig:
    out: OutputFormatter = ctx.obj["out"]
    try:
        return load_config(
            root,
            hostname=hostname,
            code_version=code_version,
            username=username,
            password=password,
        )
    except DwConfigError as e:
        out.error(f"Error: {e}")
        ctx.exit(1)


def _build_index(ctx: Any, root: Path) -> CartridgeIndex:
    out: OutputFormatter = ctx.obj["out"]
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
        disable=out.quiet or out.json_output,
    ) as progress:
        progress.add_task("Scanning for cartridges...", total=None)
        try:
            return CartridgeIndex.build(root)
        except NoCartridgesError as e:
            out.error(str(e))
            ctx.exit(1)


def _print_summary(out: OutputFormatter, stats: dict) -> None:
    if out.json_output:
        out.output_json(stats)
        return
    out.print("")
    out.info(
        f"Uploaded: {stats['uploads']}, deleted: {stats['deletes']}, "
        f"cleaned: {stats['cleans']}, failed: {stats['failures']}"
    )


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="dwsync")
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """dwsync - Keep Demandware cartridges in sync with a WebDAV code version."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("dwsync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.argument(
    "root", type=click.Path(exists=True, file_okay=False, path_type=Path), default="."
)
@click.pass_context
def cartridges(ctx: Any, root: Path) -> None:
    """List the cartridges found under ROOT."""
    out: OutputFormatter = ctx.obj["out"]
    index = _build_index(ctx, root)

    if out.json_output:
        out.output_json(
            [
                {"name": c.name, "path": c.relative_to(index.project_root)}
                for c in index
            ]
        )
        return

    out.info(f"Found {len(index)} cartridge(s) in {index.project_root}:")
    for cartridge in index:
        out.print(f"  {cartridge.name}  ({cartridge.relative_to(index.project_root)})")


@main.command()
@click.argument(
    "root", type=click.Path(exists=True, file_okay=False, path_type=Path), default="."
)
@click.option(
    "--clean",
    is_flag=True,
    help="Remove each remote cartridge before uploading it",
)
@click.option(
    "--workers",
    "-j",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_WORKERS,
    show_default=True,
    help="Number of parallel transfers",
)
@connection_options
@click.pass_context
def upload(
    ctx: Any,
    root: Path,
    clean: bool,
    workers: int,
    hostname: Optional[str],
    code_version: Optional[str],
    username: Optional[str],
    password: Optional[str],
) -> None:
    """Upload every cartridge under ROOT to the code version."""
    out: OutputFormatter = ctx.obj["out"]
    config = _load_config(ctx, root, hostname, code_version, username, password)
    index = _build_index(ctx, root)

    with WebDAVClient(config) as client:
        dispatcher = RemoteSyncDispatcher(client, out, max_workers=workers)
        try:
            if clean:
                for cartridge in index:
                    dispatcher.clean_cartridge(cartridge.name)
                dispatcher.wait()
            for cartridge in index:
                dispatcher.upload_cartridge(cartridge)
            dispatcher.shutdown(wait=True)
        except KeyboardInterrupt:
            out.warning("\nUpload cancelled by user")
            dispatcher.shutdown(wait=False)
            ctx.exit(130)

    _print_summary(out, dispatcher.stats)
    if dispatcher.stats["failures"]:
        ctx.exit(1)


@main.command()
@click.argument(
    "root", type=click.Path(exists=True, file_okay=False, path_type=Path), default="."
)
@connection_options
@click.pass_context
def clean(
    ctx: Any,
    root: Path,
    hostname: Optional[str],
    code_version: Optional[str],
    username: Optional[str],
    password: Optional[str],
) -> None:
    """Remove every cartridge from the remote code version."""
    out: OutputFormatter = ctx.obj["out"]
    config = _load_config(ctx, root, hostname, code_version, username, password)

    with WebDAVClient(config) as client:
        dispatcher = RemoteSyncDispatcher(client, out)
        dispatcher.clean_remote_cartridges()
        dispatcher.shutdown(wait=True)

    _print_summary(out, dispatcher.stats)
    if dispatcher.stats["failures"]:
        ctx.exit(1)


@main.command()
@click.argument(
    "root", type=click.Path(exists=True, file_okay=False, path_type=Path), default="."
)
@click.option(
    "--workers",
    "-j",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_WORKERS,
    show_default=True,
    help="Number of parallel transfers",
)
@click.option(
    "--longest-match",
    is_flag=True,
    help="Resolve owning cartridges by longest path prefix instead of first match",
)
@connection_options
@click.pass_context
def watch(
    ctx: Any,
    root: Path,
    workers: int,
    longest_match: bool,
    hostname: Optional[str],
    code_version: Optional[str],
    username: Optional[str],
    password: Optional[str],
) -> None:
    """Watch ROOT and mirror every change to the code version.

    Runs until interrupted with Ctrl+C.
    """
    out: OutputFormatter = ctx.obj["out"]
    config = _load_config(ctx, root, hostname, code_version, username, password)

    registry = CartridgeRegistry(root)
    try:
        index = registry.refresh()
    except NoCartridgesError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    out.info(f"Cartridges: {', '.join(index.names)}")

    strategy = (
        MatchStrategy.LONGEST_PREFIX if longest_match else MatchStrategy.FIRST_MATCH
    )

    with WebDAVClient(config) as client:
        dispatcher = RemoteSyncDispatcher(client, out, max_workers=workers)
        watcher = CartridgeWatcher(
            root,
            registry,
            dispatcher,
            resolver=PathResolver(strategy),
            output=out,
        )
        try:
            watcher.start()
        except WatcherError as e:
            out.error(str(e))
            dispatcher.shutdown(wait=False)
            ctx.exit(1)
        out.info("Press Ctrl+C to stop")
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            out.print("")
        finally:
            watcher.stop()
            dispatcher.shutdown(wait=True)


if __name__ == "__main__":
    main()
