"""CLI entrypoint for yamo."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import click

from . import __version__
from .errors import ConfigError
from .validation import CONSENSUS_TYPES

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _configure_logging(level: str) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    # stdout carries MCP traffic; logs always go to stderr.
    handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
    logging.basicConfig(level=level, format="%(message)s", datefmt="[%X]", handlers=[handler], force=True)


def _settings(ctx: click.Context):
    from .config import load_settings

    obj = ctx.obj
    try:
        return load_settings(obj["config_path"], obj["overrides"])
    except ConfigError as e:
        problems = "\n".join(f"  - {p}" for p in e.problems)
        raise click.ClickException(f"Invalid configuration:\n{problems}") from e


@click.group()
@click.version_option(__version__, prog_name="yamo")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="TOML file with a [yamo] table",
)
@click.option("--ledger-endpoint", default=None, help="Ledger endpoint (http(s):// gateway, file:// or path)")
@click.option("--ledger-address", default=None, help="Ledger contract address (0x + 40 hex chars)")
@click.option(
    "--content-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Content store directory (default .yamo/content)",
)
@click.option(
    "--allowed-root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Only files under this directory may be bundled (default: working directory)",
)
@click.option("--log-level", type=click.Choice(LOG_LEVELS, case_sensitive=False), default=None)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    ledger_endpoint: str | None,
    ledger_address: str | None,
    content_dir: Path | None,
    allowed_root: Path | None,
    log_level: str | None,
) -> None:
    """yamo - anchor YAMO blocks on a ledger and audit their content.

    The signing credential is read from YAMO_SIGNING_KEY (or PRIVATE_KEY),
    never from the command line.
    """
    ctx.ensure_object(dict)
    overrides: dict[str, Any] = {
        "ledger_endpoint": ledger_endpoint,
        "ledger_address": ledger_address,
        "content_dir": content_dir,
        "allowed_root": allowed_root,
    }
    ctx.obj["config_path"] = config_path
    ctx.obj["overrides"] = overrides
    default_level = "INFO" if ctx.invoked_subcommand == "serve" else "WARNING"
    _configure_logging((log_level or default_level).upper())


@cli.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Run the MCP server on stdio."""
    from .commands.serve_cmd import run_serve

    settings = _settings(ctx)
    ctx.exit(run_serve(settings))


_json_option = click.option("--json", "output_json", is_flag=True, help="Output plain JSON")


@cli.command()
@click.option("--block-id", required=True, help="Block id: {origin}_{workflow}")
@click.option("--content-hash", default=None, help="0x + 64 hex chars (defaults to sha256 of --content)")
@click.option("--consensus-type", type=click.Choice(CONSENSUS_TYPES), default="cli_manual", show_default=True)
@click.option("--ledger", "ledger_ref", default="ipfs", show_default=True, help="Distributed storage reference")
@click.option("--previous-block", default=None, help="Parent contentHash (default: chain tip)")
@click.option("--content", default=None, help="Block text to anchor")
@click.option(
    "--content-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Read block text from a file",
)
@click.option("--file", "files", multiple=True, metavar="NAME=CONTENT", help="Bundle a file (literal or path)")
@click.option("--encryption-key", default=None, envvar="YAMO_ENCRYPTION_KEY", help="Encrypt the bundle")
@_json_option
@click.pass_context
def submit(
    ctx: click.Context,
    block_id: str,
    content_hash: str | None,
    consensus_type: str,
    ledger_ref: str,
    previous_block: str | None,
    content: str | None,
    content_file: Path | None,
    files: tuple[str, ...],
    encryption_key: str | None,
    output_json: bool,
) -> None:
    """Submit a block."""
    from .commands.block_cmd import run_submit

    if content is not None and content_file is not None:
        raise click.UsageError("Use either --content or --content-file, not both.")
    if content_file is not None:
        content = content_file.read_text(encoding="utf-8")

    settings = _settings(ctx)
    try:
        code = run_submit(
            settings,
            block_id=block_id,
            content_hash=content_hash,
            consensus_type=consensus_type,
            ledger=ledger_ref,
            previous_block=previous_block,
            content=content,
            files=list(files),
            encryption_key=encryption_key,
            output_json=output_json,
        )
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--file") from e
    ctx.exit(code)


@cli.command()
@click.argument("block_id")
@_json_option
@click.pass_context
def get(ctx: click.Context, block_id: str, output_json: bool) -> None:
    """Show a block by id."""
    from .commands.block_cmd import run_tool
    from .tools import Tool

    ctx.exit(run_tool(_settings(ctx), Tool.GET_BLOCK, {"blockId": block_id}, output_json=output_json))


@cli.command()
@_json_option
@click.pass_context
def latest(ctx: click.Context, output_json: bool) -> None:
    """Show the most recently accepted block."""
    from .commands.block_cmd import run_tool
    from .tools import Tool

    ctx.exit(run_tool(_settings(ctx), Tool.GET_LATEST_BLOCK, {}, output_json=output_json))


@cli.command()
@click.argument("block_id")
@click.option("--encryption-key", default=None, envvar="YAMO_ENCRYPTION_KEY", help="Key for encrypted bundles")
@_json_option
@click.pass_context
def audit(ctx: click.Context, block_id: str, encryption_key: str | None, output_json: bool) -> None:
    """Recompute a block's content hash and compare it with the ledger."""
    from .commands.block_cmd import run_tool
    from .tools import Tool

    arguments = {"blockId": block_id, "encryptionKey": encryption_key}
    ctx.exit(run_tool(_settings(ctx), Tool.AUDIT_BLOCK, arguments, output_json=output_json))


@cli.command()
@click.argument("block_id")
@click.argument("content_hash")
@_json_option
@click.pass_context
def verify(ctx: click.Context, block_id: str, content_hash: str, output_json: bool) -> None:
    """Check a hash against the ledger record (no content download)."""
    from .commands.block_cmd import run_tool
    from .tools import Tool

    arguments = {"blockId": block_id, "contentHash": content_hash}
    ctx.exit(run_tool(_settings(ctx), Tool.VERIFY_BLOCK, arguments, output_json=output_json))


@cli.command("hash")
@click.argument("path", required=False, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--text", default=None, help="Hash literal text instead of a file")
def hash_cmd(path: Path | None, text: str | None) -> None:
    """Print the contentHash (0x + sha256) of a file or text."""
    from .commands.block_cmd import run_hash

    raise SystemExit(run_hash(path, text))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
