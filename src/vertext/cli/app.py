"""Main CLI application.

Click commands for vertext: tools, call, rpc, index, search, import,
chat, stats, mcp.
"""

from __future__ import annotations

import asyncio
import json as json_mod
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

from vertext import __version__
from vertext.config.loader import load_config
from vertext.core.errors import ConfigError, VertextError

if TYPE_CHECKING:
    from vertext.app import Application
    from vertext.cli.display import VertextDisplay
    from vertext.config.schema import VertextConfig


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _load_config(config_path: str | None) -> VertextConfig:
    """Load config with user-friendly error handling."""
    try:
        config = load_config(path=config_path)
    except ConfigError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy

    from vertext.core.log import configure_logging

    configure_logging(config.logging)
    return config


def _display() -> VertextDisplay:
    from vertext.cli.display import VertextDisplay

    return VertextDisplay()


async def _open(config: VertextConfig) -> Application:
    from vertext.app import build_application

    return await build_application(config)


def _run(coro: Any) -> None:
    try:
        asyncio.run(coro)
    except VertextError as e:
        _error(str(e))


def _parse_value(raw: str) -> Any:
    """``-a`` values are JSON when they parse, plain strings otherwise."""
    try:
        return json_mod.loads(raw)
    except json_mod.JSONDecodeError:
        return raw


def _parse_arguments(pairs: tuple[str, ...], json_args: str | None) -> dict[str, Any]:
    arguments: dict[str, Any] = {}
    if json_args:
        try:
            parsed = json_mod.loads(json_args)
        except json_mod.JSONDecodeError as e:
            raise click.BadParameter(f"not valid JSON: {e}", param_hint="--json") from e
        if not isinstance(parsed, dict):
            raise click.BadParameter("must be a JSON object", param_hint="--json")
        arguments.update(parsed)
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got {pair!r}", param_hint="-a")
        arguments[key.strip()] = _parse_value(value)
    return arguments


# ── CLI group ────────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="vertext")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """vertext - assistant backend for your text messages.

    Tools over JSON-RPC, semantic message search, and a chat assistant.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── tools ────────────────────────────────────────────────────────


@cli.command()
@click.option("--json", "as_json", is_flag=True, default=False, help="Print raw definitions.")
@click.pass_context
def tools(ctx: click.Context, as_json: bool) -> None:
    """List the registered tools."""
    config = _load_config(ctx.obj["config_path"])
    _run(_tools_async(config, as_json))


async def _tools_async(config: VertextConfig, as_json: bool) -> None:
    app = await _open(config)
    try:
        definitions = app.registry.list_definitions()
    finally:
        await app.close()
    if as_json:
        click.echo(json_mod.dumps([d.to_dict() for d in definitions], indent=2))
        return
    _display().show_tools(definitions)


# ── call ─────────────────────────────────────────────────────────


@cli.command()
@click.argument("name")
@click.option("-a", "--arg", "pairs", multiple=True, help="Tool argument as key=value.")
@click.option("--json", "json_args", default=None, help="Tool arguments as a JSON object.")
@click.pass_context
def call(ctx: click.Context, name: str, pairs: tuple[str, ...], json_args: str | None) -> None:
    """Call tool NAME directly and print its result."""
    arguments = _parse_arguments(pairs, json_args)
    config = _load_config(ctx.obj["config_path"])
    _run(_call_async(config, name, arguments))


async def _call_async(config: VertextConfig, name: str, arguments: dict[str, Any]) -> None:
    app = await _open(config)
    try:
        result = await app.server.call_tool(name, arguments)
    finally:
        await app.close()
    if not result.success:
        _error(result.error or "Tool failed")
    click.echo(json_mod.dumps(result.data, indent=2, default=str))


# ── rpc ──────────────────────────────────────────────────────────


@cli.command()
@click.argument("request", default="-")
@click.pass_context
def rpc(ctx: click.Context, request: str) -> None:
    """Handle one JSON-RPC REQUEST ("-" reads it from stdin)."""
    raw = click.get_text_stream("stdin").read() if request == "-" else request
    config = _load_config(ctx.obj["config_path"])
    _run(_rpc_async(config, raw))


async def _rpc_async(config: VertextConfig, raw: str) -> None:
    app = await _open(config)
    try:
        response = await app.server.handle_request(raw)
    finally:
        await app.close()
    click.echo(response)


# ── index ────────────────────────────────────────────────────────


@cli.command()
@click.option("--batch-size", type=int, default=None, help="Messages per batch.")
@click.pass_context
def index(ctx: click.Context, batch_size: int | None) -> None:
    """Embed every message that is missing a current embedding."""
    config = _load_config(ctx.obj["config_path"])
    if batch_size is not None and batch_size <= 0:
        _error("--batch-size must be positive")
    _run(_index_async(config, batch_size or config.embedding.batch_size))


async def _index_async(config: VertextConfig, batch_size: int) -> None:
    app = await _open(config)
    display = _display()
    try:
        with display.console.status("Embedding messages...", spinner="dots"):
            report = await app.index.backfill(batch_size)
    finally:
        await app.close()
    display.show_report(report)


# ── search ───────────────────────────────────────────────────────


@cli.command()
@click.argument("query")
@click.option("--top-k", type=int, default=None, help="Max results.")
@click.option("--threshold", type=float, default=None, help="Minimum similarity 0-1.")
@click.option("--text", "text_mode", is_flag=True, default=False, help="Keyword search.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print raw results.")
@click.pass_context
def search(
    ctx: click.Context,
    query: str,
    top_k: int | None,
    threshold: float | None,
    text_mode: bool,
    as_json: bool,
) -> None:
    """Search messages for QUERY."""
    config = _load_config(ctx.obj["config_path"])
    arguments: dict[str, Any] = {"query": query, "mode": "text" if text_mode else "semantic"}
    if top_k is not None:
        arguments["max_results"] = top_k
    if threshold is not None:
        arguments["similarity_threshold"] = threshold
    _run(_search_async(config, arguments, as_json))


async def _search_async(config: VertextConfig, arguments: dict[str, Any], as_json: bool) -> None:
    app = await _open(config)
    try:
        result = await app.server.call_tool("search_messages", arguments)
    finally:
        await app.close()
    if not result.success:
        _error(result.error or "Search failed")
    if as_json:
        click.echo(json_mod.dumps(result.data, indent=2, default=str))
        return
    _display().show_hits(arguments["query"], result.data.get("results", []))


# ── import ───────────────────────────────────────────────────────


_TYPE_NAMES = {"received": 1, "inbox": 1, "sent": 2}


def _read_import_file(path: str) -> list[dict[str, Any]]:
    try:
        records = json_mod.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json_mod.JSONDecodeError) as e:
        _error(f"Cannot read {path}: {e}")
        raise  # unreachable
    if not isinstance(records, list):
        _error(f"{path}: expected a JSON list of messages")
    for i, record in enumerate(records):
        if not isinstance(record, dict) or not record.get("address"):
            _error(f"{path}: message {i} needs an 'address'")
    return records


def _message_type(value: Any) -> int:
    if isinstance(value, str):
        return _TYPE_NAMES.get(value.lower(), 1)
    if isinstance(value, int):
        return value
    return 1


@cli.command("import")
@click.argument("file", type=click.Path(exists=True))
@click.option("--index/--no-index", "run_index", default=True, help="Embed after import.")
@click.pass_context
def import_messages(ctx: click.Context, file: str, run_index: bool) -> None:
    """Import messages from FILE (a JSON list).

    Each entry needs ``address`` and ``body``; ``date`` (epoch ms),
    ``type`` ("received"/"sent"), ``read`` and ``name`` are optional.
    """
    records = _read_import_file(file)
    config = _load_config(ctx.obj["config_path"])
    _run(_import_async(config, records, run_index))


async def _import_async(
    config: VertextConfig, records: list[dict[str, Any]], run_index: bool
) -> None:
    from vertext.memory.models import now_ms

    app = await _open(config)
    display = _display()
    try:
        for record in records:
            thread = await app.store.get_or_create_thread(
                str(record["address"]), record.get("name")
            )
            await app.store.insert_message(
                thread.id,
                str(record["address"]),
                str(record.get("body", "")),
                int(record.get("date") or now_ms()),
                message_type=_message_type(record.get("type")),
                is_read=bool(record.get("read", False)),
            )
        click.echo(f"Imported {len(records)} messages.")
        if run_index:
            report = await app.index.backfill(config.embedding.batch_size)
            display.show_report(report)
    finally:
        await app.close()


# ── stats ────────────────────────────────────────────────────────


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show message and index statistics."""
    config = _load_config(ctx.obj["config_path"])
    _run(_stats_async(config))


async def _stats_async(config: VertextConfig) -> None:
    app = await _open(config)
    try:
        index_stats = await app.index.stats()
    finally:
        await app.close()
    _display().show_stats(index_stats)


# ── chat ─────────────────────────────────────────────────────────


@cli.command()
@click.pass_context
def chat(ctx: click.Context) -> None:
    """Chat with the assistant. /clear resets, /quit exits."""
    config = _load_config(ctx.obj["config_path"])
    _run(_chat_async(config))


async def _chat_async(config: VertextConfig) -> None:
    app = await _open(config)
    display = _display()
    try:
        await app.index.enqueue_for_embedding(config.embedding.batch_size)
        state = await app.orchestrator.start()
        click.echo(f"Assistant ready ({state.value}). Type /quit to exit.")
        while True:
            try:
                text = click.prompt("you", prompt_suffix="> ", default="", show_default=False)
            except click.Abort:
                break
            command = text.strip().lower()
            if command in ("/quit", "/exit"):
                break
            if command == "/clear":
                await app.orchestrator.clear_history()
                click.echo("History cleared.")
                continue
            reply = await app.orchestrator.send(text)
            if reply is not None:
                display.show_reply(reply)
    finally:
        await app.close()


# ── mcp ──────────────────────────────────────────────────────────


@cli.command()
@click.pass_context
def mcp(ctx: click.Context) -> None:
    """Serve the tools over stdio for MCP clients."""
    config = _load_config(ctx.obj["config_path"])
    _run(_mcp_async(config))


async def _mcp_async(config: VertextConfig) -> None:
    from vertext.mcp.stdio import run_stdio

    app = await _open(config)
    try:
        await app.index.enqueue_for_embedding(config.embedding.batch_size)
        await run_stdio(app.server)
    finally:
        await app.close()
