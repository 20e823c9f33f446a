"""CLI entry point for the juicebox_notifier pipeline."""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime, timezone

import click

from juicebox_notifier.config import load_config
from juicebox_notifier.runner import run_notifier
from juicebox_notifier.storage.sqlite import SQLiteStateStore


def _require_endpoints(cfg) -> None:
    """Exit with error if the subgraph or webhook URL is missing."""
    missing = []
    if not cfg.subgraph_url:
        missing.append("subgraph URL (JUICEBOX_NOTIFIER_SUBGRAPH_URL)")
    if not cfg.webhook_url:
        missing.append("Discord webhook (JUICEBOX_NOTIFIER_DISCORD_WEBHOOK)")
    if missing:
        for item in missing:
            click.echo(f"Error: No {item} configured.", err=True)
        sys.exit(1)


def _mask(url: str) -> str:
    if not url:
        return "(not set)"
    # webhook URLs embed their token in the last path segment
    head, _, _ = url.rpartition("/")
    return f"{head}/***" if head else "***"


def _fmt_ts(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """juicebox-notifier - Discord notifications for Juicebox payments and launches."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose
    try:
        cfg = load_config(config_path)
    except ValueError as exc:
        click.echo(f"Error: invalid configuration: {exc}", err=True)
        sys.exit(1)
    ctx.obj["config"] = cfg

    level = logging.DEBUG if verbose else getattr(logging, cfg.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Run ────────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Poll every stream once and post new events to Discord."""
    cfg = ctx.obj["config"]
    _require_endpoints(cfg)

    try:
        report = asyncio.run(run_notifier(cfg))
    except Exception as exc:
        click.echo(f"Error: run failed, watermarks not saved: {exc}", err=True)
        sys.exit(1)

    for result in report.results:
        line = (
            f"{result.stream:<15} {result.delivered} delivered, {result.skipped} skipped, "
            f"{result.failed} failed, watermark {result.prior_watermark} -> {result.watermark}"
        )
        if result.error:
            line += f" (fetch failed: {result.error})"
        click.echo(line)


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show configuration and stored watermarks."""
    cfg = ctx.obj["config"]
    click.echo(f"Streams:    {', '.join(s.value for s in cfg.streams)}")
    click.echo(f"Subgraph:   {cfg.subgraph_url or '(not set)'}")
    click.echo(f"Webhook:    {_mask(cfg.webhook_url)}")
    click.echo(f"IPFS:       {cfg.ipfs_gateway}")
    click.echo(f"ENS:        {cfg.ens_resolver_url}")
    click.echo(f"DB path:    {cfg.db_path}")

    async def _watermarks():
        store = SQLiteStateStore(cfg.db_path)
        await store.initialize()
        try:
            return await store.get_all_watermarks(), await store.count_errors()
        finally:
            await store.close()

    watermarks, error_count = asyncio.run(_watermarks())
    click.echo("")
    if not watermarks:
        click.echo("Watermarks: none yet (first run seeds them to the current time)")
    for stream, ts in watermarks.items():
        click.echo(f"  {stream:<15} {ts} ({_fmt_ts(ts)})")
    click.echo(f"Errors logged: {error_count}")


@cli.command()
@click.option("--limit", "-n", type=int, default=20, help="Number of entries to show")
@click.pass_context
def errors(ctx: click.Context, limit: int) -> None:
    """Show the most recent error log entries."""
    cfg = ctx.obj["config"]

    async def _errors():
        store = SQLiteStateStore(cfg.db_path)
        await store.initialize()
        try:
            return await store.get_recent_errors(limit)
        finally:
            await store.close()

    records = asyncio.run(_errors())
    if not records:
        click.echo("No errors logged.")
        return
    for r in records:
        where = f" tx={r.tx_hash}" if r.tx_hash else ""
        click.echo(f"{r.created_at} [{r.stream}/{r.kind}]{where} {r.message}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
