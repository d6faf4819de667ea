"""Crawl commands: the periodic service, single ticks and discovery checks."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import typer

from newsvault.classify import NullClassifier
from newsvault.config import Settings, settings
from newsvault.crawlers import (
    SITES,
    CrawlerRegistry,
    CrawlOrchestrator,
    Crawler,
    get_site,
    static_profile,
)
from newsvault.db import ArchiveStore, get_connection, init_db

crawl_app = typer.Typer(help="Discover and archive news articles.", no_args_is_help=True)


def _build_registry(cfg: Settings, sites: Optional[List[str]]) -> CrawlerRegistry:
    try:
        return CrawlerRegistry.from_settings(cfg, NullClassifier(), sites=sites)
    except KeyError as exc:
        typer.echo(f"[crawl] {exc.args[0]}")
        raise typer.Exit(code=1)


async def _serve(cfg: Settings, registry: CrawlerRegistry, once: bool) -> CrawlOrchestrator:
    conn = get_connection()
    init_db(conn)
    orchestrator = CrawlOrchestrator(
        registry,
        ArchiveStore(conn),
        interval_seconds=cfg.crawl_interval_seconds,
    )
    registry.initialize_all()
    try:
        if once:
            await orchestrator.run_once()
        else:
            await orchestrator.run()
    finally:
        await registry.release_all()
        conn.close()
    return orchestrator


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@crawl_app.command("run")
def crawl_run(
    interval: Optional[float] = typer.Option(
        None, "--interval", min=1, help="Seconds between ticks (default from settings)."
    ),
    output_root: Optional[Path] = typer.Option(
        None, "--output-root", help="Folder to write article text and images into."
    ),
    site: Optional[List[str]] = typer.Option(
        None, "--site", help="Site to crawl (repeatable). Defaults to ENABLED_SITES."
    ),
) -> None:
    """Crawl every enabled site periodically until interrupted (Ctrl-C)."""
    cfg = replace(
        settings,
        crawl_interval_seconds=interval or settings.crawl_interval_seconds,
        output_root=output_root or settings.output_root,
    )
    registry = _build_registry(cfg, site)
    typer.echo(
        f"[crawl run] Sites: {', '.join(registry.names)}  "
        f"interval={cfg.crawl_interval_seconds:g}s  output={cfg.output_root or '(db only)'}"
    )
    try:
        asyncio.run(_serve(cfg, registry, once=False))
    except KeyboardInterrupt:
        typer.echo("[crawl run] Interrupted, stopped.")


@crawl_app.command("once")
def crawl_once(
    output_root: Optional[Path] = typer.Option(
        None, "--output-root", help="Folder to write article text and images into."
    ),
    site: Optional[List[str]] = typer.Option(
        None, "--site", help="Site to crawl (repeatable). Defaults to ENABLED_SITES."
    ),
) -> None:
    """Run a single crawl tick over every enabled site."""
    cfg = replace(settings, output_root=output_root or settings.output_root)
    registry = _build_registry(cfg, site)
    typer.echo(f"[crawl once] Sites: {', '.join(registry.names)}")

    orchestrator = asyncio.run(_serve(cfg, registry, once=True))
    for report in orchestrator.last_reports.values():
        typer.echo(f"  {report}")
        for error in report.errors:
            typer.echo(f"      ! {error}")


@crawl_app.command("links")
def crawl_links(
    site: Optional[str] = typer.Option(None, "--site", help="Built-in site name."),
    url: Optional[str] = typer.Option(None, "--url", help="Any static listing page URL."),
    pages: Optional[int] = typer.Option(
        None, "--pages", min=0, help="Scroll steps for lazy-loaded listings."
    ),
) -> None:
    """Discover article links on a listing page and print them (nothing is stored)."""
    if bool(site) == bool(url):
        typer.echo("[crawl links] Pass exactly one of --site or --url.")
        raise typer.Exit(code=1)

    try:
        profile = get_site(site) if site else static_profile(url)
    except (KeyError, ValueError) as exc:
        typer.echo(f"[crawl links] {exc.args[0]}")
        raise typer.Exit(code=1)

    crawler = Crawler(profile, NullClassifier(), settings)

    async def _discover():
        crawler.initialize_components()
        try:
            return await crawler.discover(pages=pages)
        finally:
            await crawler.release_components()

    typer.echo(f"[crawl links] Visiting {profile.identity.url} …")
    status, links = asyncio.run(_discover())
    typer.echo(f"[crawl links] Status: {status.value}  links={len(links)}")
    for link in links:
        typer.echo(f"  {link}")
    if not links:
        raise typer.Exit(code=1)


@crawl_app.command("sites")
def crawl_sites() -> None:
    """List the built-in sites and whether they are enabled."""
    enabled = {name.lower() for name in settings.enabled_sites}
    for name, profile in SITES.items():
        mark = "*" if name in enabled else " "
        typer.echo(f" {mark} {name:<10} {profile.identity.friendly_name}  {profile.identity.url}")
