"""Command line entry point."""
from __future__ import annotations

import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

import click
import orjson
from pydantic import ValidationError

from feedsync.antibot import Evasion
from feedsync.bitable import BitableClient, BitableService
from feedsync.collector_mtop import DetailFetcher, FeedCrawler, FeedOptions, MtopClient
from feedsync.collector_mtop.credentials import acquire_with_browser, from_cookie_header
from feedsync.collector_mtop.feed import FeedResult
from feedsync.config import AppConfig, load_config
from feedsync.errors import FeedSyncError
from feedsync.models import SessionCredential
from feedsync.pipeline import run_sync

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOGGER = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


def resolve_credential(config: AppConfig, cookie: Optional[str]) -> SessionCredential:
    """Prefer an explicit cookie header, fall back to a browser login."""
    header = cookie or config.mtop.cookie
    if header:
        return from_cookie_header(header)
    return acquire_with_browser(headless=config.browser.headless, timeout_ms=config.browser.timeout)


def build_client(config: AppConfig, credential: SessionCredential) -> MtopClient:
    return MtopClient(
        credential,
        app_key=config.mtop.app_key,
        base_url=config.mtop.base_url,
        timeout=config.mtop.timeout,
        evasion=Evasion.from_config(config.anti_bot),
    )


def dump_result(result: FeedResult, output: Path) -> None:
    payload = {
        "pages": result.pages_fetched,
        "raw_count": result.raw_count,
        "count": len(result.items),
        "items": [item.model_dump() for item in result.items],
    }
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))


@click.group()
def cli():
    """Harvest the marketplace feed and sync it into Feishu bitable."""
    pass


@cli.command()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="YAML config file")
@click.option("--pages", type=int, help="Number of feed pages to fetch")
@click.option("--min-want", type=int, help="Minimum want count, 0 disables")
@click.option("--days", type=int, help="Only items published within N days, 0 disables")
@click.option("--output", type=click.Path(dir_okay=False), help="JSON dump of the crawled items")
@click.option("--push/--no-push", default=None, help="Sync into bitable (defaults to feishu.enabled)")
@click.option("--headless/--headed", default=None, help="Browser mode for login")
@click.option("--cookie", help="Raw Cookie header containing _m_h5_tk")
def crawl(
    config_path: Optional[str],
    pages: Optional[int],
    min_want: Optional[int],
    days: Optional[int],
    output: Optional[str],
    push: Optional[bool],
    headless: Optional[bool],
    cookie: Optional[str],
) -> None:
    """Fetch feed pages, dump them to JSON and optionally push them."""
    try:
        config = load_config(config_path)
    except FeedSyncError as exc:
        raise click.ClickException(str(exc)) from exc
    setup_logging(config.logging.level)

    crawl_cfg = config.crawl
    if headless is not None:
        config.browser.headless = headless
    try:
        options = FeedOptions(
            max_pages=crawl_cfg.pages if pages is None else pages,
            page_size=crawl_cfg.page_size,
            min_want_count=crawl_cfg.min_want if min_want is None else min_want,
            days_within=crawl_cfg.days if days is None else days,
        )
    except ValidationError as exc:
        raise click.ClickException(f"invalid crawl options: {exc}") from exc
    do_push = config.feishu.enabled if push is None else push
    if do_push and not (config.feishu.app_id and config.feishu.app_secret and config.feishu.app_token):
        raise click.ClickException("--push needs feishu app_id, app_secret and app_token")

    try:
        credential = resolve_credential(config, cookie)
        with build_client(config, credential) as client:
            result = FeedCrawler(client).crawl(options)
            out_path = Path(output or crawl_cfg.output)
            dump_result(result, out_path)
            click.echo(f"Fetched {result.raw_count} item(s) over {result.pages_fetched} page(s), kept {len(result.items)}")
            click.echo(f"Saved to {out_path}")

            if not do_push:
                return
            with BitableClient(config.feishu.app_id, config.feishu.app_secret, base_url=config.feishu.base_url) as fs:
                service = BitableService(fs, config.feishu.app_token)
                report = run_sync(
                    result,
                    service,
                    DetailFetcher(client),
                    period=date.today(),
                    detail_retries=crawl_cfg.detail_retries,
                )
    except FeedSyncError as exc:
        LOGGER.error("Run failed: %s", exc)
        raise click.ClickException(str(exc)) from exc

    click.echo(f"Sync: {report.summary()}")
    for item_id, error in report.failed_details.items():
        click.echo(f"  detail failed {item_id}: {error}")
    for name, error in report.failed_fields.items():
        click.echo(f"  field failed {name}: {error}")
    if not report.success:
        raise click.ClickException(report.message)


@cli.command()
@click.argument("item_id")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="YAML config file")
@click.option("--cookie", help="Raw Cookie header containing _m_h5_tk")
@click.option("--retries", type=int, help="Attempts when the upstream throttles")
def detail(item_id: str, config_path: Optional[str], cookie: Optional[str], retries: Optional[int]) -> None:
    """Fetch one item detail and print it as JSON."""
    try:
        config = load_config(config_path)
        setup_logging(config.logging.level)
        credential = resolve_credential(config, cookie)
        with build_client(config, credential) as client:
            item = DetailFetcher(client).fetch_with_retry(item_id, retries or config.crawl.detail_retries)
    except (FeedSyncError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(orjson.dumps(item.model_dump(), option=orjson.OPT_INDENT_2).decode())


if __name__ == "__main__":
    cli()
