"""CLI interface for Baha Miner."""

import asyncio
import logging
import signal
import sys

import click

from .crawler import PAGE_DELAY, Crawler
from .errors import BahaMinerError
from .monitor import Monitor
from .rule import DEFAULT_ASYLUM_BSN, DEFAULT_INTERVAL, DEFAULT_MAX_FAILURE, TrackingRule
from .store import DEFAULT_DB_PATH, BuildingStore
from .target import TargetInfo
from .transport import Transport

logger = logging.getLogger(__name__)

account_option = click.option(
    '--account', envvar='BAHA_ACCOUNT', required=True, help='Login account (env: BAHA_ACCOUNT)'
)
password_option = click.option(
    '--password', envvar='BAHA_PASSWORD', required=True, help='Login password (env: BAHA_PASSWORD)'
)


@click.group()
@click.option(
    '--log-level',
    default='INFO',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
    help='Logging level'
)
def main(log_level):
    """Baha Miner - scrape and track Bahamut forum threads."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


@main.command()
@click.argument('url')
@account_option
@password_option
@click.option('--db', 'db_path', default=str(DEFAULT_DB_PATH), help='SQLite database path')
@click.option('--no-db', is_flag=True, help='Do not persist the scraped thread')
@click.option('--print', 'print_pages', is_flag=True, help='Print every page as JSON')
@click.option('--delay', default=PAGE_DELAY, type=click.FloatRange(min=0), help='Seconds to wait before each page')
@click.option('--progress', is_flag=True, help='Show a progress bar over pages')
def scrape(url, account, password, db_path, no_db, print_pages, delay, progress):
    """Scrape every page of the thread at URL."""
    try:
        asyncio.run(_scrape(url, account, password, None if no_db else db_path,
                            print_pages, delay, progress))
    except BahaMinerError as e:
        raise click.ClickException(str(e)) from e


async def _scrape(url, account, password, db_path, print_pages, delay, progress):
    target = TargetInfo.from_url(url)
    async with Transport() as transport:
        await transport.login(account, password)
        crawler = Crawler(transport, page_delay=delay, show_progress=progress)

        if db_path:
            building, report = await crawler.scrape_and_sync(target, BuildingStore(db_path))
            click.echo(f"Synced: {report.created} created, {report.updated} updated, "
                       f"{report.unchanged} unchanged, {report.failed} failed")
        else:
            building = await crawler.scrape_building(target)

    if print_pages:
        for page in building.pages:
            click.echo(page.to_json().decode())
    click.echo(f"{building.building_title}: {building.last_page_index} pages, "
               f"{len(building.floors)} floors")


@main.command()
@account_option
@password_option
@click.option('--bsn', default=DEFAULT_ASYLUM_BSN, type=int, help='Board id')
@click.option('--sna', required=True, type=int, help='Thread id')
@click.option('--author', 'author_id', required=True, help='Author id to follow')
@click.option('--interval', default=DEFAULT_INTERVAL, type=click.FloatRange(min=0),
              help='Seconds between polls')
@click.option('--max-failure', default=DEFAULT_MAX_FAILURE, type=click.IntRange(min=1),
              help='Consecutive failed polls before shutdown')
def monitor(account, password, bsn, sna, author_id, interval, max_failure):
    """Poll a thread for new or edited posts by one author."""
    try:
        rule = TrackingRule(bsn=bsn, sna=sna, author_id=author_id,
                            interval=interval, max_failure=max_failure)
        asyncio.run(_monitor(account, password, [rule]))
    except BahaMinerError as e:
        raise click.ClickException(str(e)) from e


def install_signal_handlers(monitor_obj: Monitor) -> None:
    """Route SIGINT/SIGTERM to Monitor.stop where the platform allows it."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, monitor_obj.stop, f"received {sig.name}")
        except NotImplementedError:
            logger.warning("Signal handlers are not supported on %s", sys.platform)
            return


async def _monitor(account, password, rules):
    async with Transport() as transport:
        await transport.login(account, password)
        monitor_obj = Monitor(Crawler(transport), rules)
        install_signal_handlers(monitor_obj)
        await monitor_obj.run()
    click.echo(f"Monitor stopped: {monitor_obj.stop_reason}")


@main.command()
@click.argument('bsn', type=int)
@click.argument('sna', type=int)
@click.option('--db', 'db_path', default=str(DEFAULT_DB_PATH), help='SQLite database path')
def show(bsn, sna, db_path):
    """Print a stored thread as JSON."""
    store = BuildingStore(db_path)
    building = store.load_building(bsn, sna)
    if building is None:
        raise click.ClickException(f"Building {bsn}/{sna} is not in {db_path}")
    click.echo(building.to_json().decode())


if __name__ == '__main__':
    main()
