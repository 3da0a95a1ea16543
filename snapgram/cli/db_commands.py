"""
Data store CLI commands for Snapgram
"""

import asyncio
import json
import logging
from typing import Dict

import click
from tabulate import tabulate

from ..config import get_config_value
from ..exceptions import StoreError
from ..store.memory import TABLES
from ..store.sql import SQLStore

logger = logging.getLogger(__name__)


def _store_url(ctx, url: str = None) -> str:
    return url or get_config_value(ctx.obj.get('config', {}), 'store.url', 'sqlite://')


async def _table_counts(store: SQLStore) -> Dict[str, int]:
    try:
        return {table: await store.count(table) for table in TABLES}
    finally:
        await store.close()


@click.group()
def db():
    """Data store management commands"""
    pass


@db.command()
@click.option('--url', help='Database URL, defaults to store.url from config')
@click.pass_context
def init(ctx, url: str = None):
    """Create the Snapgram tables if they do not exist"""
    url = _store_url(ctx, url)
    try:
        store = SQLStore(url=url, create_tables=True)
    except StoreError as e:
        click.echo(f"❌ Could not initialise {url}: {e}", err=True)
        ctx.exit(1)
    asyncio.run(store.close())
    click.echo(f"✅ Tables ready: {', '.join(TABLES)}")


@db.command()
@click.option('--url', help='Database URL, defaults to store.url from config')
@click.option('--json', 'output_json', is_flag=True, help='Output as JSON')
@click.pass_context
def stats(ctx, url: str = None, output_json: bool = False):
    """Show row counts per table"""
    url = _store_url(ctx, url)
    try:
        counts = asyncio.run(_table_counts(SQLStore(url=url, create_tables=False)))
    except StoreError as e:
        click.echo(f"❌ Error reading {url}: {e}", err=True)
        ctx.exit(1)

    if output_json:
        click.echo(json.dumps(counts, indent=2))
        return

    click.echo(tabulate(sorted(counts.items()), headers=['Table', 'Rows'], tablefmt='grid'))
