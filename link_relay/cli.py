#!/usr/bin/env python3
"""
Command line entry point of LinkRelay.

Commands:
  serve     Run the redirect/preview HTTP server
  inspect   Extract title, description and favicon of one page
  config    Show the effective configuration

Common options:
  --config PATH            YAML/JSON config (default: configs/default.yaml if present)
  --log-level LEVEL        Logging level (DEBUG, INFO, ...)
  --log-file PATH          Log file (stdout only if omitted)
  --log-format FORMAT      Log format string
  --telegram-token TOKEN   Bot token   (env: TELEGRAM_BOT_TOKEN)
  --telegram-chat-id ID    Chat id     (env: TELEGRAM_CHAT_ID)

Also:
  --version, -v            Show the LinkRelay version

Example:
  link-relay --log-level DEBUG serve --port 8080
  link-relay inspect https://example.com --pretty
"""
import asyncio
import json
import sys
from pathlib import Path

import click
from aiohttp import ClientSession

from link_relay import __version__
from link_relay.config import load_config
from link_relay.fetcher import FetchError, fetch_metadata
from link_relay.logger import init_logging
from link_relay.parser import extract_metadata, resolve_favicon, build_favicon_tag
from link_relay.server import is_valid_target, run_server

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='LinkRelay, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Path to a YAML or JSON config file.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Logging level'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Log file (stdout if omitted)'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(name)s %(message)s',
    show_default=True,
    help='Log format string'
)
@click.option('--telegram-token', 'telegram_token', envvar='TELEGRAM_BOT_TOKEN', default=None,
              help='Telegram bot token')
@click.option('--telegram-chat-id', 'telegram_chat_id', envvar='TELEGRAM_CHAT_ID', default=None,
              help='Telegram chat id to notify')
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format, telegram_token, telegram_chat_id):
    """LinkRelay command group."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
        cfg = cfg.with_telegram(telegram_token, telegram_chat_id)
    except Exception as e:
        print_error(f'Failed to load configuration: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('serve', context_settings=CONTEXT_SETTINGS)
@click.option('--host', default=None, help='Interface to listen on (overrides config)')
@click.option('--port', '-p', default=None, type=int, help='Port to listen on (overrides config)')
@click.pass_context
def serve(ctx, host, port):
    """Run the redirect/preview server."""
    try:
        cfg = ctx.obj['config'].with_overrides(host=host, port=port)
    except Exception as e:
        print_error(f'Invalid server options: {e}')
    if cfg.telegram is None:
        click.secho('Telegram is not configured, visits are only logged', fg='yellow', err=True)
    run_server(cfg)


async def _fetch(cfg, url):
    async with ClientSession() as session:
        return await fetch_metadata(
            session,
            url,
            timeout=cfg.fetch_timeout,
            max_body_bytes=cfg.max_body_bytes,
            chunk_size=cfg.chunk_size,
            user_agent=cfg.user_agent,
        )


@cli.command('inspect', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option(
    '--file', '-f', 'html_file',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Read the page from a local file; URL is only used as the base'
)
@click.option('--pretty', is_flag=True, help='Indent JSON output (2 spaces)')
@click.pass_context
def inspect(ctx, url, html_file, pretty):
    """Print title, description and favicon of URL as JSON."""
    cfg = ctx.obj['config']
    if html_file is not None:
        with html_file.open('rb') as fh:
            meta = extract_metadata(fh, chunk_size=cfg.chunk_size)
    else:
        if not is_valid_target(url):
            print_error(f'Invalid URL: {url}')
        try:
            meta = asyncio.run(_fetch(cfg, url))
        except FetchError as e:
            print_error(f'Failed to fetch {e.url}: {e.reason}')

    result = {
        'url': url,
        'title': meta.title,
        'description': meta.description,
        'favicon': meta.favicon,
        'favicon_url': resolve_favicon(meta.favicon, url),
        'favicon_tag': str(build_favicon_tag(meta.favicon, url)),
    }
    click.echo(json.dumps(result, ensure_ascii=False, indent=2 if pretty else None))


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Show the effective configuration as JSON (secrets masked)."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


def main():
    cli(prog_name='link-relay')


if __name__ == "__main__":
    main()
