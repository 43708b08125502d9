# === FILE: ithbat/cli.py ===
#!/usr/bin/env python3
"""
Command-line entry point for Ithbat.

Commands:
  verify    Check a claim against the trusted sources and print/save a report
  research  Stream a researched answer to a question
  crawl     Run a bounded crawl and print the pages found
  hadith    Look up a hadith by collection and number
  serve     Start the HTTP API (POST /api/verify, POST /api/research)
  config    Show the effective configuration

Global options:
  --config PATH       YAML/JSON config (default: configs/default.yaml if present)
  --log-level LEVEL   Logging level (DEBUG, INFO, ...)
  --log-file PATH     Log file (stderr only when omitted)
  --log-format FORMAT logging.Formatter format string
  --version, -v       Show the version

Example:
  ithbat verify "actions are judged by intentions" --type hadith --json report.json --pretty
"""
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

import click

from ithbat import __version__
from ithbat.config import IthbatConfig, load_config
from ithbat.crawler.models import CrawledPage
from ithbat.engine import Engine
from ithbat.errors import IthbatError
from ithbat.events import ResearchStepEvent
from ithbat.hadith import EDITION_MAP, HadithResult
from ithbat.logger import init_logging
from ithbat.report.html_report import render_html
from ithbat.report.json_report import render_json
from ithbat.server import run_server
from ithbat.verification import CLAIM_TYPES, VerificationResponse

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


async def run_verify(cfg: IthbatConfig, query: str, claim_type: str, claim: str, profile: Optional[str]) -> VerificationResponse:
    async with Engine(cfg) as engine:
        return await engine.verify(query, claim_type, claim, profile)


async def run_crawl(cfg: IthbatConfig, query: str, profile: Optional[str]) -> List[CrawledPage]:
    async with Engine(cfg) as engine:
        return await engine.crawl(query, profile)


async def run_research(cfg: IthbatConfig, query: str, profile: Optional[str], session_id: Optional[str], language: str, emit) -> None:
    async with Engine(cfg) as engine:
        async for event in engine.research(query, profile, session_id=session_id, language=language):
            emit(event)


async def fetch_hadith(cfg: IthbatConfig, collection: str, number: int) -> Optional[HadithResult]:
    async with Engine(cfg) as engine:
        return await engine.hadith(collection, number)


def _run(coro, timeout: Optional[float]):
    if timeout:
        return asyncio.run(asyncio.wait_for(coro, timeout=timeout))
    return asyncio.run(coro)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='Ithbat, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Path to a YAML/JSON config (default: configs/default.yaml if present).'
)
@click.option(
    '--log-level', 'log_level',
    default='WARNING', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Logging level'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Log file (stderr only when omitted)'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(message)s',
    show_default=True,
    help='Log line format'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """Ithbat: answers and claim checks backed by trusted Islamic sources."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Failed to load configuration: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('verify', context_settings=CONTEXT_SETTINGS)
@click.argument('query')
@click.option('--type', '-t', 'claim_type', type=click.Choice(CLAIM_TYPES), default='general', show_default=True,
              help='Kind of claim; tailors the search query')
@click.option('--claim', 'claim', default='', help='Claim text to score against (defaults to QUERY)')
@click.option('--profile', '-p', 'profile', default=None, help='Traversal profile (quick, standard, deep)')
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Save the JSON report to a file'
)
@click.option(
    '--html', '-h', 'html_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Save the HTML report to a file'
)
@click.option(
    '--template', 'template_dir',
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help='Directory with a custom verification.html.j2'
)
@click.option('--pretty', is_flag=True, help='Indent JSON output by two spaces')
@click.option('--timeout', 'timeout', type=float, default=None, help='Overall timeout in seconds')
@click.pass_context
def verify(ctx, query, claim_type, claim, profile, json_output, html_output, template_dir, pretty, timeout):
    """Verify QUERY against the trusted sources."""
    cfg = ctx.obj['config']
    try:
        response = _run(run_verify(cfg, query, claim_type, claim, profile), timeout)
    except asyncio.TimeoutError:
        print_error(f'Verification did not finish within {timeout} seconds')
    except (IthbatError, KeyError) as e:
        print_error(f'Verification failed: {e}')

    if not json_output and not html_output:
        indent = 2 if pretty else None
        click.echo(json.dumps(response.to_dict(), ensure_ascii=False, indent=indent))
        return

    if json_output:
        try:
            saved_json = render_json(response, json_output, pretty=pretty)
            click.echo(f'JSON report: {saved_json}')
        except OSError as e:
            print_error(f'Failed to save JSON: {e}')

    if html_output:
        try:
            saved_html = render_html(response, template_dir, html_output, claim=claim or query)
            click.echo(f'HTML report: {saved_html}')
        except Exception as e:
            print_error(f'Failed to save HTML: {e}')


@cli.command('research', context_settings=CONTEXT_SETTINGS)
@click.argument('query')
@click.option('--profile', '-p', 'profile', default=None, help='Traversal profile (quick, standard, deep)')
@click.option('--session-id', 'session_id', default=None, help='Continue an archived conversation')
@click.option('--language', 'language', default='en', show_default=True, help='Interface language for heuristics')
@click.option('--events', 'raw_events', is_flag=True, help='Print raw events as JSON lines')
@click.option('--timeout', 'timeout', type=float, default=None, help='Overall timeout in seconds')
@click.pass_context
def research(ctx, query, profile, session_id, language, raw_events, timeout):
    """Research QUERY and stream the answer."""
    cfg = ctx.obj['config']
    failed: List[str] = []

    def emit(event: ResearchStepEvent) -> None:
        if event.type == 'error':
            failed.append(event.error or 'unknown error')
        if raw_events:
            click.echo(event.model_dump_json(by_alias=True, exclude_none=True))
        elif event.type == 'step_start':
            click.secho(f'== {event.step} ==', bold=True, err=True)
        elif event.type == 'step_content':
            click.echo(event.content or '', nl=False, err=True)
        elif event.type == 'response_content':
            click.echo(event.content or '', nl=False)

    try:
        _run(run_research(cfg, query, profile, session_id, language, emit), timeout)
    except asyncio.TimeoutError:
        print_error(f'Research did not finish within {timeout} seconds')
    except KeyError as e:
        print_error(f'Research failed: {e}')
    if failed:
        print_error(f'Research failed: {failed[0]}')


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.argument('query')
@click.option('--profile', '-p', 'profile', default=None, help='Traversal profile (quick, standard, deep)')
@click.option('--pretty', is_flag=True, help='Indent JSON output by two spaces')
@click.option('--timeout', 'timeout', type=float, default=None, help='Overall timeout in seconds')
@click.pass_context
def crawl(ctx, query, profile, pretty, timeout):
    """Crawl the trusted sources for QUERY and print the pages as JSON."""
    cfg = ctx.obj['config']
    try:
        pages = _run(run_crawl(cfg, query, profile), timeout)
    except asyncio.TimeoutError:
        print_error(f'Crawl did not finish within {timeout} seconds')
    except (IthbatError, KeyError) as e:
        print_error(f'Crawl failed: {e}')

    results = [
        {'url': p.url, 'title': p.title, 'depth': p.depth, 'source': p.source, 'content': p.content}
        for p in pages
    ]
    click.echo(json.dumps(results, ensure_ascii=False, indent=2 if pretty else None))


@cli.command('hadith', context_settings=CONTEXT_SETTINGS)
@click.argument('collection', type=click.Choice(sorted(EDITION_MAP)))
@click.argument('number', type=click.IntRange(min=1))
@click.pass_context
def hadith(ctx, collection, number):
    """Print hadith NUMBER of COLLECTION in English and Arabic."""
    cfg = ctx.obj['config']
    result = asyncio.run(fetch_hadith(cfg, collection, number))
    if result is None:
        print_error(f'Hadith {collection} {number} not found')
    click.secho(f'{result.collection} {result.number}', bold=True)
    if result.english:
        click.echo(result.english)
    if result.arabic:
        click.echo(result.arabic)


@cli.command('serve', context_settings=CONTEXT_SETTINGS)
@click.option('--host', default=None, help='Bind address (default from config)')
@click.option('--port', type=click.IntRange(1, 65535), default=None, help='Port (default from config)')
@click.pass_context
def serve(ctx, host, port):
    """Start the HTTP API."""
    cfg = ctx.obj['config']
    run_server(cfg, host=host, port=port)


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Show the effective configuration as JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
