# === FILE: site_crawler/cli.py ===
#!/usr/bin/env python3
"""
Точка входа для запуска краулера SiteCrawler через командную строку.

Команды:
  crawl URL   Обойти сайт начиная с URL и вывести/сохранить сводку
  config      Показать текущую конфигурацию
  serve       HTTP-сервер: POST /crawl {"url": ...} запускает обход в фоне

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml, если есть)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stdout, если не указан)
  --log-format FORMAT Формат логирования

Команда crawl опции:
  --max-depth INT       Максимальная глубина (override max_depth)
  --concurrency INT     Одновременных загрузок (override max_concurrency)
  --user-agent TEXT     User-Agent для HTTP и robots.txt
  --timeout SEC         Таймаут одного запроса
  --retries INT         Повторы при сетевых ошибках и 5xx
  --json PATH           Сохранить JSON-сводку в файл
  --pretty              Преформатировать JSON-вывод (отступ 2)
  --crawl-timeout SEC   Таймаут всего обхода (секунд)

Дополнительно:
  --version, -v       Показать версию SiteCrawler

Пример:
  site-crawler crawl https://example.com/ --max-depth 2 --concurrency 5 --json report.json
"""
import asyncio
import json
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from site_crawler import __version__
from site_crawler.config import DEFAULT_CONFIG_PATH, CrawlerConfig, load_config
from site_crawler.engine import start_crawl
from site_crawler.errors import MalformedSeedURL
from site_crawler.logger import DEFAULT_FORMAT, init_logging
from site_crawler.report import render_json, report_to_dict
from site_crawler.utils import validate_seed_url
from site_crawler.web import run_server

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteCrawler, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help=f'Путь к файлу конфигурации YAML/JSON (по умолчанию {DEFAULT_CONFIG_PATH}, если существует).'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stdout, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """Группа команд SiteCrawler CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        if config_path is not None or DEFAULT_CONFIG_PATH.exists():
            cfg = load_config(config_path)
        else:
            cfg = CrawlerConfig()
    except (OSError, ValueError, TypeError) as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.argument('url', required=False)
@click.option('--max-depth', '-d', 'max_depth', type=click.IntRange(min=0), default=None,
              help='Максимальная глубина обхода')
@click.option('--concurrency', '-n', 'concurrency', type=click.IntRange(min=1), default=None,
              help='Максимум одновременных загрузок')
@click.option('--user-agent', '-u', 'user_agent', default=None,
              help='User-Agent для HTTP-запросов и robots.txt')
@click.option('--timeout', 'timeout', type=float, default=None,
              help='Таймаут одного запроса (секунд)')
@click.option('--retries', 'retry_times', type=click.IntRange(min=0), default=None,
              help='Повторы при сетевых ошибках и 5xx')
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить JSON-сводку в файл'
)
@click.option('--pretty', is_flag=True, help='Преформатировать JSON-вывод (отступ 2)')
@click.option('--crawl-timeout', 'crawl_timeout', type=float, default=None,
              help='Таймаут всего обхода (секунд)')
@click.pass_context
def crawl(ctx, url, max_depth, concurrency, user_agent, timeout, retry_times, json_output, pretty, crawl_timeout):
    """Обойти сайт начиная с URL и вывести сводку."""
    cfg = ctx.obj['config']
    seed = url or (str(cfg.seed_url) if cfg.seed_url else None)
    if not seed:
        print_error('Не задан стартовый URL (аргумент URL или seed_url в конфиге)')
    try:
        seed = validate_seed_url(seed)
    except MalformedSeedURL as e:
        print_error(f'Некорректный URL: {e}')
    try:
        cfg = cfg.with_overrides(
            seed_url=seed,
            max_depth=max_depth,
            max_concurrency=concurrency,
            user_agent=user_agent,
            timeout=timeout,
            retry_times=retry_times,
        )
    except ValidationError as e:
        print_error(f'Некорректные параметры: {e}')

    click.echo(f'Starting crawl: {seed}', err=True)
    try:
        report = asyncio.run(asyncio.wait_for(start_crawl(cfg), timeout=crawl_timeout))
    except asyncio.TimeoutError:
        print_error(f'Обход не завершён за {crawl_timeout} секунд')
    except Exception as e:
        print_error(f'Ошибка при обходе: {e}')

    if json_output:
        try:
            saved_json = render_json(report, json_output)
            click.echo(f'JSON report: {saved_json}')
        except OSError as e:
            print_error(f'Ошибка при сохранении JSON: {e}')
        return

    indent = 2 if pretty else None
    click.echo(json.dumps(report_to_dict(report), ensure_ascii=False, indent=indent))


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


@cli.command('serve', context_settings=CONTEXT_SETTINGS)
@click.option('--host', default='127.0.0.1', show_default=True, help='Адрес для HTTP-сервера')
@click.option('--port', default=8080, show_default=True, type=click.IntRange(1, 65535), help='Порт HTTP-сервера')
@click.pass_context
def serve(ctx, host, port):
    """Запустить HTTP-сервер: POST /crawl {"url": ...} стартует обход."""
    run_server(ctx.obj['config'], host=host, port=port)


if __name__ == "__main__":
    cli()
