import functools
import logging
import os
import traceback

import click
import yaml
from pydantic import BaseModel

from . import __version__
from .codecs.network import parse_interfaces, write_interfaces
from .codecs.network.kernel import active_interfaces, physical_interfaces
from .config import load_settings
from .exceptions import (
    CodecError,
    ConfigurationError,
    HostConfError,
    HostConfIOError,
    NotRegisteredError,
)
from .files import create_host_cache
from .utils import parse_module_levels, setup_logger


def setup_logging(debug: bool, log_levels: str = None, log_file: str = None, configured: dict = None):
    """Setup logger; levels from the command line win over the configuration file."""
    module_levels = dict(configured or {})
    if log_levels:
        module_levels.update(parse_module_levels(log_levels))
    setup_logger(debug=debug, module_levels=module_levels or None, log_file=log_file)


def _fail(message: str, e: Exception):
    logging.error(f"{message}: {e}")
    ctx = click.get_current_context()
    if ctx.obj and ctx.obj.get('debug'):
        traceback.print_exc()
    raise click.Abort()


def handle_errors(func):
    """Decorator to handle common exceptions"""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ConfigurationError as e:
            _fail("Configuration error", e)
        except NotRegisteredError as e:
            _fail("Unknown file", e)
        except CodecError as e:
            _fail("Invalid data", e)
        except HostConfIOError as e:
            _fail("I/O error", e)
        except HostConfError as e:
            _fail("An unexpected application error occurred", e)
    return wrapper


def to_plain(value):
    """Turn parsed values into plain data for YAML output."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    return value


def echo_yaml(value):
    click.echo(yaml.safe_dump(to_plain(value), default_flow_style=False, sort_keys=True).rstrip("\n"))


@click.group()
@click.option('-c', '--config', 'config_file', type=click.Path(dir_okay=False),
              help='Settings file (YAML)')
@click.option('-v', '--verbose', is_flag=True, help='Enable debug logging')
@click.option('--root', type=click.Path(file_okay=False), help='Operate on a host tree below this directory')
@click.option('-l', '--log-levels', help="Comma-separated per-module log levels (e.g., 'cache=DEBUG,net=INFO')")
@click.option('-f', '--log-file', help='Path to log file')
@click.version_option(version=__version__, prog_name='hostconf')
@click.pass_context
def cli(ctx, config_file, verbose, root, log_levels, log_file):
    """hostconf - cached, change-aware access to host configuration files

    \b
    Examples:
      hostconf ids                              List managed files
      hostconf read interfaces --diff           Show parsed network config and pending changes
      hostconf --root /srv/img read hostname    Read from an image tree
    """
    ctx.ensure_object(dict)
    ctx.obj['debug'] = verbose
    try:
        settings = load_settings(config_file, root=os.path.abspath(root) if root else None)
    except ConfigurationError as e:
        setup_logging(verbose, log_levels, log_file)
        _fail("Configuration error", e)
    setup_logging(verbose, log_levels, log_file, settings.log_levels)
    ctx.obj['settings'] = settings
    ctx.obj['cache'] = create_host_cache(settings)


@cli.command()
@click.pass_context
def ids(ctx):
    """List registered file ids and their paths"""
    cache = ctx.obj['cache']
    for id, path in sorted(cache.registry.ids.items()):
        shadow = cache.registry.shadow_of(path)
        suffix = f" (working copy {shadow})" if shadow else ""
        click.echo(f"{id:<15} {path}{suffix}")


@cli.command()
@click.argument('file_id')
@click.option('--diff', 'show_diff', is_flag=True, help='Also print pending working-copy changes')
@click.pass_context
@handle_errors
def read(ctx, file_id, show_diff):
    """Print the parsed content of a file as YAML"""
    data, changes = ctx.obj['cache'].read(file_id, full=True)
    if data is None:
        logging.warning(f"'{file_id}' does not exist")
    echo_yaml(data)
    if show_diff and changes:
        click.echo(changes, nl=False)


@cli.command()
@click.argument('file_id')
@click.pass_context
@handle_errors
def diff(ctx, file_id):
    """Print pending working-copy changes of a file"""
    _, changes = ctx.obj['cache'].read(file_id, full=True)
    if changes:
        click.echo(changes, nl=False)


@cli.command()
@click.argument('file_id')
@click.pass_context
@handle_errors
def revert(ctx, file_id):
    """Discard the working copy of a file"""
    ctx.obj['cache'].discard_changes(file_id)
    logging.info(f"Reverted pending changes of '{file_id}'")


@cli.command('check-interfaces')
@click.argument('interfaces_file', type=click.Path(exists=True, dir_okay=False))
@click.pass_context
@handle_errors
def check_interfaces(ctx, interfaces_file):
    """Validate an interfaces file and print it the way it would be written

    \b
    Nothing is written to disk; a validation error exits non-zero.
    """
    settings = ctx.obj['settings']
    # undecodable bytes (e.g. latin-1 comments) are shown as U+FFFD
    with open(interfaces_file, "r", encoding="utf-8", errors="replace") as fh:
        config = parse_interfaces(
            fh,
            existing=physical_interfaces(settings.proc_net_dev),
            active=active_interfaces(settings.sys_class_net),
        )
    raw, _ = write_interfaces(config, os.path.exists(settings.host_path(settings.ifupdown2_marker)))
    click.echo(raw, nl=False)
