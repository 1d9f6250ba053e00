import click
import logging
from pathlib import Path
from rich.console import Console
from rich.logging import RichHandler

from .. import __version__
from ..core.config import get_settings, reload_settings
from ..core.exceptions import ConfigurationError
from ..core.logging import QUIET_LOGGERS, setup_logging
from .commands import candidates, configure, price, recommend, size

console = Console()
# Logs go to stderr so json/yaml output on stdout stays parseable
log_console = Console(stderr=True)


def _configure_logging(settings, debug):
    level = "DEBUG" if debug or settings.debug else settings.logging.level
    if settings.logging.structured or settings.logging.file:
        setup_logging(
            level=level,
            log_file=settings.logging.file,
            structured=settings.logging.structured,
            console=settings.logging.console,
            fmt=settings.logging.format,
            max_bytes=settings.logging.max_bytes,
            backup_count=settings.logging.backup_count,
        )
        return

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(message)s",
        handlers=[RichHandler(console=log_console, rich_tracebacks=True)],
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@click.group()
@click.version_option(version=__version__, prog_name='fleetoptimizer')
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.option('--config', type=click.Path(exists=True, dir_okay=False), help='Path to configuration file')
@click.option('--offline', is_flag=True, help='Do not contact the pricing catalog; use static tables')
@click.pass_context
def cli(ctx, debug, config, offline):
    """
    Fleet Optimizer - Kubernetes node pool cost recommendations

    Finds the cheapest instance mix and capacity class that still covers
    each node pool's observed usage.
    """
    ctx.ensure_object(dict)

    try:
        settings = reload_settings(Path(config)) if config else get_settings()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e
    if offline:
        settings = settings.model_copy(
            update={'aws': settings.aws.model_copy(update={'enabled': False})}
        )
    _configure_logging(settings, debug)

    ctx.obj['config_file'] = Path(config) if config else Path.home() / '.fleetoptimizer' / 'config.yaml'
    ctx.obj['settings'] = settings
    ctx.obj['console'] = console


# Register commands
cli.add_command(recommend.recommend)
cli.add_command(price.price)
cli.add_command(candidates.candidates)
cli.add_command(size.size)
cli.add_command(configure.configure)


@cli.command()
@click.pass_context
def version(ctx):
    """Show version information"""
    console.print(f"[bold blue]Fleet Optimizer[/bold blue] version [green]{__version__}[/green]")
    console.print("Kubernetes node pool cost recommendations")


if __name__ == '__main__':
    cli()
