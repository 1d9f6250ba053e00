import click
import yaml
from pathlib import Path
from rich.panel import Panel
from rich.prompt import Confirm

from ...core.config import Settings


@click.command()
@click.option('--show', is_flag=True, help='Show current configuration')
@click.option('--init', 'init', is_flag=True, help='Write a default configuration file')
@click.option('--force', is_flag=True, help='Overwrite an existing file without asking')
@click.pass_context
def configure(ctx, show, init, force):
    """
    Show or initialise the configuration file

    Examples:
        fleetoptimizer configure --show
        fleetoptimizer configure --init
    """
    console = ctx.obj['console']
    config_file = Path(ctx.obj['config_file'])

    if init:
        if config_file.exists() and not force:
            if not Confirm.ask(f"[yellow]{config_file} exists. Overwrite?[/yellow]"):
                return
        config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(config_file, 'w') as f:
            yaml.dump(Settings().model_dump(mode='json'), f, default_flow_style=False)
        console.print(f"[green]✓ Configuration written to {config_file}[/green]")
        return

    settings = ctx.obj['settings']
    data = settings.model_dump(mode='json')
    # SecretStr dumps as '**********'; absent secrets stay None
    console.print(Panel(yaml.dump(data, default_flow_style=False, sort_keys=False),
                        title=f"Configuration ({config_file})", border_style="blue"))
    console.print(f"Price sources: [cyan]{' -> '.join(settings.active_price_sources())}[/cyan]")
    if not show:
        console.print("[dim]Use --init to write a default configuration file[/dim]")
