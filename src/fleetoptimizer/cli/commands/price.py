import click
from rich.table import Table

from ...core.exceptions import ValidationError
from ...core.orchestrator import build_engine
from ...core.validation import Validator
from ..output import emit, money
from ..params import capacity_class_param


@click.command()
@click.argument('instance_types', nargs=-1, required=True)
@click.option('--capacity-class', '-c', default='on-demand', callback=capacity_class_param,
              help='Capacity class to price: on-demand or spot')
@click.option('--format', '-f', type=click.Choice(['json', 'yaml', 'table']),
              default='table', help='Output format')
@click.pass_context
def price(ctx, instance_types, capacity_class, format):
    """
    Look up hourly prices for instance types

    Examples:
        fleetoptimizer price m6i.xlarge c6i.2xlarge
        fleetoptimizer price m7g.large --capacity-class spot
    """
    console = ctx.obj['console']
    try:
        types = [Validator.validate_instance_type(t) for t in instance_types]
    except ValidationError as e:
        raise click.BadParameter(str(e), param_hint='INSTANCE_TYPES') from e

    pricing = build_engine(ctx.obj['settings']).pricing
    quotes = [pricing.quote(t, capacity_class) for t in types]

    if format != 'table':
        emit(console, [{
            "instance_type": q.instance_type,
            "capacity_class": q.capacity_class.value,
            "price_per_hour": q.price_per_hour,
            "source": q.source.value,
        } for q in quotes], format)
        return

    table = Table(title="Instance Prices", show_header=True, header_style="bold cyan")
    table.add_column("Instance Type", style="cyan")
    table.add_column("Capacity Class")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Monthly", justify="right")
    table.add_column("Source", style="dim")
    for q in quotes:
        if q.price_per_hour > 0:
            hourly, monthly = money(q.price_per_hour), money(q.price_per_hour, monthly=True)
        else:
            hourly, monthly = "[red]unknown[/red]", "-"
        table.add_row(q.instance_type, q.capacity_class.value, hourly, monthly, q.source.value)
    console.print(table)
