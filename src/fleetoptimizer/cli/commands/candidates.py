import click
from rich.table import Table

from ...catalog.instance_types import parse_instance_type
from ...catalog.resolver import classify_requirement
from ...core.orchestrator import build_engine
from ...core.units import format_memory
from ..output import emit, money
from ..params import architecture_param, capacity_class_param, memory_param, positive_param


@click.command()
@click.option('--architecture', '-a', default='amd64', callback=architecture_param,
              help='CPU architecture: amd64 (x86_64) or arm64 (aarch64)')
@click.option('--cpu', type=float, required=True, callback=positive_param,
              help='vCPU requirement')
@click.option('--memory', required=True, callback=memory_param,
              help='Memory requirement, e.g. 16Gi')
@click.option('--capacity-class', '-c', default='on-demand', callback=capacity_class_param,
              help='Capacity class used for the price column: on-demand or spot')
@click.option('--format', '-f', type=click.Choice(['json', 'yaml', 'table']),
              default='table', help='Output format')
@click.pass_context
def candidates(ctx, architecture, cpu, memory, capacity_class, format):
    """
    List ranked candidate instance types for a requirement

    Examples:
        fleetoptimizer candidates --cpu 4 --memory 16Gi
        fleetoptimizer candidates -a arm64 --cpu 2 --memory 32Gi
    """
    console = ctx.obj['console']
    engine = build_engine(ctx.obj['settings'])
    family_class = classify_requirement(cpu, memory)
    types = engine.catalog_resolver.candidate_types(architecture, cpu, memory)

    rows = []
    for rank, identifier in enumerate(types, start=1):
        spec = parse_instance_type(identifier)
        quote = engine.pricing.quote(identifier, capacity_class)
        rows.append({
            "rank": rank,
            "instance_type": identifier,
            "family_class": spec.family_class.value,
            "vcpus": spec.vcpus,
            "memory_gib": spec.memory_gib,
            "price_per_hour": quote.price_per_hour,
            "price_source": quote.source.value,
        })

    if format != 'table':
        emit(console, {"family_class": family_class.value, "candidates": rows}, format)
        return

    table = Table(title=f"{family_class.value} candidates ({architecture})",
                  show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Instance Type", style="cyan")
    table.add_column("vCPU", justify="right")
    table.add_column("Memory", justify="right")
    table.add_column(f"Price ({capacity_class})", justify="right", style="green")
    table.add_column("Source", style="dim")
    for row in rows:
        table.add_row(str(row["rank"]), row["instance_type"], f"{row['vcpus']:g}",
                      format_memory(row["memory_gib"]), money(row["price_per_hour"]),
                      row["price_source"])
    console.print(table)
