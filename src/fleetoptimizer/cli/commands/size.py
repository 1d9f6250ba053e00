import click
from rich.panel import Panel

from ...core.base import CapacityClass
from ...core.exceptions import FleetOptimizerError
from ...core.orchestrator import build_engine
from ...providers.inventory import SnapshotInventory
from ..output import emit, money
from ..params import architecture_param


@click.command()
@click.argument('snapshot', type=click.Path(exists=True, dir_okay=False))
@click.option('--architecture', '-a', default='amd64', callback=architecture_param,
              help='CPU architecture: amd64 (x86_64) or arm64 (aarch64)')
@click.option('--spot', is_flag=True, help='Allow spot capacity')
@click.option('--format', '-f', type=click.Choice(['json', 'yaml', 'table']),
              default='table', help='Output format')
@click.pass_context
def size(ctx, snapshot, architecture, spot, format):
    """
    Size a new fleet for the workloads listed in a snapshot

    Examples:
        fleetoptimizer size workloads.yaml
        fleetoptimizer size workloads.yaml --spot -a arm64
    """
    console = ctx.obj['console']
    try:
        workloads = SnapshotInventory(snapshot).list_workloads()
    except FleetOptimizerError as e:
        raise click.ClickException(str(e)) from e
    if not workloads:
        raise click.ClickException(f"Snapshot {snapshot} lists no workloads")

    classes = [CapacityClass.SPOT, CapacityClass.ON_DEMAND] if spot else [CapacityClass.ON_DEMAND]
    fleet = build_engine(ctx.obj['settings']).size_workloads(workloads, architecture, classes)

    if format != 'table':
        emit(console, {"workloads": len(workloads), "fleet": fleet.to_dict()}, format)
        return

    if fleet.is_empty:
        console.print("[yellow]No fleet could cover these workloads[/yellow]")
        return

    nodes = "\n".join(f"  {t}: {n}" for t, n in fleet.nodes_per_type().items())
    console.print(Panel(
        f"""Workloads: [bold]{len(workloads)}[/bold]
Capacity Class: [cyan]{fleet.capacity_class.value}[/cyan]
Nodes: [bold]{fleet.node_count}[/bold]
{nodes}
Capacity: {fleet.total_cpu:g} vCPU, {fleet.total_memory:g} GiB
Cost: [bold yellow]{money(fleet.hourly_cost)}[/bold yellow] ({money(fleet.hourly_cost, monthly=True)})""",
        title="Proposed Fleet", border_style="green"))
