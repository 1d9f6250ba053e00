import click
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from ...core.exceptions import FleetOptimizerError
from ...core.orchestrator import RecommendationWorkflow, build_engine
from ...providers.inventory import SnapshotInventory
from ..output import emit, money


@click.command()
@click.argument('snapshot', type=click.Path(exists=True, dir_okay=False), required=False)
@click.option('--node-pool', '-p', multiple=True, help='Only analyse these node pools')
@click.option('--format', '-f', type=click.Choice(['json', 'yaml', 'table']),
              default='table', help='Output format')
@click.option('--output', '-o', type=click.Path(), help='Output file for results')
@click.option('--explain/--no-explain', default=None,
              help='Have the configured text model rewrite each rationale')
@click.pass_context
def recommend(ctx, snapshot, node_pool, format, output, explain):
    """
    Recommend a cheaper fleet for every node pool in a snapshot

    Examples:
        fleetoptimizer recommend cluster.yaml
        fleetoptimizer recommend cluster.yaml -p workers -f json -o recs.json
    """
    console = ctx.obj['console']
    settings = ctx.obj['settings']

    path = snapshot or settings.inventory.snapshot_path
    if not path:
        raise click.UsageError("No snapshot given and inventory.snapshot_path is not configured")

    if explain is not None:
        settings = settings.model_copy(
            update={'llm': settings.llm.model_copy(update={'enabled': explain})}
        )

    workflow = RecommendationWorkflow(
        engine=build_engine(settings),
        inventory=SnapshotInventory(path),
        inventory_timeout=settings.inventory.timeout,
        disruption_window_hours=settings.inventory.disruption_window_hours,
    )

    try:
        if format == 'table':
            with Progress(SpinnerColumn(), TextColumn("{task.description}"), BarColumn(),
                          console=console, transient=True) as progress:
                task = progress.add_task("Loading inventory...", total=None)

                def on_progress(event):
                    progress.update(
                        task,
                        total=event.total,
                        completed=event.index if event.done else event.index - 1,
                        description=event.message,
                    )

                result = workflow.run(progress_callback=on_progress, node_pools=node_pool)
        else:
            result = workflow.run(node_pools=node_pool)
    except FleetOptimizerError as e:
        raise click.ClickException(str(e)) from e

    if format == 'table':
        _display_recommendations(console, result)
        if output:
            emit(console, result.to_dict(), 'json', output)
    else:
        emit(console, result.to_dict(), format, output)


def _describe(types, node_count, capacity_class):
    if not node_count:
        return "-"
    label = capacity_class.value if hasattr(capacity_class, 'value') else str(capacity_class)
    return f"{node_count} x {', '.join(types)} ({label})"


def _display_recommendations(console, result):
    """Display recommendations in a table"""
    table = Table(title="Node Pool Recommendations", show_header=True, header_style="bold cyan")
    table.add_column("Node Pool", style="cyan")
    table.add_column("Current", style="white")
    table.add_column("Current Cost", justify="right")
    table.add_column("Recommended", style="white")
    table.add_column("Recommended Cost", justify="right")
    table.add_column("Savings", justify="right", style="green")

    for rec in result.recommendations:
        state = rec.current
        current = _describe(state.distinct_instance_types(), state.node_count,
                            state.pool_capacity_class)
        if rec.has_recommendation:
            fleet = rec.recommended
            recommended = _describe(fleet.instance_types, fleet.node_count, fleet.capacity_class)
            recommended_cost = money(fleet.hourly_cost)
            savings = f"{money(rec.cost_savings)} ({rec.cost_savings_percent:.1f}%)"
        else:
            recommended, recommended_cost, savings = "[dim]no change[/dim]", "-", "-"
        table.add_row(rec.node_pool, current, money(rec.current_cost),
                      recommended, recommended_cost, savings)

    console.print(table)

    for rec in result.recommendations:
        if rec.has_recommendation:
            console.print(Panel(rec.explanation or rec.rationale,
                                title=rec.node_pool, border_style="cyan"))

    summary_text = f"""[bold green]Analysis Complete![/bold green]

Node Pools: [bold]{len(result.recommendations)}[/bold]
With Recommendations: [bold]{sum(1 for r in result.recommendations if r.has_recommendation)}[/bold]
Current Cost: [bold]{money(result.total_current_cost)}[/bold]
Potential Savings: [bold yellow]{money(result.total_savings)}[/bold yellow] ({money(result.total_savings, monthly=True)})"""

    if result.errors:
        summary_text += "\n\n[yellow]Warnings:[/yellow]\n" + "\n".join(
            f"  {e['phase']}: {e['error']}" for e in result.errors
        )

    console.print(Panel(summary_text, title="Summary", border_style="green"))
