import json
from pathlib import Path

import click
import yaml

HOURS_PER_MONTH = 730


def render(data, format):
    if format == 'yaml':
        return yaml.dump(data, default_flow_style=False, sort_keys=False)
    return json.dumps(data, indent=2, default=str)


def emit(console, data, format, output=None):
    """Print json/yaml to stdout, or save it when an output path is given"""
    text = render(data, format)
    if output:
        path = Path(output)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            f.write(text)
        console.print(f"\n✓ Results saved to [green]{path}[/green]")
    else:
        # click.echo keeps rich from wrapping or highlighting the payload
        click.echo(text)


def money(value, monthly=False):
    if monthly:
        return f"${value * HOURS_PER_MONTH:,.2f}/mo"
    return f"${value:,.4f}/hr"
