"""
TrafficLens CLI - main entry point.
"""
import click

from .capture import capture, interfaces
from .serve import serve


@click.group()
def cli():
    """TrafficLens - live protocol classification and per-host traffic statistics."""
    pass


cli.add_command(capture)
cli.add_command(interfaces)
cli.add_command(serve)

if __name__ == "__main__":
    cli()
