"""
CLI commands for headless packet capture.
"""
import json
import sys
import time
from datetime import datetime
from typing import Optional

import click

from capture.scapy_backend import ScapyBackend
from server.config import ConfigError, ServerConfig
from server.engine import TrafficEngine
from server.messages import ERROR, PACKET, SCAN_STARTED, SCAN_STOPPED
from server.observer import CallbackObserver
from utils.logger_config import setup_logger

from .formatting import format_bytes, format_duration


class ConsolePrinter:
    """Renders control-channel messages on the terminal."""

    def __init__(self, output_format: str = "table"):
        self.output_format = output_format
        self.packets = 0

    def __call__(self, message):
        kind = message.get("type")
        if kind == PACKET:
            self.packets += 1
            self._packet(message["packet"])
        elif kind == SCAN_STARTED:
            click.echo(f"Capture started on '{message['interface']}'", err=True)
            if message.get("filter"):
                click.echo(f"Filter: {message['filter']}", err=True)
        elif kind == SCAN_STOPPED:
            click.echo("Capture stopped", err=True)
        elif kind == ERROR:
            click.echo(f"Error: {message['message']}", err=True)

    def header(self):
        if self.output_format == "table":
            click.echo(f"{'Time':15} {'Proto':6} {'Source':28} {'Destination':28} {'Size':>6}  Info")
            click.echo("-" * 110)

    def _packet(self, packet):
        if self.output_format == "jsonl":
            click.echo(json.dumps(packet, separators=(",", ":"), ensure_ascii=True))
            return
        clock = datetime.fromisoformat(packet["timestamp"]).strftime("%H:%M:%S.%f")
        click.echo(
            f"{clock:15} {packet['protocol']:6} {packet['source']:28} "
            f"{packet['destination']:28} {packet['size']:>6}  {packet['info']}"
        )


def print_summary(engine: TrafficEngine, printer: ConsolePrinter, elapsed: float) -> None:
    snapshot = engine.aggregator.snapshot()
    click.echo("\n" + "=" * 50, err=True)
    click.echo("CAPTURE SUMMARY", err=True)
    click.echo("=" * 50, err=True)
    click.echo(f"Duration:      {elapsed:.2f}s", err=True)
    click.echo(f"Total Packets: {printer.packets}", err=True)
    click.echo(f"Local Hosts:   {len(snapshot)}", err=True)
    for stats in snapshot:
        click.echo(
            f"\n  {stats.ip:16} sent {format_bytes(stats.total_data_sent):>10}  "
            f"received {format_bytes(stats.total_data_received):>10}  "
            f"active {format_duration(stats.session_duration)}",
            err=True,
        )
        sessions = sorted(stats.sessions.values(),
                          key=lambda s: s.data_sent + s.data_received, reverse=True)
        for session in sessions[:5]:
            click.echo(
                f"    {session.site:40} {format_bytes(session.data_sent + session.data_received):>10}  "
                f"{format_duration(session.duration)}",
                err=True,
            )


@click.command()
@click.option('--interface', '-i', help='Interface to capture from (default: first available)')
@click.option('--duration', '-d', type=int, help='Duration in seconds (default: run until Ctrl+C)')
@click.option('--filter', '-f', 'filter_expr', default="", help='BPF filter (e.g., "tcp port 80")')
@click.option('--format', 'output_format', type=click.Choice(['table', 'jsonl']),
              default='table', show_default=True, help='Packet output format')
@click.option('--include-raw', is_flag=True, help='Include raw frame hex in JSONL output')
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              help='Log verbosity (default: TRAFFICLENS_LOG_LEVEL or INFO)')
def capture(interface: Optional[str], duration: Optional[int], filter_expr: str,
            output_format: str, include_raw: bool, log_level: Optional[str]):
    """
    Capture, classify and summarize traffic on one interface.

    Examples:
      trafficlens capture -i eth0 -d 60 -f "tcp port 80"
      trafficlens capture -i wlan0 --format jsonl
    """
    try:
        config = ServerConfig.from_env().override(
            default_interface=interface,
            include_raw=include_raw or None,
            log_level=log_level.upper() if log_level else None,
        )
    except ConfigError as e:
        raise click.ClickException(str(e))
    setup_logger(config.log_level, config.log_file)

    engine = TrafficEngine(ScapyBackend(), config)
    printer = ConsolePrinter(output_format)
    console = CallbackObserver("console", printer)

    printer.header()
    if not engine.controller.start(console, config.default_interface, filter_expr):
        sys.exit(1)
    if duration:
        click.echo(f"Duration: {duration} seconds", err=True)
    click.echo("Press Ctrl+C to stop\n", err=True)

    start_time = time.time()
    try:
        while not duration or (time.time() - start_time) < duration:
            time.sleep(0.1)
    except KeyboardInterrupt:
        click.echo("\n\nStopping capture...", err=True)
    finally:
        engine.controller.stop(console)
        print_summary(engine, printer, time.time() - start_time)


@click.command()
def interfaces():
    """List capture-capable network interfaces."""
    backend = ScapyBackend()
    names = backend.list_interfaces()
    if not names:
        click.echo("No capture-capable interfaces found.", err=True)
        return
    click.echo("Available interfaces:")
    for name in names:
        click.echo(f"  {name}")
