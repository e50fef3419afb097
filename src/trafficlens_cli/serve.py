"""
CLI command for the control-channel server.
"""
from typing import Optional

import click

from server.app import run_server
from server.config import ConfigError, ServerConfig
from utils.logger_config import setup_logger


@click.command()
@click.option('--host', help='Address to bind (default 0.0.0.0)')
@click.option('--port', '-p', type=int, help='Port to listen on (default 3001)')
@click.option('--interval', type=float, help='Seconds between user-stats broadcasts (default 5)')
@click.option('--interface', '-i', help='Interface used when start-scan names none')
@click.option('--include-raw', is_flag=True, help='Include raw frame hex in packet messages')
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False))
@click.option('--log-file', type=click.Path(dir_okay=False), help='Also write logs to this file')
def serve(host: Optional[str], port: Optional[int], interval: Optional[float], interface: Optional[str],
          include_raw: bool, log_level: Optional[str], log_file: Optional[str]):
    """
    Run the packet capture server.

    Observers connect with Socket.IO and exchange messages on the
    'control' event. TRAFFICLENS_* environment variables supply
    defaults for every option.

    Examples:
      trafficlens serve --port 3001
      trafficlens serve -i eth0 --interval 2
    """
    try:
        config = ServerConfig.from_env().override(
            host=host,
            port=port,
            snapshot_interval=interval,
            default_interface=interface,
            include_raw=include_raw or None,
            log_level=log_level.upper() if log_level else None,
            log_file=log_file,
        )
    except ConfigError as e:
        raise click.ClickException(str(e))

    setup_logger(config.log_level, config.log_file)
    click.echo(f"Packet capture server listening on {config.host}:{config.port}")
    run_server(config)
