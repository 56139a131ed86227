#!/usr/bin/env python3
"""
impcentral-logs - stream device logs from impCentral to the terminal
"""

import sys
import time
from typing import Optional, Tuple

import click

from impcentral.errors import ImpCentralError
from impcentral.impcentral_api import ImpCentralApi
from impcentral.models.log_stream import LogStreamFormat, MAX_DEVICES_PER_STREAM
from impcentral.utils.config import Config


@click.command()
@click.argument("device_ids", nargs=-1, required=True)
@click.option("--token", envvar="IMPCENTRAL_ACCESS_TOKEN", required=True,
              help="impCentral access token (or IMPCENTRAL_ACCESS_TOKEN)")
@click.option("--endpoint", default=None, help="impCentral API endpoint")
@click.option("--format", "log_format", default=None,
              type=click.Choice([f.value for f in LogStreamFormat]),
              help="Log message format (default from config, else text)")
@click.option("--config", "config_file", default=None, type=click.Path(dir_okay=False),
              help="YAML configuration file")
@click.option("--debug", is_flag=True, help="Log requests and connection events")
def main(device_ids: Tuple[str, ...], token: str, endpoint: Optional[str],
         log_format: Optional[str], config_file: Optional[str], debug: bool):
    """Print the logs of DEVICE_IDS (MAC addresses, agent ids or device ids).

    Examples:
        impcentral-logs 0c2a690000000000
        impcentral-logs --format json 0c:2a:69:00:00:00
    """
    config = Config(config_file)
    api = ImpCentralApi(endpoint, token, config)
    if debug:
        api.debug = True

    if len(device_ids) > MAX_DEVICES_PER_STREAM:
        click.echo(click.style(
            f"Warning: a LogStream carries {MAX_DEVICES_PER_STREAM} devices at a time, "
            f"only the last {MAX_DEVICES_PER_STREAM} added will keep logging",
            fg="yellow"), err=True)

    def on_error(error: ImpCentralError):
        click.echo(click.style(f"Error: {error}", fg="red"), err=True)

    try:
        result = api.log_streams.create(
            lambda message: click.echo(message),
            lambda state: click.echo(click.style(state, fg="cyan"), err=True),
            on_error,
            log_format or config.default_format
        )
        log_stream_id = result["data"]["id"]

        for device_id in device_ids:
            api.log_streams.add_device(log_stream_id, device_id)

        click.echo(f"Streaming logs from LogStream {log_stream_id}, Ctrl-C to stop", err=True)
        try:
            while api.log_streams.is_open(log_stream_id):
                time.sleep(1.0)
        except KeyboardInterrupt:
            return

        click.echo(click.style(f"LogStream {log_stream_id} was closed by the server", fg="red"), err=True)
        sys.exit(1)
    except ImpCentralError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)
    finally:
        api.close()


if __name__ == "__main__":
    main()
