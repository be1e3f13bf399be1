#!/usr/bin/env python
"""
nvsmi-exporter serve | dump

Example:
    nvsmi-exporter serve --web.listen-address :9202
    nvsmi-exporter dump --file nvidia-smi.sample.xml
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
import uvicorn

from nvsmi_exporter.api import create_app, scrape
from nvsmi_exporter.collector.runner import NvidiaSmiError, run_nvidia_smi
from nvsmi_exporter.config import ENV_PREFIX, ExporterSettings, configure_logging

app = typer.Typer(add_completion=False, help="Prometheus exporter for nvidia-smi.")

_COMMAND = typer.Option(
    "nvidia-smi",
    "--nvidia-smi-command",
    envvar=f"{ENV_PREFIX}COMMAND",
    help="Path or command to be used for the nvidia-smi executable.",
)
_TIMEOUT = typer.Option(
    10.0,
    "--timeout",
    min=0,
    envvar=f"{ENV_PREFIX}TIMEOUT",
    help="Seconds to wait for nvidia-smi; 0 waits forever.",
)
_LOG_LEVEL = typer.Option("INFO", "--log-level", envvar=f"{ENV_PREFIX}LOG_LEVEL")


@app.command()
def serve(
    listen_address: str = typer.Option(
        ":9202",
        "--web.listen-address",
        "--web.listen_address",
        envvar=f"{ENV_PREFIX}LISTEN_ADDRESS",
        help="Address to listen on for web interface and telemetry.",
    ),
    telemetry_path: str = typer.Option(
        "/metrics",
        "--web.telemetry-path",
        envvar=f"{ENV_PREFIX}TELEMETRY_PATH",
        help="Path under which to expose metrics.",
    ),
    nvidia_smi_command: str = _COMMAND,
    timeout: float = _TIMEOUT,
    log_level: str = _LOG_LEVEL,
):
    """Serve metrics over HTTP."""
    logger = configure_logging(log_level)
    settings = ExporterSettings(
        listen_address=listen_address,
        telemetry_path=telemetry_path,
        nvidia_smi_command=nvidia_smi_command,
        timeout=timeout,
    )
    host, port = settings.bind()
    logger.info("Nvidia SMI exporter listening on %s (metrics at %s)", listen_address, telemetry_path)
    uvicorn.run(create_app(settings, logger), host=host, port=port, log_level=log_level.lower())


@app.command()
def dump(
    xml_file: Optional[Path] = typer.Option(
        None, "--file", exists=True, dir_okay=False, help="Render a saved `nvidia-smi -q -x` file."
    ),
    nvidia_smi_command: str = _COMMAND,
    timeout: float = _TIMEOUT,
    log_level: str = _LOG_LEVEL,
):
    """Print one scrape to stdout and exit."""
    logger = configure_logging(log_level)
    if xml_file is not None:
        try:
            raw = xml_file.read_bytes()
        except OSError as exc:
            typer.echo(f"[nvsmi-exporter] cannot read {xml_file}: {exc}", err=True)
            raise typer.Exit(code=1)
        body = scrape(lambda: raw, logger)
    else:
        try:
            raw = run_nvidia_smi(nvidia_smi_command, timeout=timeout or None)
        except NvidiaSmiError as exc:
            typer.echo(f"[nvsmi-exporter] {exc}", err=True)
            raise typer.Exit(code=1)
        body = scrape(lambda: raw, logger)
    typer.echo(body, nl=False)


if __name__ == "__main__":
    app()          # `python -m nvsmi_exporter.cli serve`
