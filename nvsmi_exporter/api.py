# nvsmi_exporter/api.py
from __future__ import annotations

import logging
from functools import partial
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.responses import HTMLResponse, PlainTextResponse

from nvsmi_exporter.collector.emitter import render
from nvsmi_exporter.collector.runner import NvidiaSmiError, run_nvidia_smi
from nvsmi_exporter.collector.snapshot import DecodeStatus, decode
from nvsmi_exporter.config import LOGGER_NAME, ExporterSettings

CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

INDEX_HTML = """<!doctype html>
<html>
    <head>
        <meta charset="utf-8">
        <title>Nvidia SMI Exporter</title>
    </head>
    <body>
        <h1>Nvidia SMI Exporter</h1>
        <p><a href="{path}">Metrics</a></p>
    </body>
</html>"""


class MetricsResponse(PlainTextResponse):
    media_type = CONTENT_TYPE


def scrape(runner: Callable[[], bytes], logger: logging.Logger) -> str:
    """One full read-through: run nvidia-smi, decode, render.

    A failed command yields an empty body; broken XML yields whatever could be
    recovered. Neither is raised to the caller.
    """
    try:
        raw = runner()
    except NvidiaSmiError as exc:
        logger.error("Failed to run nvidia-smi: %s", exc)
        return ""

    result = decode(raw)
    if result.status is not DecodeStatus.COMPLETE:
        logger.warning(
            "nvidia-smi output was %s (%d parse errors)%s",
            result.status.value,
            len(result.errors),
            f": {result.errors[0]}" if result.errors else "",
        )
    return render(result.snapshot)


# ---------- FastAPI ----------------------------------------------------
def create_app(
    settings: Optional[ExporterSettings] = None,
    logger: Optional[logging.Logger] = None,
    runner: Optional[Callable[[], bytes]] = None,
) -> FastAPI:
    settings = settings or ExporterSettings()
    logger = logger or logging.getLogger(LOGGER_NAME)
    runner = runner or partial(run_nvidia_smi, settings.nvidia_smi_command, timeout=settings.timeout)

    app = FastAPI(title="Nvidia SMI Exporter", docs_url=None, redoc_url=None, openapi_url=None)

    def index() -> HTMLResponse:
        logger.debug("Serving /")
        return HTMLResponse(INDEX_HTML.format(path=settings.telemetry_path))

    # sync handlers: FastAPI runs each scrape in its threadpool
    def metrics() -> MetricsResponse:
        logger.debug("Serving %s", settings.telemetry_path)
        return MetricsResponse(scrape(runner, logger))

    if settings.telemetry_path != "/":
        app.add_api_route("/", index, methods=["GET"], response_class=HTMLResponse)
    app.add_api_route(settings.telemetry_path, metrics, methods=["GET"], response_class=MetricsResponse)
    return app
