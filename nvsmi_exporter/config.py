# nvsmi_exporter/config.py
from __future__ import annotations

import logging
import shlex
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

LOG_FORMAT = "%(asctime)s  %(levelname)s %(message)s"
LOGGER_NAME = "nvsmi_exporter"

# *** Every setting can also come from the environment:
# export NVSMI_EXPORTER_LISTEN_ADDRESS=127.0.0.1:9202
# export NVSMI_EXPORTER_TELEMETRY_PATH=/metrics
# export NVSMI_EXPORTER_COMMAND="sudo nvidia-smi"
# export NVSMI_EXPORTER_TIMEOUT=10      # 0 waits forever
# export NVSMI_EXPORTER_LOG_LEVEL=DEBUG
ENV_PREFIX = "NVSMI_EXPORTER_"


class ExporterSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    listen_address: str = ":9202"
    telemetry_path: str = "/metrics"
    nvidia_smi_command: str = "nvidia-smi"
    timeout: Optional[float] = Field(10.0, ge=0)

    @field_validator("telemetry_path")
    @classmethod
    def _absolute_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("telemetry path must start with '/'")
        return v

    @field_validator("nvidia_smi_command")
    @classmethod
    def _splittable_command(cls, v: str) -> str:
        if not shlex.split(v):
            raise ValueError("nvidia-smi command is empty")
        return v

    @field_validator("timeout")
    @classmethod
    def _zero_means_none(cls, v: Optional[float]) -> Optional[float]:
        return v if v else None

    @field_validator("listen_address")
    @classmethod
    def _valid_address(cls, v: str) -> str:
        _split_address(v)
        return v

    def bind(self) -> Tuple[str, int]:
        """(host, port) for the listen address; ':9202' binds every interface."""
        return _split_address(self.listen_address)


def _split_address(address: str) -> Tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"listen address {address!r} is not [host]:port")
    if not 0 < int(port) < 65536:
        raise ValueError(f"port {port} out of range")
    return host.strip("[]") or "0.0.0.0", int(port)


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Set up root logging once and hand back the exporter's logger."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())
    return logger
