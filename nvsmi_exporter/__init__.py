"""Prometheus exporter for `nvidia-smi -q -x`."""

__version__ = "0.1.0"
