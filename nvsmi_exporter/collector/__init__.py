"""nvsmi_exporter.collector
Turns `nvidia-smi -q -x` output into Prometheus text lines.

Modules
-------
runner   : runs `nvidia-smi -q -x` and returns the raw XML bytes
snapshot : decodes the XML into immutable Snapshot/Device/Process records
normalize: helpers to turn '1005 MiB', 'P0', '440.95.01' into plain numbers
emitter  : renders a Snapshot as exposition lines in a fixed order
"""

__all__ = ["runner", "snapshot", "normalize", "emitter"]
