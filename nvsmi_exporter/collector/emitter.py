"""Render a Snapshot as Prometheus text exposition lines.

Metric names and their order are fixed; dashboards depend on both.
"""
from __future__ import annotations

from operator import attrgetter
from typing import Callable, Iterator, NamedTuple, Sequence, Tuple

from .normalize import filter_number, filter_unit, filter_version, label_value
from .snapshot import Device, Snapshot

Labels = Sequence[Tuple[str, str]]


class MetricSpec(NamedTuple):
    name: str
    field: str
    convert: Callable[[str], str]

    def value(self, record: object) -> str:
        return self.convert(attrgetter(self.field)(record))


# Read from the Snapshot itself, repeated for every device.
GLOBAL_METRICS: Tuple[MetricSpec, ...] = (
    MetricSpec("nvidia_smi_driver_version", "driver_version", filter_version),
    MetricSpec("nvidia_smi_cuda_version", "cuda_version", filter_version),
    MetricSpec("nvidia_smi_attached_gpus", "attached_gpus", filter_number),
)

DEVICE_METRICS: Tuple[MetricSpec, ...] = (
    MetricSpec("nvidia_smi_pci_pcie_gen_max", "pci.link.gen_max", filter_number),
    MetricSpec("nvidia_smi_pci_pcie_gen_current", "pci.link.gen_current", filter_number),
    MetricSpec("nvidia_smi_pci_link_width_max_multiplicator", "pci.link.width_max", filter_number),
    MetricSpec("nvidia_smi_pci_link_width_current_multiplicator", "pci.link.width_current", filter_number),
    MetricSpec("nvidia_smi_pci_replay_counter", "pci.replay_counter", filter_number),
    MetricSpec("nvidia_smi_pci_replay_rollover_counter", "pci.replay_rollover_counter", filter_number),
    MetricSpec("nvidia_smi_pci_tx_util_bytes_per_second", "pci.tx_util", filter_unit),
    MetricSpec("nvidia_smi_pci_rx_util_bytes_per_second", "pci.rx_util", filter_unit),
    MetricSpec("nvidia_smi_fan_speed_percent", "fan_speed", filter_unit),
    MetricSpec("nvidia_smi_performance_state_int", "performance_state", filter_number),
    MetricSpec("nvidia_smi_fb_memory_usage_total_bytes", "fb_memory.total", filter_unit),
    MetricSpec("nvidia_smi_fb_memory_usage_used_bytes", "fb_memory.used", filter_unit),
    MetricSpec("nvidia_smi_fb_memory_usage_free_bytes", "fb_memory.free", filter_unit),
    MetricSpec("nvidia_smi_bar1_memory_usage_total_bytes", "bar1_memory.total", filter_unit),
    MetricSpec("nvidia_smi_bar1_memory_usage_used_bytes", "bar1_memory.used", filter_unit),
    MetricSpec("nvidia_smi_bar1_memory_usage_free_bytes", "bar1_memory.free", filter_unit),
    MetricSpec("nvidia_smi_utilization_gpu_percent", "utilization.gpu", filter_unit),
    MetricSpec("nvidia_smi_utilization_memory_percent", "utilization.memory", filter_unit),
    MetricSpec("nvidia_smi_utilization_encoder_percent", "utilization.encoder", filter_unit),
    MetricSpec("nvidia_smi_utilization_decoder_percent", "utilization.decoder", filter_unit),
    MetricSpec("nvidia_smi_encoder_session_count", "encoder_stats.session_count", filter_number),
    MetricSpec("nvidia_smi_encoder_average_fps", "encoder_stats.average_fps", filter_number),
    MetricSpec("nvidia_smi_encoder_average_latency", "encoder_stats.average_latency", filter_number),
    MetricSpec("nvidia_smi_fbc_session_count", "fbc_stats.session_count", filter_number),
    MetricSpec("nvidia_smi_fbc_average_fps", "fbc_stats.average_fps", filter_number),
    MetricSpec("nvidia_smi_fbc_average_latency", "fbc_stats.average_latency", filter_number),
    MetricSpec("nvidia_smi_gpu_temp_celsius", "temperature.gpu_temp", filter_unit),
    MetricSpec("nvidia_smi_gpu_temp_max_threshold_celsius", "temperature.gpu_temp_max_threshold", filter_unit),
    MetricSpec("nvidia_smi_gpu_temp_slow_threshold_celsius", "temperature.gpu_temp_slow_threshold", filter_unit),
    MetricSpec("nvidia_smi_gpu_temp_max_gpu_threshold_celsius", "temperature.gpu_temp_max_gpu_threshold", filter_unit),
    MetricSpec("nvidia_smi_memory_temp_celsius", "temperature.memory_temp", filter_unit),
    MetricSpec("nvidia_smi_gpu_temp_max_mem_threshold_celsius", "temperature.gpu_temp_max_mem_threshold", filter_unit),
    MetricSpec("nvidia_smi_power_state_int", "power.power_state", filter_number),
    MetricSpec("nvidia_smi_power_draw_watts", "power.power_draw", filter_unit),
    MetricSpec("nvidia_smi_power_limit_watts", "power.power_limit", filter_unit),
    MetricSpec("nvidia_smi_default_power_limit_watts", "power.default_power_limit", filter_unit),
    MetricSpec("nvidia_smi_enforced_power_limit_watts", "power.enforced_power_limit", filter_unit),
    MetricSpec("nvidia_smi_min_power_limit_watts", "power.min_power_limit", filter_unit),
    MetricSpec("nvidia_smi_max_power_limit_watts", "power.max_power_limit", filter_unit),
    MetricSpec("nvidia_smi_clock_graphics_hertz", "clocks.graphics", filter_unit),
    MetricSpec("nvidia_smi_clock_graphics_max_hertz", "max_clocks.graphics", filter_unit),
    MetricSpec("nvidia_smi_clock_sm_hertz", "clocks.sm", filter_unit),
    MetricSpec("nvidia_smi_clock_sm_max_hertz", "max_clocks.sm", filter_unit),
    MetricSpec("nvidia_smi_clock_mem_hertz", "clocks.mem", filter_unit),
    MetricSpec("nvidia_smi_clock_mem_max_hertz", "max_clocks.mem", filter_unit),
    MetricSpec("nvidia_smi_clock_video_hertz", "clocks.video", filter_unit),
    MetricSpec("nvidia_smi_clock_video_max_hertz", "max_clocks.video", filter_unit),
    MetricSpec("nvidia_smi_clock_policy_auto_boost", "clock_policy.auto_boost", filter_unit),
    MetricSpec("nvidia_smi_clock_policy_auto_boost_default", "clock_policy.auto_boost_default", filter_unit),
)

PROCESS_METRIC = MetricSpec("nvidia_smi_process_used_memory_bytes", "used_memory", filter_unit)


def format_line(name: str, labels: Labels, value: str) -> str:
    if not labels:
        return f"{name} {value}\n"
    meta = ",".join(f'{key}="{label_value(val)}"' for key, val in labels)
    return f"{name}{{{meta}}} {value}\n"


def device_labels(device: Device) -> Tuple[Tuple[str, str], ...]:
    return (("id", device.id), ("uuid", device.uuid), ("name", device.product_name))


def iter_lines(snapshot: Snapshot) -> Iterator[str]:
    """Yield exposition lines in their fixed order.

    The global metrics are written once per device with that device's labels,
    so a multi-GPU host repeats them. With no devices they are written once,
    unlabeled.
    """
    if not snapshot.devices:
        for spec in GLOBAL_METRICS:
            yield format_line(spec.name, (), spec.value(snapshot))
        return

    for device in snapshot.devices:
        labels = device_labels(device)
        for spec in GLOBAL_METRICS:
            yield format_line(spec.name, labels, spec.value(snapshot))
        for spec in DEVICE_METRICS:
            yield format_line(spec.name, labels, spec.value(device))
        for proc in device.processes:
            proc_labels = labels + (("process_pid", proc.pid), ("process_type", proc.type))
            yield format_line(PROCESS_METRIC.name, proc_labels, PROCESS_METRIC.value(proc))


def render(snapshot: Snapshot) -> str:
    return "".join(iter_lines(snapshot))
