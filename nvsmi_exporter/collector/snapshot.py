"""Typed view of one `nvidia-smi -q -x` document.

Every leaf is kept as the raw string nvidia-smi printed ("1005 MiB", "P0",
"N/A"); turning those into numbers is the normalizer's job. Missing elements
decode to "".
"""
from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple

from lxml import etree  # type: ignore
from pydantic import BaseModel, ConfigDict, Field


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------- PCI --------------------------------------------------------
class PcieLink(_Record):
    gen_max: str = ""
    gen_current: str = ""
    width_max: str = ""
    width_current: str = ""


class PciInfo(_Record):
    link: PcieLink = Field(default_factory=PcieLink)
    replay_counter: str = ""
    replay_rollover_counter: str = ""
    tx_util: str = ""
    rx_util: str = ""


# ---------- per-device blocks -----------------------------------------
class MemoryUsage(_Record):
    total: str = ""
    used: str = ""
    free: str = ""


class Utilization(_Record):
    gpu: str = ""
    memory: str = ""
    encoder: str = ""
    decoder: str = ""


class SessionStats(_Record):
    session_count: str = ""
    average_fps: str = ""
    average_latency: str = ""


class Temperature(_Record):
    gpu_temp: str = ""
    gpu_temp_max_threshold: str = ""
    gpu_temp_slow_threshold: str = ""
    gpu_temp_max_gpu_threshold: str = ""
    memory_temp: str = ""
    gpu_temp_max_mem_threshold: str = ""


class PowerReadings(_Record):
    power_state: str = ""
    power_draw: str = ""
    power_limit: str = ""
    default_power_limit: str = ""
    enforced_power_limit: str = ""
    min_power_limit: str = ""
    max_power_limit: str = ""


class Clocks(_Record):
    graphics: str = ""
    sm: str = ""
    mem: str = ""
    video: str = ""


class ClockPolicy(_Record):
    auto_boost: str = ""
    auto_boost_default: str = ""


class Process(_Record):
    pid: str = ""
    type: str = ""
    process_name: str = ""
    used_memory: str = ""


class Device(_Record):
    id: str = ""
    uuid: str = ""
    product_name: str = ""
    pci: PciInfo = Field(default_factory=PciInfo)
    fan_speed: str = ""
    performance_state: str = ""
    fb_memory: MemoryUsage = Field(default_factory=MemoryUsage)
    bar1_memory: MemoryUsage = Field(default_factory=MemoryUsage)
    utilization: Utilization = Field(default_factory=Utilization)
    encoder_stats: SessionStats = Field(default_factory=SessionStats)
    fbc_stats: SessionStats = Field(default_factory=SessionStats)
    temperature: Temperature = Field(default_factory=Temperature)
    power: PowerReadings = Field(default_factory=PowerReadings)
    clocks: Clocks = Field(default_factory=Clocks)
    max_clocks: Clocks = Field(default_factory=Clocks)
    clock_policy: ClockPolicy = Field(default_factory=ClockPolicy)
    processes: Tuple[Process, ...] = ()


class Snapshot(_Record):
    driver_version: str = ""
    cuda_version: str = ""
    attached_gpus: str = ""
    devices: Tuple[Device, ...] = ()


class DecodeStatus(str, Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"
    UNPARSEABLE = "unparseable"


class DecodeResult(_Record):
    status: DecodeStatus
    snapshot: Snapshot = Field(default_factory=Snapshot)
    errors: Tuple[str, ...] = ()


# -----------------------------
# XML -> records
# -----------------------------

def _txt(node: Optional[etree._Element], path: str) -> str:
    if node is None:
        return ""
    found = node.find(path)
    return found.text.strip() if found is not None and found.text else ""


def _memory(node: Optional[etree._Element]) -> MemoryUsage:
    return MemoryUsage(total=_txt(node, "total"), used=_txt(node, "used"), free=_txt(node, "free"))


def _sessions(node: Optional[etree._Element]) -> SessionStats:
    return SessionStats(
        session_count=_txt(node, "session_count"),
        average_fps=_txt(node, "average_fps"),
        average_latency=_txt(node, "average_latency"),
    )


def _clocks(node: Optional[etree._Element]) -> Clocks:
    return Clocks(
        graphics=_txt(node, "graphics_clock"),
        sm=_txt(node, "sm_clock"),
        mem=_txt(node, "mem_clock"),
        video=_txt(node, "video_clock"),
    )


def _pci(node: Optional[etree._Element]) -> PciInfo:
    return PciInfo(
        link=PcieLink(
            gen_max=_txt(node, "pci_gpu_link_info/pcie_gen/max_link_gen"),
            gen_current=_txt(node, "pci_gpu_link_info/pcie_gen/current_link_gen"),
            width_max=_txt(node, "pci_gpu_link_info/link_widths/max_link_width"),
            width_current=_txt(node, "pci_gpu_link_info/link_widths/current_link_width"),
        ),
        replay_counter=_txt(node, "replay_counter"),
        replay_rollover_counter=_txt(node, "replay_rollover_counter"),
        tx_util=_txt(node, "tx_util"),
        rx_util=_txt(node, "rx_util"),
    )


def _device(gpu: etree._Element) -> Device:
    temp = gpu.find("temperature")
    power = gpu.find("power_readings")
    util = gpu.find("utilization")
    return Device(
        id=gpu.get("id", ""),
        uuid=_txt(gpu, "uuid"),
        product_name=_txt(gpu, "product_name"),
        pci=_pci(gpu.find("pci")),
        fan_speed=_txt(gpu, "fan_speed"),
        performance_state=_txt(gpu, "performance_state"),
        fb_memory=_memory(gpu.find("fb_memory_usage")),
        bar1_memory=_memory(gpu.find("bar1_memory_usage")),
        utilization=Utilization(
            gpu=_txt(util, "gpu_util"),
            memory=_txt(util, "memory_util"),
            encoder=_txt(util, "encoder_util"),
            decoder=_txt(util, "decoder_util"),
        ),
        encoder_stats=_sessions(gpu.find("encoder_stats")),
        fbc_stats=_sessions(gpu.find("fbc_stats")),
        temperature=Temperature(
            gpu_temp=_txt(temp, "gpu_temp"),
            gpu_temp_max_threshold=_txt(temp, "gpu_temp_max_threshold"),
            gpu_temp_slow_threshold=_txt(temp, "gpu_temp_slow_threshold"),
            gpu_temp_max_gpu_threshold=_txt(temp, "gpu_temp_max_gpu_threshold"),
            memory_temp=_txt(temp, "memory_temp"),
            gpu_temp_max_mem_threshold=_txt(temp, "gpu_temp_max_mem_threshold"),
        ),
        power=PowerReadings(
            power_state=_txt(power, "power_state"),
            power_draw=_txt(power, "power_draw"),
            power_limit=_txt(power, "power_limit"),
            default_power_limit=_txt(power, "default_power_limit"),
            enforced_power_limit=_txt(power, "enforced_power_limit"),
            min_power_limit=_txt(power, "min_power_limit"),
            max_power_limit=_txt(power, "max_power_limit"),
        ),
        clocks=_clocks(gpu.find("clocks")),
        max_clocks=_clocks(gpu.find("max_clocks")),
        clock_policy=ClockPolicy(
            auto_boost=_txt(gpu, "clock_policy/auto_boost"),
            auto_boost_default=_txt(gpu, "clock_policy/auto_boost_default"),
        ),
        processes=tuple(
            Process(
                pid=_txt(p, "pid"),
                type=_txt(p, "type"),
                process_name=_txt(p, "process_name"),
                used_memory=_txt(p, "used_memory"),
            )
            for p in gpu.findall("processes/process_info")
        ),
    )


def decode(xml_bytes: bytes) -> DecodeResult:
    """Parse `nvidia-smi -q -x` output into a Snapshot.

    Never raises on bad input. Truncated or otherwise broken XML is read
    with lxml's recovering parser and reported as PARTIAL; input with no
    recoverable element at all is UNPARSEABLE and carries an empty Snapshot.
    """
    parser = etree.XMLParser(recover=True, resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(xml_bytes, parser)
    except etree.XMLSyntaxError as exc:
        return DecodeResult(status=DecodeStatus.UNPARSEABLE, errors=(str(exc),))

    errors = tuple(str(e) for e in parser.error_log if e.level >= etree.ErrorLevels.ERROR)
    if root is None:
        return DecodeResult(status=DecodeStatus.UNPARSEABLE, errors=errors)

    snapshot = Snapshot(
        driver_version=_txt(root, "driver_version"),
        cuda_version=_txt(root, "cuda_version"),
        attached_gpus=_txt(root, "attached_gpus"),
        devices=tuple(_device(gpu) for gpu in root.findall("gpu")),
    )
    status = DecodeStatus.PARTIAL if errors else DecodeStatus.COMPLETE
    return DecodeResult(status=status, snapshot=snapshot, errors=errors)
