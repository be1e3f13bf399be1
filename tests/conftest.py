from pathlib import Path

import pytest

from nvsmi_exporter.collector.snapshot import decode

DATA = Path(__file__).parent / "data"
SAMPLE_XML = DATA / "nvidia-smi.sample.xml"


@pytest.fixture
def sample_xml() -> bytes:
    return SAMPLE_XML.read_bytes()


@pytest.fixture
def sample_snapshot(sample_xml):
    return decode(sample_xml).snapshot
