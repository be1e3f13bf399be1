from __future__ import annotations

import subprocess
from pathlib import Path

import pytest
from typer.testing import CliRunner

from nvsmi_exporter import cli
from nvsmi_exporter.collector import runner as nvsmi_runner
from nvsmi_exporter.collector.runner import NvidiaSmiError, run_nvidia_smi
from nvsmi_exporter.config import ExporterSettings

SAMPLE_XML = Path(__file__).parent / "data" / "nvidia-smi.sample.xml"

runner = CliRunner()


def test_dump_from_file():
    result = runner.invoke(cli.app, ["dump", "--file", str(SAMPLE_XML)])
    assert result.exit_code == 0
    assert "nvidia_smi_clock_graphics_hertz{" in result.stdout
    assert "} 9.61e+08\n" in result.stdout


def test_dump_command_failure(monkeypatch):
    def boom(command, timeout):
        raise NvidiaSmiError(f"{command} not found")

    monkeypatch.setattr(cli, "run_nvidia_smi", boom)
    result = runner.invoke(cli.app, ["dump", "--nvidia-smi-command", "missing-smi"])
    assert result.exit_code == 1


def test_serve_wires_uvicorn(monkeypatch):
    seen = {}

    def fake_run(app, host, port, log_level):
        seen.update(app=app, host=host, port=port, log_level=log_level)

    monkeypatch.setattr(cli.uvicorn, "run", fake_run)
    result = runner.invoke(
        cli.app, ["serve", "--web.listen_address", "127.0.0.1:9400", "--web.telemetry-path", "/gpu"]
    )
    assert result.exit_code == 0, result.output
    assert (seen["host"], seen["port"], seen["log_level"]) == ("127.0.0.1", 9400, "info")
    assert any(getattr(r, "path", None) == "/gpu" for r in seen["app"].routes)


def test_serve_env_fallback(monkeypatch):
    seen = {}
    monkeypatch.setattr(cli.uvicorn, "run", lambda app, host, port, log_level: seen.update(port=port))
    monkeypatch.setenv("NVSMI_EXPORTER_LISTEN_ADDRESS", ":9999")
    result = runner.invoke(cli.app, ["serve"])
    assert result.exit_code == 0, result.output
    assert seen["port"] == 9999


@pytest.mark.parametrize(
    "address, expected",
    [(":9202", ("0.0.0.0", 9202)), ("127.0.0.1:80", ("127.0.0.1", 80)), ("[::1]:9202", ("::1", 9202))],
)
def test_bind(address, expected):
    assert ExporterSettings(listen_address=address).bind() == expected


@pytest.mark.parametrize("address", ["9202", "host:", ":0", ":70000"])
def test_bad_listen_address(address):
    with pytest.raises(ValueError):
        ExporterSettings(listen_address=address)


def test_zero_timeout_waits_forever():
    assert ExporterSettings(timeout=0).timeout is None


# ---------- runner -----------------------------------------------------
class _Completed:
    def __init__(self, returncode=0, stdout=b"<nvidia_smi_log/>", stderr=b""):
        self.returncode, self.stdout, self.stderr = returncode, stdout, stderr


def test_runner_appends_query_flags(monkeypatch):
    calls = []

    def fake(argv, **kwargs):
        calls.append((argv, kwargs["timeout"]))
        return _Completed()

    monkeypatch.setattr(nvsmi_runner.subprocess, "run", fake)
    assert run_nvidia_smi("sudo nvidia-smi", timeout=5) == b"<nvidia_smi_log/>"
    assert calls == [(["sudo", "nvidia-smi", "-q", "-x"], 5)]


def test_runner_nonzero_exit(monkeypatch):
    monkeypatch.setattr(
        nvsmi_runner.subprocess, "run", lambda argv, **kw: _Completed(returncode=9, stderr=b"NVML error")
    )
    with pytest.raises(NvidiaSmiError, match="exited with 9: NVML error"):
        run_nvidia_smi()


def test_runner_timeout(monkeypatch):
    def hang(argv, **kwargs):
        raise subprocess.TimeoutExpired(argv, kwargs["timeout"])

    monkeypatch.setattr(nvsmi_runner.subprocess, "run", hang)
    with pytest.raises(NvidiaSmiError, match="timed out"):
        run_nvidia_smi(timeout=0.5)


def test_runner_missing_binary():
    with pytest.raises(NvidiaSmiError, match="not found"):
        run_nvidia_smi("/nonexistent/nvidia-smi-binary")


def test_runner_not_executable(tmp_path):
    script = tmp_path / "nvidia-smi"
    script.write_text("#!/bin/sh\n")
    script.chmod(0o644)
    with pytest.raises(NvidiaSmiError, match="cannot run"):
        run_nvidia_smi(str(script))


def test_runner_directory(tmp_path):
    with pytest.raises(NvidiaSmiError):
        run_nvidia_smi(str(tmp_path))


def test_runner_unbalanced_quote():
    with pytest.raises(NvidiaSmiError, match="cannot parse command"):
        run_nvidia_smi('sudo "nvidia-smi')


@pytest.mark.parametrize("command", ['sudo "nvidia-smi', "", "   "])
def test_bad_command_rejected(command):
    with pytest.raises(ValueError):
        ExporterSettings(nvidia_smi_command=command)


@pytest.mark.parametrize("timeout", [-1, -0.5])
def test_negative_timeout_rejected(timeout):
    with pytest.raises(ValueError):
        ExporterSettings(timeout=timeout)


def test_serve_negative_timeout(monkeypatch):
    monkeypatch.setattr(cli.uvicorn, "run", lambda *a, **kw: pytest.fail("should not start"))
    result = runner.invoke(cli.app, ["serve", "--timeout", "-1"])
    assert result.exit_code != 0


def test_dump_unreadable_file(monkeypatch):
    def denied(self):
        raise PermissionError(13, "Permission denied", str(self))

    monkeypatch.setattr(Path, "read_bytes", denied)
    result = runner.invoke(cli.app, ["dump", "--file", str(SAMPLE_XML)])
    assert result.exit_code == 1
    assert "nvidia_smi_" not in result.stdout
