from __future__ import annotations

import shlex
import subprocess
from typing import Optional

NVSMI_ARGS = ["-q", "-x"]


class NvidiaSmiError(RuntimeError):
    """nvidia-smi could not be run or did not exit cleanly."""


def run_nvidia_smi(command: str = "nvidia-smi", timeout: Optional[float] = 10.0) -> bytes:
    """Run `<command> -q -x` and return its raw XML output.

    `command` may carry its own arguments ("sudo nvidia-smi"). A timeout of
    None waits for the command indefinitely.
    """
    try:
        argv = shlex.split(command) + NVSMI_ARGS
    except ValueError as exc:
        raise NvidiaSmiError(f"cannot parse command {command!r}: {exc}") from exc
    try:
        proc = subprocess.run(argv, check=False, capture_output=True, timeout=timeout)
    except FileNotFoundError as exc:
        raise NvidiaSmiError(f"{argv[0]} not found") from exc
    except OSError as exc:
        raise NvidiaSmiError(f"cannot run {argv[0]}: {exc}") from exc
    except subprocess.TimeoutExpired as exc:
        raise NvidiaSmiError(f"{argv[0]} timed out after {timeout}s") from exc

    if proc.returncode != 0:
        stderr = proc.stderr.decode(errors="replace").strip()
        raise NvidiaSmiError(f"{argv[0]} exited with {proc.returncode}: {stderr}")
    return proc.stdout
