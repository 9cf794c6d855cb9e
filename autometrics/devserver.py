"""Helpers for running a local Prometheus server during development."""

from __future__ import annotations

import asyncio
import random
import subprocess
import sys
from os import PathLike
from pathlib import Path
from typing import Union

DEFAULT_CONFIG_PATH = Path("prometheus.yml")
EXEMPLARS_FLAG = "--enable-feature=exemplar-storage"

StrPath = Union[str, "PathLike[str]"]


class ChildGuard:
    """Owns a child process and kills it when stopped or when its block ends."""

    def __init__(self, process: subprocess.Popen) -> None:
        self.process = process
        self._stopped = False

    def stop(self) -> bool:
        """Kill the process once; report whether that succeeded."""
        if self._stopped:
            return True
        self._stopped = True
        try:
            self.process.kill()
            self.process.wait()
        except OSError:
            print("Failed to stop Prometheus server", file=sys.stderr)
            return False
        print("Stopped Prometheus server", file=sys.stderr)
        return True

    def __enter__(self) -> ChildGuard:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


def run_prometheus(
    enable_exemplars: bool = False, config_path: StrPath = DEFAULT_CONFIG_PATH
) -> ChildGuard:
    """Start ``prometheus`` with the given config file, its output discarded.

    Raises :class:`RuntimeError` if the program cannot be started.
    """
    config = str(config_path)
    args = ["prometheus", "--config.file", config]
    if enable_exemplars:
        args.append(EXEMPLARS_FLAG)

    try:
        process = subprocess.Popen(
            args, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
        )
    except FileNotFoundError as err:
        raise RuntimeError(
            "Failed to start prometheus "
            "(do you have the prometheus binary installed and in your path?)"
        ) from err
    except OSError as err:
        raise RuntimeError(f"Failed to start prometheus: {err}") from err

    print(
        f"Running Prometheus on port 9090 (using config file: {config})",
        file=sys.stderr,
    )
    if enable_exemplars:
        print(
            f"Exemplars are enabled (using the flag: {EXEMPLARS_FLAG})",
            file=sys.stderr,
        )
    return ChildGuard(process)


async def sleep_random_duration() -> float:
    """Sleep for a random time under 300 milliseconds and return it in seconds."""
    duration = random.randrange(0, 300) / 1000
    await asyncio.sleep(duration)
    return duration