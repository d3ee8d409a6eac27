"""Run a generated script and observe its output line by line.

Line processors see every stdout/stderr line. A processor that raises is logged
and the build keeps going.
"""

from __future__ import annotations

import os
import re
import subprocess
import threading
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Protocol

from buildsmith.errors import BuildError
from buildsmith.logging import get_logger, log_event

logger = get_logger(__name__)

LineCallback = Callable[[str], None]


class LineProcessor(Protocol):
    def process_line(self, line: str) -> None: ...


@dataclass(frozen=True)
class TextSpan:
    name: str
    start_marker: str
    end_marker: str


class TextSpanEventLogger:
    """Logs how long the output spent between each span's start and end marker lines."""

    def __init__(self, spans: Iterable[TextSpan]) -> None:
        self.spans = list(spans)
        self._started: dict[str, float] = {}
        self.durations: dict[str, float] = {}

    def process_line(self, line: str) -> None:
        text = line.strip()
        for span in self.spans:
            if text == span.start_marker:
                self._started[span.name] = time.perf_counter()
            elif text == span.end_marker and span.name in self._started:
                elapsed = time.perf_counter() - self._started.pop(span.name)
                self.durations[span.name] = elapsed
                log_event(logger, span.name, {"duration_ms": round(elapsed * 1000, 2)})


class PipDownloadEventLogger:
    _PATTERN = re.compile(r"^\s*(?:Collecting|Downloading)\s+(\S+)")

    def __init__(self) -> None:
        self.packages: list[str] = []

    def process_line(self, line: str) -> None:
        m = self._PATTERN.match(line)
        if m:
            self.packages.append(m.group(1))
            log_event(logger, "pip_download", {"package": m.group(1)})


def _pump(
    stream: IO[str],
    callback: LineCallback | None,
    processors: Sequence[LineProcessor],
    lock: threading.Lock,
) -> None:
    for raw in stream:
        line = raw.rstrip("\r\n")
        with lock:
            _dispatch(line, callback, processors)
    stream.close()


def _dispatch(line: str, callback: LineCallback | None, processors: Sequence[LineProcessor]) -> None:
    if callback is not None:
        try:
            callback(line)
        except Exception:
            logger.exception("Output callback failed")
    for processor in processors:
        try:
            processor.process_line(line)
        except Exception:
            logger.exception(f"Line processor {type(processor).__name__} failed")


def run_script(
    script_path: str | Path,
    args: Sequence[str] = (),
    cwd: str | Path | None = None,
    on_stdout: LineCallback | None = None,
    on_stderr: LineCallback | None = None,
    processors: Sequence[LineProcessor] = (),
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> int:
    """Run *script_path* with bash and return its exit code."""
    full_env = os.environ.copy()
    if env:
        full_env.update(env)

    proc = subprocess.Popen(
        ["bash", str(script_path), *args],
        cwd=cwd,
        env=full_env,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        bufsize=1,
    )
    # processors are not thread-safe; one line at a time across both streams
    lock = threading.Lock()
    readers = [
        threading.Thread(target=_pump, args=(proc.stdout, on_stdout, processors, lock), daemon=True),
        threading.Thread(target=_pump, args=(proc.stderr, on_stderr, processors, lock), daemon=True),
    ]
    for t in readers:
        t.start()
    try:
        proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        proc.kill()
        proc.wait()
        raise BuildError(f"Script {script_path} timed out after {timeout}s") from exc
    finally:
        for t in readers:
            t.join()
    return proc.returncode
