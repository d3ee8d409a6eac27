from __future__ import annotations

from pathlib import Path

import pytest

from buildsmith.composer import PRE_BUILD_END_MARKER, PRE_BUILD_START_MARKER
from buildsmith.core import BUILD_SPANS
from buildsmith.errors import BuildError
from buildsmith.execution import PipDownloadEventLogger, TextSpanEventLogger, run_script


def _script(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "script.sh"
    path.write_text("#!/bin/bash\n" + body, encoding="utf-8")
    return path


class _Exploding:
    def process_line(self, line: str) -> None:
        raise ValueError("bad processor")


@pytest.mark.timeout(20)
def test_run_script_streams_both_outputs(tmp_path: Path) -> None:
    script = _script(tmp_path, 'echo "out $1"\necho "err" 1>&2\necho "cwd $(pwd)"\nexit 3\n')
    out: list[str] = []
    err: list[str] = []
    code = run_script(
        script, ["arg"], cwd=tmp_path, on_stdout=out.append, on_stderr=err.append
    )
    assert code == 3
    assert out == ["out arg", f"cwd {tmp_path.resolve()}"]
    assert err == ["err"]


@pytest.mark.timeout(20)
def test_run_script_passes_env(tmp_path: Path) -> None:
    script = _script(tmp_path, 'echo "$BUILDSMITH_TEST_VALUE"\n')
    out: list[str] = []
    run_script(script, env={"BUILDSMITH_TEST_VALUE": "hello"}, on_stdout=out.append)
    assert out == ["hello"]


@pytest.mark.timeout(20)
def test_span_markers_are_timed(tmp_path: Path) -> None:
    script = _script(
        tmp_path,
        f'echo "{PRE_BUILD_START_MARKER}"\nsleep 0.1\necho "{PRE_BUILD_END_MARKER}"\n',
    )
    spans = TextSpanEventLogger(BUILD_SPANS)
    assert run_script(script, processors=[_Exploding(), spans]) == 0
    assert set(spans.durations) == {"pre_build"}
    assert spans.durations["pre_build"] > 0


def test_end_marker_without_start_is_ignored() -> None:
    spans = TextSpanEventLogger(BUILD_SPANS)
    spans.process_line(PRE_BUILD_END_MARKER)
    assert spans.durations == {}


def test_pip_downloads_are_recorded() -> None:
    pip = PipDownloadEventLogger()
    for line in ["Collecting flask==2.0.1", "  Downloading Jinja2-3.0.tar.gz", "Installing"]:
        pip.process_line(line)
    assert pip.packages == ["flask==2.0.1", "Jinja2-3.0.tar.gz"]


@pytest.mark.timeout(20)
def test_run_script_timeout(tmp_path: Path) -> None:
    script = _script(tmp_path, "exec sleep 10\n")
    with pytest.raises(BuildError, match="timed out"):
        run_script(script, timeout=0.5)
