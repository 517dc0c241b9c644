"""Tests for the built-in build adapters."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from docmerge.adapters import CommandAdapter, StaticAdapter, SourceBuildAdapter, create_adapter
from docmerge.models import DocSource


def _python(code: str) -> tuple[str, ...]:
    return (sys.executable, "-c", code)


def _source(tmp_path: Path, command, **kwargs) -> DocSource:
    return DocSource(
        name=kwargs.pop("name", "docs"),
        output=Path(kwargs.pop("output", "out")),
        mount="/",
        command=command,
        workdir=tmp_path,
        **kwargs,
    )


def test_command_adapter_reports_output_directory(tmp_path: Path) -> None:
    code = "import pathlib; p = pathlib.Path('out'); p.mkdir(); (p / 'index.html').write_text('hi'); print('built')"
    source = _source(tmp_path, _python(code))

    result = CommandAdapter(environ={}).run(source)

    assert result.success is True
    assert result.output == (tmp_path / "out").resolve()
    assert result.returncode == 0
    assert "built" in result.diagnostics
    assert (tmp_path / "out" / "index.html").read_text() == "hi"


def test_command_adapter_merges_environment(tmp_path: Path) -> None:
    code = (
        "import os, pathlib; pathlib.Path('out').mkdir(); "
        "print(os.environ['BASE'], os.environ['GLOBAL'], os.environ['LOCAL'])"
    )
    source = _source(tmp_path, _python(code), env={"LOCAL": "source", "GLOBAL": "overridden"})
    adapter = CommandAdapter(environ={"BASE": "base"}, extra_env={"GLOBAL": "global"})

    result = adapter.run(source)

    assert result.success is True
    assert "base overridden source" in result.diagnostics


def test_command_adapter_captures_failure(tmp_path: Path) -> None:
    code = "import sys; print('compile error', file=sys.stderr); sys.exit(3)"
    source = _source(tmp_path, _python(code))

    result = CommandAdapter(environ={}).run(source)

    assert result.success is False
    assert result.output is None
    assert result.returncode == 3
    assert "compile error" in result.diagnostics
    assert "status 3" in result.diagnostics


def test_command_adapter_times_out(tmp_path: Path) -> None:
    source = _source(tmp_path, _python("import time; time.sleep(10)"), timeout=0.5)

    result = CommandAdapter(environ={}).run(source)

    assert result.success is False
    assert result.timed_out is True
    assert "timed out" in result.diagnostics


def test_command_adapter_default_timeout_applies(tmp_path: Path) -> None:
    source = _source(tmp_path, _python("import time; time.sleep(10)"))

    result = CommandAdapter(environ={}, default_timeout=0.5).run(source)

    assert result.timed_out is True


def test_command_adapter_missing_executable(tmp_path: Path) -> None:
    source = _source(tmp_path, ("docmerge-definitely-not-a-binary",))

    result = CommandAdapter(environ={}).run(source)

    assert result.success is False
    assert "Unable to start build" in result.diagnostics


def test_command_adapter_requires_declared_output(tmp_path: Path) -> None:
    source = _source(tmp_path, _python("print('forgot to write docs')"))

    result = CommandAdapter(environ={}).run(source)

    assert result.success is False
    assert "output directory not found" in result.diagnostics


def test_static_adapter(tmp_path: Path) -> None:
    (tmp_path / "prebuilt").mkdir()
    present = _source(tmp_path, None, output="prebuilt", adapter="static")
    missing = _source(tmp_path, None, output="absent", adapter="static")

    assert StaticAdapter().run(present).output == (tmp_path / "prebuilt").resolve()
    assert StaticAdapter().run(missing).success is False


def test_create_adapter_resolves_builtins() -> None:
    adapter = create_adapter("command", environ={"A": "1"}, default_timeout=3)

    assert isinstance(adapter, CommandAdapter)
    assert adapter.environ == {"A": "1"}
    assert adapter.default_timeout == 3
    assert isinstance(create_adapter("static"), StaticAdapter)
    assert isinstance(create_adapter("STATIC"), SourceBuildAdapter)


def test_create_adapter_rejects_unknown_kind() -> None:
    with pytest.raises(ValueError, match="Unknown build adapter"):
        create_adapter("sphinx-magic")


def test_command_adapter_tolerates_undecodable_output(tmp_path: Path) -> None:
    code = (
        "import pathlib, sys; sys.stdout.buffer.write(b'\\xff\\xfe warning\\n'); sys.stdout.flush(); "
        "p = pathlib.Path('out'); p.mkdir(); (p / 'index.html').write_text('hi')"
    )
    source = _source(tmp_path, _python(code))

    result = CommandAdapter(environ={}).run(source)

    assert result.success is True
    assert result.output == (tmp_path / "out").resolve()
    assert "�" in result.diagnostics
    assert "warning" in result.diagnostics
