"""Tests for docmerge.orchestrator."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from docmerge.adapters import SourceBuildAdapter
from docmerge.config import ConfigError, load_config
from docmerge.errors import BuildError, PlanningError, PublishError
from docmerge.models import BuildResult, DocSource, PublishResult, PublishTarget, SiteTree, Stage
from docmerge.orchestrator import Orchestrator


class FakeAdapter(SourceBuildAdapter):
    """Writes canned files into each source's output directory."""

    def __init__(self, outputs: dict[str, dict[str, str]], failures: set[str] | None = None) -> None:
        self.outputs = outputs
        self.failures = failures or set()
        self.calls: list[str] = []

    def run(self, source: DocSource) -> BuildResult:
        self.calls.append(source.name)
        if source.name in self.failures:
            return BuildResult(source=source, success=False, diagnostics="error: build broke", returncode=2)
        output = source.output_path
        for relative, body in self.outputs.get(source.name, {}).items():
            path = output / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(body, encoding="utf-8")
        output.mkdir(parents=True, exist_ok=True)
        return BuildResult(source=source, success=True, output=output)


class RecordingPublisher:
    """Test double capturing publish invocations."""

    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[tuple[SiteTree, PublishTarget]] = []
        self.error = error

    def publish(self, tree: SiteTree, target: PublishTarget) -> PublishResult:
        self.calls.append((tree, target))
        if self.error is not None:
            raise self.error
        return PublishResult(remote=target.remote, ref=target.ref, commit="c0ffee" * 6 + "abcd")


CONFIG = """
policy: {policy}
site_dir: site
sources:
  - name: a
    command: build-a
    output: out/a
    mount: /
    primary: true
    entry: a/index.html
  - name: b
    command: build-b
    output: out/b
    mount: {b_mount}
  - name: c
    command: build-c
    output: out/c
    mount: {c_mount}
publish:
  remote: https://github.com/example/docs.git
  branch: gh-pages
"""

OUTPUTS = {
    "a": {"a/index.html": "A"},
    "b": {"index.html": "B"},
    "c": {"index.html": "C"},
}


def _configure(site_builder, *, policy: str = "required", b_mount: str = "/b", c_mount: str = "/c") -> Path:
    return site_builder.write_config(CONFIG.format(policy=policy, b_mount=b_mount, c_mount=c_mount))


def test_end_to_end_publishes_merged_site(site_builder) -> None:
    _configure(site_builder)
    adapter = FakeAdapter(OUTPUTS)
    publisher = RecordingPublisher()
    orchestrator = Orchestrator(
        adapters={"command": adapter}, publisher=publisher, environ={"GITHUB_TOKEN": "tok"}
    )

    outcome = orchestrator.run(site_builder.path())

    assert outcome.state is Stage.PUBLISHED
    assert outcome.ok
    assert outcome.error is None
    assert sorted(adapter.calls) == ["a", "b", "c"]
    site = site_builder.path() / "site"
    assert (site / "index.html").read_text() == "<meta http-equiv=refresh content=0;url=a/index.html>\n"
    assert (site / "a" / "index.html").read_text() == "A"
    assert (site / "b" / "index.html").read_text() == "B"
    assert (site / "c" / "index.html").read_text() == "C"

    (tree, target), = publisher.calls
    assert tree.root == site.resolve()
    assert target.branch == "gh-pages"
    assert target.ref == "refs/heads/gh-pages"
    assert target.token == "tok"
    assert outcome.publish is not None
    assert outcome.describe().startswith("Published")


def test_required_failure_stops_before_assembly(site_builder) -> None:
    _configure(site_builder)
    adapter = FakeAdapter(OUTPUTS, failures={"b"})
    publisher = RecordingPublisher()

    outcome = Orchestrator(adapters={"command": adapter}, publisher=publisher).run(site_builder.path())

    assert outcome.state is Stage.FAILED
    assert outcome.failed_stage is Stage.BUILDING_SOURCES
    assert isinstance(outcome.error, BuildError)
    assert outcome.error.sources == ("b",)
    assert "build broke" in str(outcome.error)
    assert str(outcome.error).startswith("BuildingSources failed (b)")
    assert not (site_builder.path() / "site").exists()
    assert publisher.calls == []


def test_best_effort_publishes_successful_subset(site_builder) -> None:
    _configure(site_builder, policy="best-effort")
    adapter = FakeAdapter(OUTPUTS, failures={"b"})
    publisher = RecordingPublisher()

    outcome = Orchestrator(adapters={"command": adapter}, publisher=publisher).run(site_builder.path())

    assert outcome.state is Stage.PUBLISHED
    assert outcome.plan is not None
    assert outcome.plan.destinations() == ["", "c"]
    site = site_builder.path() / "site"
    assert not (site / "b").exists()
    assert (site / "c" / "index.html").exists()
    assert len(publisher.calls) == 1


def test_mount_collision_fails_in_planning(site_builder) -> None:
    _configure(site_builder, c_mount="/b")
    publisher = RecordingPublisher()

    outcome = Orchestrator(adapters={"command": FakeAdapter(OUTPUTS)}, publisher=publisher).run(
        site_builder.path()
    )

    assert outcome.state is Stage.FAILED
    assert outcome.failed_stage is Stage.PLANNING
    assert isinstance(outcome.error, PlanningError)
    assert "collision b/c" in str(outcome.error)
    assert not (site_builder.path() / "site").exists()
    assert publisher.calls == []


def test_publish_failure_is_reported_with_stage(site_builder) -> None:
    _configure(site_builder)
    publisher = RecordingPublisher(error=PublishError("push rejected"))

    outcome = Orchestrator(adapters={"command": FakeAdapter(OUTPUTS)}, publisher=publisher).run(
        site_builder.path()
    )

    assert outcome.state is Stage.FAILED
    assert outcome.failed_stage is Stage.PUBLISHING
    assert outcome.site is not None
    assert outcome.describe() == "Publishing failed: push rejected"


def test_assemble_only_skips_publisher(site_builder) -> None:
    _configure(site_builder)
    publisher = RecordingPublisher()

    outcome = Orchestrator(adapters={"command": FakeAdapter(OUTPUTS)}, publisher=publisher).run(
        site_builder.path(), publish=False
    )

    assert outcome.ok
    assert outcome.state is Stage.ASSEMBLING
    assert outcome.site is not None
    assert publisher.calls == []


def test_rerun_replaces_previous_site(site_builder) -> None:
    _configure(site_builder)
    orchestrator = Orchestrator(adapters={"command": FakeAdapter(OUTPUTS)}, publisher=RecordingPublisher())
    orchestrator.run(site_builder.path())
    (site_builder.path() / "site" / "stray.txt").write_text("x", encoding="utf-8")

    outcome = orchestrator.run(site_builder.path())

    assert outcome.state is Stage.PUBLISHED
    assert not (site_builder.path() / "site" / "stray.txt").exists()


def test_publish_requires_remote(site_builder) -> None:
    site_builder.write_config(
        """
        sources:
          - {name: a, output: out/a, mount: /, primary: true, entry: a/index.html}
        """
    )

    with pytest.raises(ConfigError, match="publish.remote"):
        Orchestrator(publisher=RecordingPublisher()).run(site_builder.path())


def test_unknown_adapter_kind_is_config_error(site_builder) -> None:
    site_builder.write_config(
        """
        sources:
          - {name: a, output: out/a, mount: /, primary: true, adapter: mystery}
        """
    )
    config = load_config(site_builder.path())

    with pytest.raises(ConfigError, match="mystery"):
        Orchestrator().check(config)


def test_check_returns_plan_without_building(site_builder) -> None:
    _configure(site_builder)
    config = load_config(site_builder.path())

    plan = Orchestrator().check(config)

    assert plan.destinations() == ["", "b", "c"]
    assert not (site_builder.path() / "out").exists()


def test_build_environment_excludes_publish_token(site_builder) -> None:
    code = "import os, pathlib; p = pathlib.Path('out'); p.mkdir(); (p / 'leak.txt').write_text(os.environ.get('GITHUB_TOKEN', 'absent'))"
    site_builder.write_config(
        f"""
        sources:
          - name: a
            command: [{sys.executable!r}, "-c", {code!r}]
            output: out
            mount: /
            primary: true
            entry: leak.txt
        publish:
          remote: /srv/docs.git
        """
    )
    publisher = RecordingPublisher()

    outcome = Orchestrator(publisher=publisher, environ={"GITHUB_TOKEN": "tok", "PATH": ""}).run(
        site_builder.path()
    )

    assert outcome.state is Stage.PUBLISHED, outcome.describe()
    assert (site_builder.path() / "site" / "leak.txt").read_text() == "absent"
    assert publisher.calls[0][1].token == "tok"
