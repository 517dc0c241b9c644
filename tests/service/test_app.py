"""Tests for the FastAPI service mode."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from docmerge.errors import PlanningError
from docmerge.models import DocSource, Mount, MountPlan, PublishResult, Stage
from docmerge.orchestrator import PipelineOutcome
from docmerge.service import create_app


class _StubOrchestrator:
    def __init__(self, outcome: PipelineOutcome) -> None:
        self.outcome = outcome
        self.calls: list[dict[str, object]] = []

    def run(self, path, *, policy=None, branch=None, publish=True):  # type: ignore[no-untyped-def]
        self.calls.append({"path": path, "policy": policy, "branch": branch, "publish": publish})
        return self.outcome


def _published_outcome() -> PipelineOutcome:
    source = DocSource(name="rust", output=Path("target/doc"), mount="/", primary=True)
    mount = Mount(source=source, origin=Path("/tmp/target/doc"), destination="")
    return PipelineOutcome(
        state=Stage.PUBLISHED,
        plan=MountPlan(mounts=(mount,), primary=mount),
        publish=PublishResult(remote="origin", ref="refs/heads/gh-pages", commit="abc123"),
    )


@pytest.fixture
def stub() -> _StubOrchestrator:
    return _StubOrchestrator(_published_outcome())


@pytest.fixture
def client(stub: _StubOrchestrator) -> TestClient:
    return TestClient(create_app(lambda: stub))


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_run_endpoint_reports_publish(client: TestClient, stub: _StubOrchestrator) -> None:
    response = client.post("/run", json={"path": "/repo", "policy": "best-effort"})

    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "published"
    assert data["commit"] == "abc123"
    assert data["ref"] == "refs/heads/gh-pages"
    assert data["mounts"] == [{"source": "rust", "destination": "/"}]
    assert stub.calls == [{"path": "/repo", "policy": "best-effort", "branch": None, "publish": True}]


def test_run_endpoint_reports_failure() -> None:
    outcome = PipelineOutcome(
        state=Stage.FAILED,
        failed_stage=Stage.PLANNING,
        error=PlanningError("collision b/c: both mount at /b", sources=["b", "c"]),
    )
    client = TestClient(create_app(lambda: _StubOrchestrator(outcome)))

    response = client.post("/run", json={"path": "/repo"})

    assert response.status_code == 422
    data = response.json()
    assert data["state"] == "failed"
    assert data["failed_stage"] == "Planning"
    assert data["sources"] == ["b", "c"]
    assert data["error"] == "Planning failed (b, c): collision b/c: both mount at /b"
