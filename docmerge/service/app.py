"""FastAPI application entrypoint for docmerge service mode."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, List, Optional

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import ConfigError
from ..orchestrator import Orchestrator, PipelineOutcome


class RunRequest(BaseModel):
    path: str
    policy: Optional[str] = None
    branch: Optional[str] = None
    publish: bool = True


class MountInfo(BaseModel):
    source: str
    destination: str


class RunResponse(BaseModel):
    state: str
    failed_stage: Optional[str] = None
    error: Optional[str] = None
    sources: List[str] = []
    mounts: List[MountInfo] = []
    site_root: Optional[str] = None
    commit: Optional[str] = None
    ref: Optional[str] = None


class HealthResponse(BaseModel):
    status: str


def _default_orchestrator() -> Orchestrator:
    return Orchestrator()


def _to_response(outcome: PipelineOutcome) -> RunResponse:
    response = RunResponse(
        state=outcome.state.value,
        failed_stage=outcome.failed_stage.label if outcome.failed_stage else None,
        error=str(outcome.error) if outcome.error else None,
        sources=list(outcome.error.sources) if outcome.error else [],
    )
    if outcome.plan is not None:
        response.mounts = [
            MountInfo(source=mount.source.name, destination=f"/{mount.destination}")
            for mount in outcome.plan.mounts
        ]
    if outcome.site is not None:
        response.site_root = str(outcome.site.root)
    if outcome.publish is not None:
        response.commit = outcome.publish.commit
        response.ref = outcome.publish.ref
    return response


def create_app(
    orchestrator_factory: Callable[[], Orchestrator] = _default_orchestrator,
) -> FastAPI:
    """Create the FastAPI application exposing the docmerge pipeline."""

    app = FastAPI(title="docmerge", version="0.1.0")

    async def get_orchestrator() -> Orchestrator:
        # One orchestrator per request; pipeline state is not shared between runs.
        return orchestrator_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/run", response_model=RunResponse)
    async def run_pipeline(
        payload: RunRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> Any:
        def _run() -> PipelineOutcome:
            return orchestrator.run(
                payload.path,
                policy=payload.policy,
                branch=payload.branch,
                publish=payload.publish,
            )

        loop = asyncio.get_running_loop()
        outcome = await loop.run_in_executor(None, _run)
        response = _to_response(outcome)
        if not outcome.ok:
            return JSONResponse(status_code=422, content=response.model_dump())
        return response

    @app.exception_handler(ConfigError)
    async def config_error_handler(
        _: Any, exc: ConfigError
    ) -> JSONResponse:  # pragma: no cover - simple mapping
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(
    host: str = "127.0.0.1", port: int = 8000
) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app()
    uvicorn.run(app, host=host, port=port)
