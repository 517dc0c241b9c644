"""Pipeline orchestration: build sources, plan mounts, assemble and publish."""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from .adapters import SourceBuildAdapter, create_adapter
from .assembler import SiteAssembler
from .config import ConfigError, DocMergeConfig, describe_command, load_config
from .errors import BuildError, DocMergeError
from .git.publisher import Publisher
from .logging import get_logger, register_secret
from .models import BuildResult, DocSource, MountPlan, Policy, PublishResult, PublishTarget, SiteTree, Stage
from .planner import AggregationPlanner


@dataclass
class PipelineOutcome:
    """Terminal result of a pipeline run."""

    state: Stage
    results: List[BuildResult] = field(default_factory=list)
    plan: Optional[MountPlan] = None
    site: Optional[SiteTree] = None
    publish: Optional[PublishResult] = None
    failed_stage: Optional[Stage] = None
    error: Optional[DocMergeError] = None

    @property
    def ok(self) -> bool:
        return self.state is not Stage.FAILED

    def describe(self) -> str:
        if self.error is not None:
            return str(self.error)
        if self.publish is not None:
            return f"Published {self.publish.commit[:12]} to {self.publish.ref}"
        if self.site is not None:
            return f"Site assembled at {self.site.root}"
        return self.state.label


class Orchestrator:
    """Coordinates the build, plan, assemble and publish stages."""

    def __init__(
        self,
        *,
        adapters: Optional[Mapping[str, SourceBuildAdapter]] = None,
        publisher: Publisher | None = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._adapter_overrides = dict(adapters or {})
        self.publisher = publisher or Publisher()
        self._environ = dict(os.environ if environ is None else environ)
        self.logger = get_logger("orchestrator")
        self.state = Stage.PENDING

    def run(
        self,
        path: str | Path,
        *,
        policy: Optional[str] = None,
        timeout: Optional[float] = None,
        site_dir: Optional[Path] = None,
        branch: Optional[str] = None,
        publish: bool = True,
    ) -> PipelineOutcome:
        """Load configuration from ``path`` and run the pipeline."""
        config = load_config(Path(path)).with_overrides(
            policy=policy, timeout=timeout, site_dir=site_dir, branch=branch
        )
        return self.run_config(config, publish=publish)

    def run_config(self, config: DocMergeConfig, *, publish: bool = True) -> PipelineOutcome:
        """Run every stage for ``config``.

        Stage errors never propagate; they end the run in ``Stage.FAILED``.
        With ``publish=False`` the run stops after assembly and the outcome
        keeps the ``ASSEMBLING`` state.
        """
        if publish and not config.publish.remote:
            raise ConfigError("`publish.remote` must be configured to publish")
        adapters = self._resolve_adapters(config)

        self.state = Stage.PENDING
        outcome = PipelineOutcome(state=self.state)
        try:
            self._transition(Stage.BUILDING_SOURCES)
            outcome.results = self._build_sources(config, adapters)
            failed = [result for result in outcome.results if not result.success]
            if failed and config.policy is Policy.REQUIRED:
                raise BuildError(
                    _summarise_failures(failed), sources=[result.name for result in failed]
                )

            self._transition(Stage.PLANNING)
            outcome.plan = AggregationPlanner(config.policy).plan(outcome.results)

            self._transition(Stage.ASSEMBLING)
            assembler = SiteAssembler(create_parents=config.assembly.create_parents)
            outcome.site = assembler.assemble(outcome.plan, config.site_dir, clean=True)

            if not publish:
                outcome.state = self.state
                return outcome

            self._transition(Stage.PUBLISHING)
            outcome.publish = self._publish(outcome.site, config)
        except DocMergeError as exc:
            return self._fail(outcome, exc)

        self._transition(Stage.PUBLISHED)
        outcome.state = self.state
        return outcome

    def check(self, config: DocMergeConfig) -> MountPlan:
        """Validate adapters and the mount plan without building anything."""
        self._resolve_adapters(config)
        return AggregationPlanner(config.policy).plan_sources(config.sources)

    # ------------------------------------------------------------------
    # Stages

    def _build_sources(
        self, config: DocMergeConfig, adapters: Mapping[str, SourceBuildAdapter]
    ) -> List[BuildResult]:
        sources = config.sources
        jobs = min(config.jobs or len(sources), len(sources))

        def _run(source: DocSource) -> BuildResult:
            self.logger.info("Building %s: %s", source.name, describe_command(source.command))
            try:
                result = adapters[source.adapter].run(source)
            except Exception as exc:  # pragma: no cover - defensive guard for third-party adapters
                result = BuildResult(
                    source=source, success=False, diagnostics=f"Adapter raised {exc!r}"
                )
            self._log_result(result)
            return result

        executor = ThreadPoolExecutor(max_workers=jobs, thread_name_prefix="docmerge-build")
        try:
            futures = [executor.submit(_run, source) for source in sources]
            results = [future.result() for future in futures]
        except BaseException:
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
        return results

    def _publish(self, site: SiteTree, config: DocMergeConfig) -> PublishResult:
        settings = config.publish
        token = self._environ.get(settings.token_env) or None
        register_secret(token)
        target = PublishTarget(
            remote=settings.remote or "",
            branch=settings.branch,
            token=token,
            message=settings.message,
            author_name=settings.author_name,
            author_email=settings.author_email,
            nojekyll=settings.nojekyll,
            timeout=settings.timeout,
        )
        try:
            return self.publisher.publish(site, target)
        except KeyboardInterrupt:
            self.logger.error(
                "Publishing interrupted; %s may or may not have been updated, check the remote",
                target.ref,
            )
            raise

    # ------------------------------------------------------------------
    # Helpers

    def _resolve_adapters(self, config: DocMergeConfig) -> Dict[str, SourceBuildAdapter]:
        # The publish credential never reaches build processes.
        build_environ = {
            key: value for key, value in self._environ.items() if key != config.publish.token_env
        }
        adapters: Dict[str, SourceBuildAdapter] = {}
        for source in config.sources:
            kind = source.adapter
            if kind in adapters:
                continue
            if kind in self._adapter_overrides:
                adapters[kind] = self._adapter_overrides[kind]
                continue
            options = (
                {"environ": build_environ, "extra_env": config.env, "default_timeout": config.timeout}
                if kind == "command"
                else {}
            )
            try:
                adapters[kind] = create_adapter(kind, **options)
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"Source '{source.name}': {exc}") from exc
        return adapters

    def _transition(self, stage: Stage) -> None:
        if self.state.terminal:
            raise RuntimeError(f"cannot leave terminal state {self.state.label}")
        self.logger.info("%s -> %s", self.state.label, stage.label)
        self.state = stage

    def _fail(self, outcome: PipelineOutcome, error: DocMergeError) -> PipelineOutcome:
        self.logger.error("%s", error)
        outcome.failed_stage = self.state
        outcome.error = error
        self.state = Stage.FAILED
        outcome.state = Stage.FAILED
        return outcome

    def _log_result(self, result: BuildResult) -> None:
        if result.success:
            self.logger.info("Built %s in %.1fs -> %s", result.name, result.duration, result.output)
        elif result.timed_out:
            self.logger.error("Build of %s timed out after %.1fs", result.name, result.duration)
        else:
            self.logger.error("Build of %s failed", result.name)
        if result.diagnostics:
            self.logger.debug("%s output:\n%s", result.name, result.diagnostics.rstrip())


def _summarise_failures(failed: Sequence[BuildResult]) -> str:
    reasons = []
    for result in failed:
        lines = [line for line in result.diagnostics.strip().splitlines() if line.strip()]
        reasons.append(f"{result.name}: {lines[-1] if lines else 'build failed'}")
    return "; ".join(reasons)


__all__ = ["Orchestrator", "PipelineOutcome"]
