"""Adapter running an external documentation build command."""

from __future__ import annotations

import os
import subprocess
import time
from typing import Mapping, Optional

from ..config import describe_command
from ..logging import get_logger
from ..models import BuildResult, DocSource
from .base import SourceBuildAdapter


class CommandAdapter(SourceBuildAdapter):
    """Executes a source's build command in its working directory.

    String commands go through the shell, the way a CI ``run:`` step does, so
    ``npm install && npx typedoc`` works as written. List commands are passed
    as argv without a shell.
    """

    def __init__(
        self,
        *,
        environ: Optional[Mapping[str, str]] = None,
        extra_env: Optional[Mapping[str, str]] = None,
        default_timeout: Optional[float] = None,
    ) -> None:
        self.environ = dict(os.environ if environ is None else environ)
        self.extra_env = dict(extra_env or {})
        self.default_timeout = default_timeout
        self.logger = get_logger("adapters.command")

    def run(self, source: DocSource) -> BuildResult:
        if source.command is None:
            return BuildResult(
                source=source,
                success=False,
                diagnostics=f"No build command configured for {source.name}",
            )

        timeout = source.timeout if source.timeout is not None else self.default_timeout
        env = self._build_env(source)
        shell = isinstance(source.command, str)
        args = source.command if shell else list(source.command)

        self.logger.debug(
            "Running `%s` in %s for %s", describe_command(source.command), source.workdir, source.name
        )
        started = time.monotonic()
        try:
            completed = subprocess.run(
                args,
                cwd=str(source.workdir),
                env=env,
                shell=shell,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            return BuildResult(
                source=source,
                success=False,
                diagnostics=_decode(exc.output) + f"\nBuild timed out after {timeout:g}s",
                duration=time.monotonic() - started,
                timed_out=True,
            )
        except OSError as exc:
            # Missing executable or working directory.
            return BuildResult(
                source=source,
                success=False,
                diagnostics=f"Unable to start build: {exc}",
                duration=time.monotonic() - started,
            )

        duration = time.monotonic() - started
        diagnostics = completed.stdout or ""
        if completed.returncode != 0:
            return BuildResult(
                source=source,
                success=False,
                diagnostics=diagnostics + f"\nBuild exited with status {completed.returncode}",
                returncode=completed.returncode,
                duration=duration,
            )

        output = source.output_path
        if not output.is_dir():
            return BuildResult(
                source=source,
                success=False,
                diagnostics=diagnostics + f"\nDeclared output directory not found: {output}",
                returncode=completed.returncode,
                duration=duration,
            )

        return BuildResult(
            source=source,
            success=True,
            output=output,
            diagnostics=diagnostics,
            returncode=completed.returncode,
            duration=duration,
        )

    def _build_env(self, source: DocSource) -> dict[str, str]:
        env = dict(self.environ)
        env.update(self.extra_env)
        env.update(source.env)
        return env


def _decode(output: object) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return str(output)


__all__ = ["CommandAdapter"]
