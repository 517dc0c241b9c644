"""Git publishing of an assembled site to a single branch."""

from __future__ import annotations

import os
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Iterable, Optional
from urllib.parse import urlsplit, urlunsplit

from ..errors import PublishError
from ..logging import get_logger
from ..models import PublishResult, PublishTarget, SiteTree

Runner = Callable[..., str]


class Publisher:
    """Replaces the content of one remote branch with a snapshot of the site tree.

    Each publish is a single parentless commit force-pushed to the target
    ref, so the branch never accumulates history. The commit is built in a
    throwaway git directory; the site tree itself is never turned into a
    repository.
    """

    def __init__(self, runner: Runner | None = None) -> None:
        self._runner = runner or self._default_runner
        self.logger = get_logger("publisher")

    def publish(self, tree: SiteTree, target: PublishTarget) -> PublishResult:
        root = tree.root
        if not root.is_dir():
            raise PublishError(f"site tree {root} does not exist")
        if not target.remote:
            raise PublishError("no publish remote configured")

        remote_url = self._authenticated_url(target.remote, target.token)
        display_remote = self._redact(remote_url, target.token)

        with tempfile.TemporaryDirectory(prefix="docmerge-publish-") as scratch:
            git_dir = Path(scratch) / "git"
            env = self._build_env(target)

            def git(*args: str, capture: bool = False, timeout: Optional[float] = None) -> str:
                return self._git(
                    [f"--git-dir={git_dir}", f"--work-tree={root}", *args],
                    cwd=root,
                    env=env,
                    capture_output=capture,
                    timeout=timeout,
                    token=target.token,
                )

            git("init", "--quiet")
            git("add", "--all", "--force", ".")
            if target.nojekyll and not (root / ".nojekyll").exists():
                marker = Path(scratch) / "nojekyll"
                marker.write_bytes(b"")
                blob = git("hash-object", "-w", str(marker), capture=True).strip()
                git("update-index", "--add", "--cacheinfo", f"100644,{blob},.nojekyll")
            tree_id = git("write-tree", capture=True).strip()
            commit = git("commit-tree", tree_id, "-m", target.message, capture=True).strip()
            if not commit:
                raise PublishError("git commit-tree returned no commit id")

            self.logger.info(
                "Pushing %s (%d files) to %s %s", commit[:12], tree.file_count, display_remote, target.ref
            )
            git(
                "push",
                "--force",
                "--quiet",
                remote_url,
                f"{commit}:{target.ref}",
                timeout=target.timeout,
            )

        self.logger.info("Published %s to %s", commit[:12], target.ref)
        return PublishResult(remote=display_remote, ref=target.ref, commit=commit)

    # ------------------------------------------------------------------
    # Helpers

    def _git(
        self,
        args: Iterable[str],
        *,
        cwd: Path,
        env: dict[str, str],
        capture_output: bool,
        timeout: Optional[float],
        token: Optional[str],
    ) -> str:
        command = ["git", *args]
        try:
            return self._runner(
                command, cwd=cwd, env=env, capture_output=capture_output, timeout=timeout
            )
        except subprocess.CalledProcessError as exc:
            detail = _output_text(exc.stderr) or _output_text(exc.output) or f"exit status {exc.returncode}"
            raise PublishError(
                self._redact(f"`{_describe(command)}` failed: {detail}", token)
            ) from None
        except subprocess.TimeoutExpired:
            raise PublishError(
                self._redact(f"`{_describe(command)}` timed out after {timeout:g}s", token)
            ) from None
        except OSError as exc:
            raise PublishError(f"unable to run git: {exc}") from exc

    @staticmethod
    def _build_env(target: PublishTarget) -> dict[str, str]:
        env = os.environ.copy()
        env["GIT_AUTHOR_NAME"] = target.author_name
        env["GIT_AUTHOR_EMAIL"] = target.author_email
        env["GIT_COMMITTER_NAME"] = target.author_name
        env["GIT_COMMITTER_EMAIL"] = target.author_email
        env["GIT_TERMINAL_PROMPT"] = "0"
        return env

    @staticmethod
    def _authenticated_url(remote: str, token: Optional[str]) -> str:
        if not token:
            return remote
        parts = urlsplit(remote)
        if parts.scheme != "https" or not parts.hostname:
            return remote
        host = parts.hostname
        if parts.port:
            host = f"{host}:{parts.port}"
        return urlunsplit(
            (parts.scheme, f"x-access-token:{token}@{host}", parts.path, parts.query, parts.fragment)
        )

    @staticmethod
    def _redact(text: str, token: Optional[str]) -> str:
        if token:
            return text.replace(token, "***")
        return text

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        env: dict[str, str] | None = None,
        capture_output: bool = False,
        timeout: Optional[float] = None,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            env=env,
            check=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            capture_output=True,
            timeout=timeout,
        )
        if capture_output:
            return completed.stdout
        return ""


def _output_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return str(value).strip()


def _describe(command: list[str]) -> str:
    # Skip the --git-dir/--work-tree plumbing flags.
    visible = [part for part in command if not part.startswith(("--git-dir=", "--work-tree="))]
    return " ".join(visible[:2])


__all__ = ["Publisher"]
