"""Post-renewal hook: sequence the propagation stages.

The hook runs once per renewal event:

1. commit the certificate store,
2. install the console bundle, then commit the console directory,
3. reload the web server.

Which results halt the run, and with which exit code, lives in
:data:`certsync.stages.HOOK_POLICY`. A halted run never executes later stages.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .committer import RepositoryCommitter
from .config import AppConfig
from .console import ConsoleInstaller
from .exit_codes import ExitCode
from .logging import OperationScope
from .stages import HOOK_POLICY, HookReport, HookStage, StageResult
from .webserver import WebServerReloader

StageRunner = Callable[[], StageResult]
StageObserver = Callable[[HookStage, StageResult], None]


@dataclass(slots=True)
class HookOrchestrator:
    """Run the propagation stages under the fail-fast policy."""

    config: AppConfig
    committer: RepositoryCommitter
    console: ConsoleInstaller
    webserver: WebServerReloader

    def plan(
        self,
        domain: str | None,
        webserver: str | None,
    ) -> list[tuple[HookStage, StageRunner]]:
        """Return the ordered stages for one hook invocation."""
        return [
            (HookStage.STORE_COMMIT, lambda: self.committer.commit(self.config.cert_store.root)),
            (HookStage.CONSOLE_INSTALL, lambda: self.console.install(domain)),
            (
                HookStage.CONSOLE_COMMIT,
                lambda: self.committer.commit(self.config.console.commit_dir),
            ),
            (HookStage.WEBSERVER_RELOAD, lambda: self.webserver.reload(webserver)),
        ]

    def run(
        self,
        domain: str | None,
        webserver: str | None,
        *,
        observer: StageObserver | None = None,
    ) -> HookReport:
        """Execute the stages in order, halting on the first policy stop."""
        results: list[tuple[HookStage, StageResult]] = []
        for stage, runner in self.plan(domain, webserver):
            result = runner()
            results.append((stage, result))
            if observer is not None:
                observer(stage, result)
            halt = HOOK_POLICY[(stage, result.status)]
            if halt is not None:
                return HookReport(results=tuple(results), exit_code=halt)
        return HookReport(results=tuple(results), exit_code=ExitCode.OK)


def record_stage(op: OperationScope) -> StageObserver:
    """Return an observer that records each stage as an operation step."""

    def _observe(stage: HookStage, result: StageResult) -> None:
        context = dict(result.data or {})
        if result.warnings:
            context["warnings"] = list(result.warnings)
        op.add_step(
            f"hook.{stage.value}",
            status=result.status.value,
            detail=result.message,
            context=context or None,
        )

    return _observe


__all__ = ["HookOrchestrator", "record_stage"]
