"""Result models shared by the propagation stages."""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .exit_codes import ExitCode


class StageStatus(str, Enum):
    """Outcome of a single propagation stage."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def is_failure(self) -> bool:
        """Return ``True`` when the status represents a hard failure."""
        return self is StageStatus.FAILED


class HookStage(str, Enum):
    """Stages executed by the post-renewal hook, in order."""

    STORE_COMMIT = "store-commit"
    CONSOLE_INSTALL = "console-install"
    CONSOLE_COMMIT = "console-commit"
    WEBSERVER_RELOAD = "webserver-reload"


@dataclass(slots=True, frozen=True)
class StageResult:
    """Outcome of running one stage."""

    status: StageStatus
    message: str
    data: Mapping[str, Any] | None = None
    warnings: Sequence[str] = field(default_factory=tuple)

    @property
    def is_failure(self) -> bool:
        """Return ``True`` when the stage failed."""
        return self.status.is_failure

    @classmethod
    def success(cls, message: str, **data: Any) -> StageResult:
        """Build a successful result."""
        return cls(StageStatus.SUCCESS, message, data or None)

    @classmethod
    def skipped(cls, message: str, **data: Any) -> StageResult:
        """Build a skipped (soft) result."""
        return cls(StageStatus.SKIPPED, message, data or None)

    @classmethod
    def failed(cls, message: str, **data: Any) -> StageResult:
        """Build a hard failure result."""
        return cls(StageStatus.FAILED, message, data or None)


# (stage, status) -> exit code to halt with, or ``None`` to continue.
HOOK_POLICY: Mapping[tuple[HookStage, StageStatus], ExitCode | None] = {
    (HookStage.STORE_COMMIT, StageStatus.SUCCESS): None,
    (HookStage.STORE_COMMIT, StageStatus.SKIPPED): None,
    (HookStage.STORE_COMMIT, StageStatus.FAILED): ExitCode.STORE_COMMIT,
    (HookStage.CONSOLE_INSTALL, StageStatus.SUCCESS): None,
    (HookStage.CONSOLE_INSTALL, StageStatus.SKIPPED): None,
    (HookStage.CONSOLE_INSTALL, StageStatus.FAILED): ExitCode.CONSOLE,
    (HookStage.CONSOLE_COMMIT, StageStatus.SUCCESS): None,
    (HookStage.CONSOLE_COMMIT, StageStatus.SKIPPED): None,
    (HookStage.CONSOLE_COMMIT, StageStatus.FAILED): ExitCode.CONSOLE,
    (HookStage.WEBSERVER_RELOAD, StageStatus.SUCCESS): None,
    (HookStage.WEBSERVER_RELOAD, StageStatus.SKIPPED): None,
    (HookStage.WEBSERVER_RELOAD, StageStatus.FAILED): ExitCode.WEBSERVER,
}


@dataclass(slots=True, frozen=True)
class HookReport:
    """Every executed stage and the exit code the policy produced."""

    results: Sequence[tuple[HookStage, StageResult]]
    exit_code: ExitCode

    @property
    def succeeded(self) -> bool:
        """Return ``True`` when every executed stage passed."""
        return self.exit_code is ExitCode.OK

    def stages(self) -> list[HookStage]:
        """Return the stages that actually ran, in order."""
        return [stage for stage, _ in self.results]

    def result_for(self, stage: HookStage) -> StageResult | None:
        """Return the result recorded for *stage*, if it ran."""
        for candidate, result in self.results:
            if candidate is stage:
                return result
        return None


__all__ = [
    "HOOK_POLICY",
    "HookReport",
    "HookStage",
    "StageResult",
    "StageStatus",
]
