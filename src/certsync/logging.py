"""Structured operation logging for certsync.

Every CLI operation is recorded twice:

* ``operations.jsonl`` receives one JSON document per operation containing the
  command, its arguments, the individual steps and the final result.
* ``certsync.log`` receives a human readable line per step/result through the
  standard library ``logging`` machinery (rotated by size).

Logging is best-effort. When the log directory cannot be created, or a write
fails, the logger disables itself and the operation carries on; a renewal must
never fail because its audit log is unavailable.
"""
from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from . import __version__

OPERATIONS_LOG_NAME = "operations.jsonl"
HUMAN_LOG_NAME = "certsync.log"
HUMAN_LOG_MAX_BYTES = 1024 * 1024
HUMAN_LOG_BACKUPS = 5


def _timestamp() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="seconds").replace("+00:00", "Z")


def _sanitize(value: object) -> object:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Mapping):
        return {str(key): _sanitize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize(item) for item in value]
    return str(value)


class OperationScope:
    """Collects steps and the final result for a single operation."""

    def __init__(
        self,
        logger: StructuredLogger,
        command: str,
        args: Mapping[str, object] | None,
        target: Mapping[str, object] | None,
    ) -> None:
        """Initialise the scope for *command*."""
        self._logger = logger
        self.command = command
        self.args = dict(args or {})
        self.target = dict(target or {})
        self.steps: list[dict[str, object]] = []
        self.result: dict[str, object] | None = None
        self._started = time.perf_counter()
        self._started_at = _timestamp()

    def add_step(
        self,
        name: str,
        *,
        status: str = "success",
        detail: str | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Record an intermediate step of the operation."""
        step: dict[str, object] = {"name": name, "status": status}
        if detail is not None:
            step["detail"] = detail
        if context:
            step["context"] = _sanitize(context)
        self.steps.append(step)
        self._logger._log_human(
            logging.WARNING if status in {"failed", "error"} else logging.INFO,
            f"{self.command}: {name} [{status}]" + (f" {detail}" if detail else ""),
        )

    def success(
        self,
        message: str,
        *,
        changed: int = 0,
        warnings: Sequence[str] | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as successful."""
        self._set_result(
            "success",
            message,
            changed=changed,
            warnings=warnings,
            errors=None,
            context=context,
            rc=0,
        )

    def warning(
        self,
        message: str,
        *,
        warnings: Sequence[str] | None = None,
        errors: Sequence[str] | None = None,
        changed: int = 0,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as completed with warnings."""
        self._set_result(
            "warning",
            message,
            changed=changed,
            warnings=warnings,
            errors=errors,
            context=context,
            rc=0,
        )

    def error(
        self,
        message: str,
        *,
        errors: Sequence[str] | None = None,
        rc: int = 1,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as failed with exit code *rc*."""
        self._set_result(
            "error",
            message,
            changed=0,
            warnings=None,
            errors=errors or [message],
            context=context,
            rc=rc,
        )

    def _set_result(
        self,
        status: str,
        message: str,
        *,
        changed: int,
        warnings: Sequence[str] | None,
        errors: Sequence[str] | None,
        context: Mapping[str, object] | None,
        rc: int,
    ) -> None:
        self.result = {
            "status": status,
            "message": message,
            "changed": changed,
            "warnings": list(warnings or []),
            "errors": list(errors or []),
            "rc": rc,
            "context": _sanitize(dict(context or {})),
        }

    def to_record(self) -> dict[str, object]:
        """Return the JSON document describing this operation."""
        return {
            "timestamp": self._started_at,
            "command": self.command,
            "args": _sanitize(self.args),
            "target": _sanitize(self.target),
            "context": {"certsync_version": __version__},
            "steps": self.steps,
            "duration_ms": int((time.perf_counter() - self._started) * 1000),
            "result": self.result,
        }


class StructuredLogger:
    """Write operation records to ``operations.jsonl`` and a human log."""

    def __init__(self, log_dir: Path) -> None:
        """Prepare *log_dir*; disable logging when it is unusable."""
        self.log_dir = log_dir
        self._operations_log_path = log_dir / OPERATIONS_LOG_NAME
        self._human_log_path = log_dir / HUMAN_LOG_NAME
        self._enabled = True
        self._human: logging.Logger | None = None
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            self._enabled = False
            return
        self._human = self._build_human_logger()

    @contextmanager
    def operation(
        self,
        command: str,
        *,
        args: Mapping[str, object] | None = None,
        target: Mapping[str, object] | None = None,
    ) -> Iterator[OperationScope]:
        """Yield an :class:`OperationScope` and persist it on exit."""
        scope = OperationScope(self, command, args, target)
        self._log_human(logging.INFO, f"{command}: started")
        try:
            yield scope
        except BaseException as exc:
            if scope.result is None:
                scope.error(f"Unhandled error: {exc}", errors=[repr(exc)])
            raise
        finally:
            if scope.result is None:
                scope.success("Completed.")
            self._write_record(scope)

    def close(self) -> None:
        """Detach and close the human log handler.

        ``operations.jsonl`` is opened per record and keeps working afterwards.
        """
        human, self._human = self._human, None
        if human is None:
            return
        for handler in list(human.handlers):
            human.removeHandler(handler)
            handler.close()

    # ------------------------------------------------------------------
    def _build_human_logger(self) -> logging.Logger | None:
        human = logging.getLogger(f"certsync.operations.{id(self)}")
        human.propagate = False
        human.setLevel(logging.INFO)
        try:
            handler = RotatingFileHandler(
                self._human_log_path,
                maxBytes=HUMAN_LOG_MAX_BYTES,
                backupCount=HUMAN_LOG_BACKUPS,
                encoding="utf-8",
            )
        except OSError:
            self._enabled = False
            return None
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
        # Logger names derive from id(); drop handlers left by a collected instance.
        for stale in list(human.handlers):
            human.removeHandler(stale)
            stale.close()
        human.addHandler(handler)
        return human

    def _log_human(self, level: int, message: str) -> None:
        if not self._enabled or self._human is None:
            return
        self._human.log(level, message)

    def _write_record(self, scope: OperationScope) -> None:
        if not self._enabled:
            return
        result = scope.result or {}
        self._log_human(
            logging.ERROR if result.get("status") == "error" else logging.INFO,
            f"{scope.command}: {result.get('status')} rc={result.get('rc')} "
            f"{result.get('message')}",
        )
        try:
            with self._operations_log_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(scope.to_record(), sort_keys=True) + "\n")
        except OSError:
            self._enabled = False


__all__ = ["OperationScope", "StructuredLogger"]
