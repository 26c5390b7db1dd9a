"""Certbot provider: run ``certbot renew`` and capture its output."""
from __future__ import annotations

import subprocess
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO


class CertbotError(RuntimeError):
    """Raised when certbot cannot be started or its log cannot be written."""


@dataclass(slots=True)
class CertbotProvider:
    """Invoke certbot non-interactively with a deploy hook.

    certbot runs a deploy hook once per certificate it actually renewed, never
    after a failed or skipped attempt.
    """

    certbot_bin: str = "certbot"
    extra_args: tuple[str, ...] = ()
    stream: TextIO = field(default_factory=lambda: sys.stdout)

    def renew_command(self, deploy_hook: str) -> list[str]:
        """Return the argv used to renew every due certificate."""
        return [
            self.certbot_bin,
            "renew",
            "--non-interactive",
            "--agree-tos",
            "--text",
            "-v",
            "--deploy-hook",
            deploy_hook,
            *self.extra_args,
        ]

    def renew(self, deploy_hook: str, log_path: Path) -> int:
        """Run the renewal, teeing combined output into *log_path*.

        The log is truncated first so that it only ever describes the latest
        run. Returns certbot's exit status.
        """
        return self._run_tee(self.renew_command(deploy_hook), log_path)

    # ------------------------------------------------------------------
    def _run_tee(self, args: Sequence[str], log_path: Path) -> int:
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handle = log_path.open("w", encoding="utf-8")
        except OSError as exc:
            raise CertbotError(f"Cannot open renewal log {log_path}: {exc}") from exc
        with handle:
            try:
                process = subprocess.Popen(  # noqa: S603
                    list(args),
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    text=True,
                    errors="replace",
                )
            except FileNotFoundError as exc:
                raise CertbotError(f"{args[0]} not found: {exc}") from exc
            assert process.stdout is not None
            with process.stdout:
                for line in process.stdout:
                    self.stream.write(line)
                    self.stream.flush()
                    handle.write(line)
            return process.wait()


__all__ = ["CertbotError", "CertbotProvider"]
