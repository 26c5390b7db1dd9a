"""Systemd provider for querying and signalling service units."""
from __future__ import annotations

import subprocess
from collections.abc import Sequence
from dataclasses import dataclass


class SystemdError(RuntimeError):
    """Raised when systemd operations fail."""


@dataclass(slots=True)
class SystemdProvider:
    """Thin wrapper around ``systemctl`` for the units certsync touches."""

    systemctl_bin: str = "systemctl"

    def is_active(self, unit: str) -> bool:
        """Return ``True`` when ``systemctl is-active`` reports *unit* as active."""
        result = self._systemctl("is-active", unit, check=False, quiet=True)
        return result.returncode == 0

    def restart(self, unit: str) -> subprocess.CompletedProcess[str]:
        """Restart *unit*."""
        return self._systemctl("restart", unit)

    def reload(self, unit: str) -> subprocess.CompletedProcess[str]:
        """Ask *unit* to reload its configuration."""
        return self._systemctl("reload", unit)

    # ------------------------------------------------------------------
    def _systemctl(
        self,
        command: str,
        unit: str,
        *,
        check: bool = True,
        quiet: bool = False,
    ) -> subprocess.CompletedProcess[str]:
        args: list[str] = [self.systemctl_bin, command]
        if quiet:
            args.append("--quiet")
        args.append(unit)
        return self._run_command(args, check=check, error_prefix=f"{self.systemctl_bin} {command}")

    def _run_command(
        self,
        args: Sequence[str],
        *,
        check: bool,
        error_prefix: str,
    ) -> subprocess.CompletedProcess[str]:
        try:
            result = subprocess.run(  # noqa: S603, S607
                list(args),
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise SystemdError(f"{args[0]} not found: {exc}") from exc
        if check and result.returncode != 0:
            stdout = getattr(result, "stdout", "") or ""
            stderr = getattr(result, "stderr", "") or ""
            message = stderr.strip() or stdout.strip() or "no output"
            raise SystemdError(f"{error_prefix} failed (exit {result.returncode}): {message}")
        return result


__all__ = ["SystemdProvider", "SystemdError"]
