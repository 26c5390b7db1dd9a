"""Reload the web server that serves the renewed certificate."""
from __future__ import annotations

from dataclasses import dataclass

from .providers.systemd import SystemdError, SystemdProvider
from .stages import StageResult


@dataclass(slots=True)
class WebServerReloader:
    """Signal a named service unit to reload its configuration.

    Unlike the admin console, a web server that was named explicitly but is
    not running is a misconfiguration and therefore a failure.
    """

    systemd: SystemdProvider

    def reload(self, service: str | None) -> StageResult:
        """Reload *service* when it is set and active."""
        if not service:
            return StageResult.skipped("No web server configured; skipping reload.")
        try:
            if not self.systemd.is_active(service):
                return StageResult.failed(
                    f"Web server {service} is not active; cannot reload.", service=service
                )
            self.systemd.reload(service)
        except SystemdError as exc:
            return StageResult.failed(str(exc), service=service)
        return StageResult.success(f"Reloaded {service}.", service=service)


__all__ = ["WebServerReloader"]
