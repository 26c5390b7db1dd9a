"""Tests for the web server reloader."""
from __future__ import annotations

import pytest

from certsync.providers.systemd import SystemdError
from certsync.stages import StageStatus
from certsync.webserver import WebServerReloader


class FakeSystemd:
    """Answer ``is-active`` from a set and optionally fail reloads."""

    def __init__(
        self,
        active: set[str] | None = None,
        reload_error: str | None = None,
        query_error: str | None = None,
    ) -> None:
        self.active = active or set()
        self.reload_error = reload_error
        self.query_error = query_error
        self.calls: list[tuple[str, str]] = []

    def is_active(self, unit: str) -> bool:
        self.calls.append(("is-active", unit))
        if self.query_error:
            raise SystemdError(self.query_error)
        return unit in self.active

    def reload(self, unit: str) -> None:
        self.calls.append(("reload", unit))
        if self.reload_error:
            raise SystemdError(self.reload_error)


def _reloader(systemd: FakeSystemd) -> WebServerReloader:
    return WebServerReloader(systemd=systemd)  # type: ignore[arg-type]


@pytest.mark.parametrize("service", ["", None])
def test_unset_service_is_skipped(service: str | None) -> None:
    """No web server means no systemctl calls at all."""
    systemd = FakeSystemd(active={"nginx"})

    result = _reloader(systemd).reload(service)

    assert result.status is StageStatus.SKIPPED
    assert systemd.calls == []


def test_inactive_service_is_failure() -> None:
    """A named but stopped web server is a hard failure and is not reloaded."""
    systemd = FakeSystemd(active=set())

    result = _reloader(systemd).reload("nginx")

    assert result.status is StageStatus.FAILED
    assert result.message == "Web server nginx is not active; cannot reload."
    assert systemd.calls == [("is-active", "nginx")]


def test_active_service_is_reloaded() -> None:
    """An active service is reloaded exactly once."""
    systemd = FakeSystemd(active={"apache2"})

    result = _reloader(systemd).reload("apache2")

    assert result.status is StageStatus.SUCCESS
    assert systemd.calls == [("is-active", "apache2"), ("reload", "apache2")]
    assert result.data == {"service": "apache2"}


def test_reload_failure_is_forwarded() -> None:
    """The reload command's error becomes the failure message."""
    systemd = FakeSystemd(
        active={"nginx"},
        reload_error="systemctl reload failed (exit 1): Job for nginx.service failed.",
    )

    result = _reloader(systemd).reload("nginx")

    assert result.status is StageStatus.FAILED
    assert "Job for nginx.service failed." in result.message


def test_missing_systemctl_is_failure() -> None:
    """Being unable to query the service fails the stage."""
    systemd = FakeSystemd(query_error="systemctl not found: [Errno 2]")

    result = _reloader(systemd).reload("nginx")

    assert result.status is StageStatus.FAILED
    assert systemd.calls == [("is-active", "nginx")]
