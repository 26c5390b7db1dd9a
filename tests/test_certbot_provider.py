"""Tests for the certbot provider."""
from __future__ import annotations

import io
import sys
from pathlib import Path

import pytest

from certsync.providers.certbot import CertbotError, CertbotProvider


def test_renew_command_is_non_interactive() -> None:
    """The renew argv carries the hook and any configured extras."""
    provider = CertbotProvider(certbot_bin="/usr/bin/certbot", extra_args=("--staging",))

    assert provider.renew_command("certsync -k") == [
        "/usr/bin/certbot",
        "renew",
        "--non-interactive",
        "--agree-tos",
        "--text",
        "-v",
        "--deploy-hook",
        "certsync -k",
        "--staging",
    ]
    assert "--post-hook" not in provider.renew_command("certsync -k")


def test_output_is_teed_to_stream_and_log(tmp_path: Path) -> None:
    """Combined stdout/stderr reach both the console stream and the log."""
    stream = io.StringIO()
    provider = CertbotProvider(stream=stream)
    log_path = tmp_path / "logs" / "renew.log"
    script = "import sys; print('renewing'); print('oops', file=sys.stderr); sys.exit(2)"

    returncode = provider._run_tee([sys.executable, "-c", script], log_path)

    assert returncode == 2
    log = log_path.read_text(encoding="utf-8")
    assert "renewing\n" in log
    assert "oops\n" in log
    assert stream.getvalue() == log


def test_log_is_overwritten(tmp_path: Path) -> None:
    """Each run starts a fresh log."""
    log_path = tmp_path / "renew.log"
    log_path.write_text("stale hook failure\n", encoding="utf-8")
    provider = CertbotProvider(stream=io.StringIO())

    provider._run_tee([sys.executable, "-c", "print('fresh')"], log_path)

    assert log_path.read_text(encoding="utf-8") == "fresh\n"


def test_renew_runs_configured_binary(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    """renew() hands the full command line to the tee runner."""
    captured: list[list[str]] = []

    def fake_tee(self: CertbotProvider, args: list[str], log_path: Path) -> int:
        captured.append(list(args))
        return 0

    monkeypatch.setattr(CertbotProvider, "_run_tee", fake_tee)

    assert CertbotProvider().renew("hook", tmp_path / "renew.log") == 0
    assert captured[0][:2] == ["certbot", "renew"]


def test_missing_certbot_raises(tmp_path: Path) -> None:
    """A missing binary is reported as CertbotError."""
    provider = CertbotProvider(certbot_bin=str(tmp_path / "no-certbot"), stream=io.StringIO())

    with pytest.raises(CertbotError, match="not found"):
        provider.renew("certsync -k", tmp_path / "renew.log")


def test_unwritable_log_raises(tmp_path: Path) -> None:
    """A log path that cannot be opened is reported before certbot starts."""
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    provider = CertbotProvider(stream=io.StringIO())

    with pytest.raises(CertbotError, match="Cannot open renewal log"):
        provider.renew("certsync -k", blocker / "renew.log")
