"""Renewal driver: run certbot and classify the outcome from its log.

certbot does not fold the deploy hook's exit status into its own; a failing
hook only shows up in its output, either as ``Hook 'deploy-hook' reported error
code N`` (current certbot) or ``Hook command "..." returned error code N``
(older releases). The driver therefore keeps both signals and requires each
to be clean.
"""
from __future__ import annotations

import re
import shlex
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from .providers.certbot import CertbotError, CertbotProvider

HOOK_ERROR_PATTERN = re.compile(
    r'hook(?: command "(?P<command>.*)"'
    r"| '(?P<name>[\w-]+)') (?:returned|reported) error code (?P<code>-?\d+)",
    re.IGNORECASE,
)
HOOK_FLAG = "-k"


@dataclass(frozen=True)
class RenewalOutcome:
    """What certbot reported and what its log revealed."""

    returncode: int
    hook_errors: tuple[str, ...]
    log_path: Path

    @property
    def client_succeeded(self) -> bool:
        """Return ``True`` when certbot itself exited cleanly."""
        return self.returncode == 0

    @property
    def hooks_succeeded(self) -> bool:
        """Return ``True`` when no hook failure was logged."""
        return not self.hook_errors

    @property
    def succeeded(self) -> bool:
        """Return ``True`` only when both signals are clean."""
        return self.client_succeeded and self.hooks_succeeded


def scan_hook_errors(lines: Sequence[str]) -> tuple[str, ...]:
    """Return every log line reporting a failed hook command."""
    return tuple(line.strip() for line in lines if HOOK_ERROR_PATTERN.search(line))


def read_hook_errors(log_path: Path) -> tuple[str, ...]:
    """Scan *log_path* for hook failures."""
    try:
        text = log_path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise CertbotError(f"Cannot read renewal log {log_path}: {exc}") from exc
    return scan_hook_errors(text.splitlines())


def hook_arguments(
    domain: str | None,
    webserver: str | None,
    config_file: Path | None = None,
) -> list[str]:
    """Return the arguments that put a re-entered certsync into hook mode."""
    args = [HOOK_FLAG]
    if domain is not None:
        args.extend(["-d", domain])
    if webserver is not None:
        args.extend(["-w", webserver])
    if config_file is not None:
        args.extend(["--config-file", str(config_file)])
    return args


def program_command(argv0: str | None = None) -> list[str]:
    """Return an absolute command line that re-runs this program."""
    raw = argv0 if argv0 is not None else sys.argv[0]
    path = Path(raw)
    if path.name == "__main__.py" or not path.is_file():
        return [str(Path(sys.executable).resolve()), "-m", "certsync"]
    return [str(path.resolve())]


@dataclass(slots=True)
class RenewalDriver:
    """Renew due certificates with certsync wired in as the deploy hook."""

    certbot: CertbotProvider
    log_path: Path
    program: Sequence[str]

    def deploy_hook(self, hook_args: Sequence[str]) -> str:
        """Return the shell command certbot runs for each renewed certificate."""
        return shlex.join([*self.program, *hook_args])

    def renew(self, hook_args: Sequence[str]) -> RenewalOutcome:
        """Run certbot and return both its status and the logged hook failures."""
        returncode = self.certbot.renew(self.deploy_hook(hook_args), self.log_path)
        return RenewalOutcome(
            returncode=returncode,
            hook_errors=read_hook_errors(self.log_path),
            log_path=self.log_path,
        )


__all__ = [
    "HOOK_ERROR_PATTERN",
    "RenewalDriver",
    "RenewalOutcome",
    "hook_arguments",
    "program_command",
    "read_hook_errors",
    "scan_hook_errors",
]
