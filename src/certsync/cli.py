"""Typer-powered command line for ``certsync``.

Without ``-k`` the command drives ``certbot renew`` and wires itself in as the
deploy hook. certbot runs that hook (``certsync -k ...``) for every
certificate it renewed, which propagates the new material.
"""
from __future__ import annotations

import textwrap
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape

from . import __version__
from .committer import RepositoryCommitter
from .config import AppConfig, ConfigError, load_config
from .console import ConsoleInstaller
from .exit_codes import ExitCode
from .hook import HookOrchestrator, record_stage
from .logging import OperationScope, StructuredLogger
from .providers import CertbotError, CertbotProvider, GitProvider, SystemdProvider
from .renewal import RenewalDriver, hook_arguments, program_command
from .stages import HookStage, StageResult, StageStatus
from .webserver import WebServerReloader

# Diagnostics go to stderr; certbot captures the hook's stderr into its log.
console = Console(stderr=True)

DOMAIN_OPTION = typer.Option(
    None,
    "-d",
    "--domain",
    metavar="DOMAIN",
    help="Domain whose certificate is installed for the admin console.",
)
WEBSERVER_OPTION = typer.Option(
    None,
    "-w",
    "--webserver",
    metavar="UNIT",
    help="Systemd unit of the web server to reload after renewal.",
)
HOOK_OPTION = typer.Option(
    False,
    "-k",
    "--hook",
    help="Run as the post-renewal hook instead of driving certbot.",
)
CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    dir_okay=False,
    help="Override the path to certsync's YAML config file.",
)
VERSION_OPTION = typer.Option(
    False,
    "--version",
    "-V",
    help="Show the certsync version and exit.",
)

app = typer.Typer(
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
    help=textwrap.dedent(
        """
        Renew Let's Encrypt certificates and propagate them.

        After certbot renews a certificate, certsync commits the certificate
        store to git, installs the DOMAIN certificate for the admin console
        and reloads the web server UNIT.
        """
    ).strip(),
)


@dataclass
class RuntimeContext:
    """Aggregated runtime objects shared by both modes."""

    config: AppConfig
    logger: StructuredLogger
    systemd_provider: SystemdProvider
    git_provider: GitProvider
    certbot_provider: CertbotProvider
    orchestrator: HookOrchestrator


def _build_runtime(config_file: Path | None) -> RuntimeContext:
    config = load_config(config_file=config_file)
    logger = StructuredLogger(config.logs_dir)
    systemd_provider = SystemdProvider(systemctl_bin=config.systemd.systemctl_bin)
    git_provider = GitProvider(
        git_bin=config.committer.git_bin,
        author_name=config.committer.name,
        author_email=config.committer.email,
    )
    certbot_provider = CertbotProvider(
        certbot_bin=config.renewal.certbot_bin,
        extra_args=config.renewal.extra_args,
    )
    orchestrator = HookOrchestrator(
        config=config,
        committer=RepositoryCommitter(git=git_provider),
        console=ConsoleInstaller(
            cert_store=config.cert_store,
            console=config.console,
            systemd=systemd_provider,
        ),
        webserver=WebServerReloader(systemd=systemd_provider),
    )
    return RuntimeContext(
        config=config,
        logger=logger,
        systemd_provider=systemd_provider,
        git_provider=git_provider,
        certbot_provider=certbot_provider,
        orchestrator=orchestrator,
    )


def _command_error(
    op: OperationScope,
    message: str,
    *,
    rc: int,
    errors: Sequence[str] | None = None,
) -> NoReturn:
    """Emit a structured error and terminate the command."""
    console.print(f"[red]{escape(message)}[/red]")
    op.error(message, errors=list(errors or [message]), rc=int(rc))
    raise typer.Exit(code=int(rc))


def _format_stage_status(status: StageStatus) -> str:
    if status is StageStatus.SUCCESS:
        return "[green]OK[/green]"
    if status is StageStatus.SKIPPED:
        return "[yellow]SKIP[/yellow]"
    return "[red]FAIL[/red]"


@app.command()
def run(
    domain: str | None = DOMAIN_OPTION,
    webserver: str | None = WEBSERVER_OPTION,
    hook: bool = HOOK_OPTION,
    config_file: Path | None = CONFIG_FILE_OPTION,
    version: bool = VERSION_OPTION,
) -> None:
    """Renew certificates, or propagate them when invoked with -k."""
    if version:
        typer.echo(f"certsync {__version__}")
        raise typer.Exit(code=int(ExitCode.OK))

    try:
        runtime = _build_runtime(config_file)
    except ConfigError as exc:
        console.print(f"[red]Configuration error: {escape(str(exc))}[/red]")
        raise typer.Exit(code=int(ExitCode.CONFIG)) from exc

    try:
        if hook:
            _run_hook(runtime, domain, webserver)
        else:
            _run_renewal(runtime, domain, webserver, config_file)
    finally:
        runtime.logger.close()


def _run_hook(runtime: RuntimeContext, domain: str | None, webserver: str | None) -> None:
    with runtime.logger.operation(
        "hook",
        args={"domain": domain, "webserver": webserver},
        target={"kind": "certificate", "domain": domain},
    ) as op:
        record = record_stage(op)

        def _observe(stage: HookStage, result: StageResult) -> None:
            record(stage, result)
            label = _format_stage_status(result.status)
            console.print(f"{label} {stage.value}: {escape(result.message)}")
            for warning in result.warnings:
                console.print(f"[yellow]warning[/yellow] {stage.value}: {escape(warning)}")

        report = runtime.orchestrator.run(domain, webserver, observer=_observe)
        if not report.succeeded:
            stage, result = report.results[-1]
            _command_error(
                op,
                f"Hook halted at {stage.value}: {result.message}",
                rc=report.exit_code,
            )
        changed = sum(1 for _, result in report.results if result.status is StageStatus.SUCCESS)
        op.success("Certificate propagation complete.", changed=changed)


def _run_renewal(
    runtime: RuntimeContext,
    domain: str | None,
    webserver: str | None,
    config_file: Path | None,
) -> None:
    hook_args = hook_arguments(
        domain,
        webserver,
        config_file.resolve() if config_file is not None else None,
    )
    driver = RenewalDriver(
        certbot=runtime.certbot_provider,
        log_path=runtime.config.renewal.log_file,
        program=program_command(),
    )
    with runtime.logger.operation(
        "renew",
        args={"domain": domain, "webserver": webserver},
        target={"kind": "renewal", "log": runtime.config.renewal.log_file},
    ) as op:
        op.add_step("renew.deploy-hook", detail=driver.deploy_hook(hook_args))
        try:
            outcome = driver.renew(hook_args)
        except CertbotError as exc:
            _command_error(op, str(exc), rc=ExitCode.RENEWAL)

        op.add_step(
            "renew.certbot",
            status="success" if outcome.client_succeeded else "failed",
            detail=f"exit {outcome.returncode}",
        )
        op.add_step(
            "renew.log-scan",
            status="success" if outcome.hooks_succeeded else "failed",
            context={"hook_errors": list(outcome.hook_errors)} if outcome.hook_errors else None,
        )
        if not outcome.succeeded:
            errors = list(outcome.hook_errors)
            if not outcome.client_succeeded:
                errors.insert(0, f"certbot exited with status {outcome.returncode}")
            _command_error(
                op,
                f"Certificate renewal failed; see {outcome.log_path}.",
                rc=ExitCode.RENEWAL,
                errors=errors,
            )
        op.success("Certificate renewal complete.", context={"log": outcome.log_path})


def main() -> None:
    """Console script entry point."""
    app()
