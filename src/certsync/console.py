"""Install renewed certificates for the local admin console."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .config import CertStoreConfig, ConsoleConfig
from .providers.systemd import SystemdError, SystemdProvider
from .stages import StageResult, StageStatus
from .tls import summarize_leaf

FULLCHAIN_NAME = "fullchain.pem"
PRIVKEY_NAME = "privkey.pem"
BUNDLE_MODE = 0o600


@dataclass(slots=True)
class ConsoleInstaller:
    """Build the console bundle (full chain then key) and restart the console."""

    cert_store: CertStoreConfig
    console: ConsoleConfig
    systemd: SystemdProvider

    def source_paths(self, domain: str) -> tuple[Path, Path]:
        """Return the full-chain and private-key paths for *domain*."""
        directory = self.cert_store.domain_dir(domain)
        return directory / FULLCHAIN_NAME, directory / PRIVKEY_NAME

    def install(self, domain: str | None) -> StageResult:
        """Install *domain*'s certificate as the console bundle."""
        if not domain:
            return StageResult.skipped("No console domain configured; skipping install.")

        fullchain_path, privkey_path = self.source_paths(domain)
        for path in (fullchain_path, privkey_path):
            if not path.is_file():
                return StageResult.failed(
                    f"Missing certificate file {path} for {domain}.", domain=domain, path=path
                )
        try:
            fullchain = fullchain_path.read_bytes()
            privkey = privkey_path.read_bytes()
        except OSError as exc:
            return StageResult.failed(
                f"Cannot read certificate files for {domain}: {exc}", domain=domain
            )

        bundle = self.console.bundle
        try:
            # A new bundle is created owner-only; an existing one keeps its mode.
            fd = os.open(bundle, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, BUNDLE_MODE)
            with os.fdopen(fd, "wb") as handle:
                handle.write(fullchain + privkey)
        except OSError as exc:
            return StageResult.failed(
                f"Failed to write console bundle {bundle}: {exc}", domain=domain, bundle=bundle
            )

        warnings: list[str] = []
        data: dict[str, object] = {"domain": domain, "bundle": bundle}
        try:
            data["certificate"] = summarize_leaf(fullchain).to_dict()
        except ValueError as exc:
            warnings.append(f"Could not parse {fullchain_path}: {exc}")

        service = self.console.service
        try:
            if not service or not self.systemd.is_active(service):
                message = (
                    f"Installed console bundle {bundle}; console service "
                    f"{service or '(none)'} is not active, restart skipped."
                )
                return StageResult(StageStatus.SUCCESS, message, data, tuple(warnings))
            self.systemd.restart(service)
        except SystemdError as exc:
            return StageResult.failed(
                f"Installed console bundle {bundle} but could not restart {service}: {exc}",
                **data,
            )
        data["restarted"] = service
        return StageResult(
            StageStatus.SUCCESS,
            f"Installed console bundle {bundle} and restarted {service}.",
            data,
            tuple(warnings),
        )


__all__ = ["ConsoleInstaller", "FULLCHAIN_NAME", "PRIVKEY_NAME"]
