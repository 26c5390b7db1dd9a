"""Configuration loader for certsync.

Configuration values are read from several sources, later sources winning:

1. Built-in defaults.
2. ``/etc/certsync/config.yml`` (or an override path).
3. Environment variables prefixed with ``CERTSYNC_``.
4. Explicit overrides supplied programmatically.

Environment keys use double underscores to express nesting, e.g.::

    export CERTSYNC_CONSOLE__SERVICE=webmin
    export CERTSYNC_RENEWAL__LOG_FILE=/var/log/certsync/renew.log

Values are coerced via PyYAML's ``safe_load`` so that booleans, numbers and
lists are parsed naturally. The resulting configuration is exposed as
immutable ``dataclasses``.

Hook-mode invocations are started by certbot, which controls the process
environment. Anything the hook must agree on with the driver is therefore
passed on the command line (``--config-file``), not through ``CERTSYNC_``
variables.
"""
from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import cast

try:  # PyYAML is a runtime dependency (declared in pyproject.toml).
    import yaml
except Exception as exc:  # pragma: no cover - import failure covered in tests
    raise RuntimeError(
        "PyYAML is required to load certsync configuration. Install with "
        "`pip install certsync` or ensure PyYAML>=6.0 is available."
    ) from exc


ENV_PREFIX = "CERTSYNC_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}


class ConfigError(RuntimeError):
    """Raised when configuration parsing fails."""


@dataclass(frozen=True)
class CertStoreConfig:
    """Location of the certbot certificate store."""

    root: Path = Path("/etc/letsencrypt")
    live_dir: Path = Path("/etc/letsencrypt/live")

    def domain_dir(self, domain: str) -> Path:
        """Return the live directory holding *domain*'s current certificate."""
        return self.live_dir / domain

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"root": str(self.root), "live_dir": str(self.live_dir)}


@dataclass(frozen=True)
class ConsoleConfig:
    """Admin console bundle location and service unit."""

    bundle: Path = Path("/etc/webmin/miniserv.pem")
    service: str = "webmin"
    commit_dir: Path = Path("/etc/webmin")

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "bundle": str(self.bundle),
            "service": self.service,
            "commit_dir": str(self.commit_dir),
        }


@dataclass(frozen=True)
class CommitterConfig:
    """Git binary and the identity used for automated commits."""

    git_bin: str = "git"
    name: str = "certsync"
    email: str = "certsync@localhost"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"git_bin": self.git_bin, "name": self.name, "email": self.email}


@dataclass(frozen=True)
class RenewalConfig:
    """Settings for driving the external renewal client."""

    certbot_bin: str = "certbot"
    log_file: Path = Path("/var/log/certsync/renew.log")
    extra_args: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "certbot_bin": self.certbot_bin,
            "log_file": str(self.log_file),
            "extra_args": list(self.extra_args),
        }


@dataclass(frozen=True)
class SystemdConfig:
    """Systemd integration configuration values."""

    systemctl_bin: str = "systemctl"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"systemctl_bin": self.systemctl_bin}


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration values for certsync."""

    config_file: Path
    logs_dir: Path
    cert_store: CertStoreConfig
    console: ConsoleConfig
    committer: CommitterConfig
    renewal: RenewalConfig
    systemd: SystemdConfig

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the config."""
        return {
            "config_file": str(self.config_file),
            "logs_dir": str(self.logs_dir),
            "cert_store": self.cert_store.to_dict(),
            "console": self.console.to_dict(),
            "committer": self.committer.to_dict(),
            "renewal": self.renewal.to_dict(),
            "systemd": self.systemd.to_dict(),
        }


DEFAULTS: dict[str, object] = {
    "config_file": "/etc/certsync/config.yml",
    "logs_dir": "/var/log/certsync",
    "cert_store": {
        "root": "/etc/letsencrypt",
        "live_dir": None,  # derived from root when absent
    },
    "console": {
        "bundle": "/etc/webmin/miniserv.pem",
        "service": "webmin",
        "commit_dir": None,  # derived from the bundle's parent when absent
    },
    "committer": {
        "git_bin": "git",
        "name": "certsync",
        "email": "certsync@localhost",
    },
    "renewal": {
        "certbot_bin": "certbot",
        "log_file": "/var/log/certsync/renew.log",
        "extra_args": [],
    },
    "systemd": {
        "systemctl_bin": "systemctl",
    },
}

ALLOWED_TOP_LEVEL_KEYS = set(DEFAULTS.keys())
ALLOWED_SECTION_KEYS: dict[str, set[str]] = {
    "cert_store": {"root", "live_dir"},
    "console": {"bundle", "service", "commit_dir"},
    "committer": {"git_bin", "name", "email"},
    "renewal": {"certbot_bin", "log_file", "extra_args"},
    "systemd": {"systemctl_bin"},
}


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> AppConfig:
    """Load and merge configuration sources into an :class:`AppConfig`."""
    merged: dict[str, object] = _deep_copy(DEFAULTS)
    resolved_env = dict(os.environ if env is None else env)

    config_default = _expect_str(merged["config_file"], "config_file")
    config_path = _determine_config_path(config_default, config_file, resolved_env)

    file_values = _load_yaml_file(config_path)
    if file_values:
        _deep_merge(merged, file_values)

    env_values = _build_env_overrides(resolved_env)
    if env_values:
        _deep_merge(merged, env_values)

    if overrides:
        _deep_merge(merged, dict(overrides))

    merged["config_file"] = str(config_path)

    _validate_structure(merged)

    return _build_app_config(merged)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override)
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR])
    return Path(default_path)


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML owns detailed error
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _validate_structure(raw: Mapping[str, object]) -> None:
    unknown_keys = set(raw.keys()) - ALLOWED_TOP_LEVEL_KEYS
    if unknown_keys:
        joined = ", ".join(sorted(unknown_keys))
        raise ConfigError(f"Unknown configuration keys: {joined}.")

    for section, allowed in ALLOWED_SECTION_KEYS.items():
        section_map = _as_dict(raw.get(section), section)
        unknown = set(section_map.keys()) - allowed
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Unknown {section} configuration keys: {joined}.")

    service = _as_dict(raw.get("console"), "console").get("service")
    if service is not None and not isinstance(service, str):
        raise ConfigError("console.service must be a string.")

    extra_args = _as_dict(raw.get("renewal"), "renewal").get("extra_args")
    if extra_args is not None:
        for index, item in enumerate(_as_sequence(extra_args, "renewal.extra_args")):
            if not isinstance(item, (str, int, float)) or isinstance(item, bool):
                raise ConfigError(
                    f"renewal.extra_args[{index}] must be a string. Got {item!r}."
                )


def _build_app_config(raw: Mapping[str, object]) -> AppConfig:
    config_file = _to_path(raw.get("config_file"))
    logs_dir = _to_path(raw.get("logs_dir"))

    store_mapping = _as_dict(raw.get("cert_store"), "cert_store")
    store_root = _to_path(store_mapping.get("root", "/etc/letsencrypt"))
    live_value = store_mapping.get("live_dir")
    cert_store = CertStoreConfig(
        root=store_root,
        live_dir=_to_path(live_value) if live_value else store_root / "live",
    )

    console_mapping = _as_dict(raw.get("console"), "console")
    bundle = _to_path(console_mapping.get("bundle", "/etc/webmin/miniserv.pem"))
    commit_value = console_mapping.get("commit_dir")
    console = ConsoleConfig(
        bundle=bundle,
        service=str(console_mapping.get("service") or "").strip(),
        commit_dir=_to_path(commit_value) if commit_value else bundle.parent,
    )

    committer_mapping = _as_dict(raw.get("committer"), "committer")
    committer = CommitterConfig(
        git_bin=_expect_non_empty(committer_mapping.get("git_bin"), "committer.git_bin", "git"),
        name=_expect_non_empty(committer_mapping.get("name"), "committer.name", "certsync"),
        email=_expect_non_empty(
            committer_mapping.get("email"), "committer.email", "certsync@localhost"
        ),
    )

    renewal_mapping = _as_dict(raw.get("renewal"), "renewal")
    extra_raw = renewal_mapping.get("extra_args") or []
    renewal = RenewalConfig(
        certbot_bin=_expect_non_empty(
            renewal_mapping.get("certbot_bin"), "renewal.certbot_bin", "certbot"
        ),
        log_file=_to_path(renewal_mapping.get("log_file", "/var/log/certsync/renew.log")),
        extra_args=tuple(str(item) for item in _as_sequence(extra_raw, "renewal.extra_args")),
    )

    systemd_mapping = _as_dict(raw.get("systemd"), "systemd")
    systemd = SystemdConfig(
        systemctl_bin=_expect_non_empty(
            systemd_mapping.get("systemctl_bin"), "systemd.systemctl_bin", "systemctl"
        ),
    )

    return AppConfig(
        config_file=config_file,
        logs_dir=logs_dir,
        cert_store=cert_store,
        console=console,
        committer=committer,
        renewal=renewal,
        systemd=systemd,
    )


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment.lower() for segment in suffix.split("__") if segment]
        if not path_segments:
            continue
        _assign_nested(overrides, path_segments, _coerce_value(value))
    return overrides


def _assign_nested(tree: MutableMapping[str, object], path: list[str], value: object) -> None:
    current: MutableMapping[str, object] = tree
    for segment in path[:-1]:
        existing = current.get(segment)
        if existing is None:
            new_child: MutableMapping[str, object] = {}
            current[segment] = new_child
            current = new_child
            continue
        if isinstance(existing, MutableMapping):
            current = cast(MutableMapping[str, object], existing)
            continue
        raise ConfigError(
            "Environment overrides conflict with existing scalar value at "
            f"{'.'.join(path)}"
        )
    current[path[-1]] = value


def _deep_merge(target: MutableMapping[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        existing = target.get(key)
        if isinstance(existing, MutableMapping) and isinstance(value, Mapping):
            _deep_merge(existing, _as_dict(value, f"merge.{key}"))
            continue
        target[key] = value


def _deep_copy(source: Mapping[str, object]) -> dict[str, object]:
    result: dict[str, object] = {}
    for key, value in source.items():
        if isinstance(value, Mapping):
            result[key] = _deep_copy(_as_dict(value, f"copy.{key}"))
        elif isinstance(value, list):
            result[key] = list(value)
        else:
            result[key] = value
    return result


def _as_sequence(value: object, label: str) -> Sequence[object]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ConfigError(f"Expected {label} to be a sequence. Got {type(value).__name__}.")
    return value


def _coerce_value(raw: str) -> object:
    raw = raw.strip()
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:  # pragma: no cover - treat as string if parsing fails
        return raw
    return parsed


def _to_path(value: object) -> Path:
    if value is None:
        raise ConfigError("Expected a filesystem path, received None.")
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise ConfigError(f"Cannot convert value {value!r} to Path.")


def _expect_str(value: object, key: str) -> str:
    if isinstance(value, str):
        return value
    raise ConfigError(f"Expected {key} to resolve to a string. Got {value!r}.")


def _expect_non_empty(value: object | None, label: str, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str):
        raise ConfigError(f"Expected {label} to be a string. Got {type(value).__name__}.")
    text = value.strip()
    if not text:
        raise ConfigError(f"{label} must be a non-empty string.")
    return text


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "AppConfig",
    "CertStoreConfig",
    "CommitterConfig",
    "ConfigError",
    "ConsoleConfig",
    "RenewalConfig",
    "SystemdConfig",
    "load_config",
]
