"""Provider interfaces for certsync."""
from __future__ import annotations

from .certbot import CertbotError, CertbotProvider
from .git import GitError, GitProvider
from .systemd import SystemdError, SystemdProvider

__all__ = [
    "CertbotError",
    "CertbotProvider",
    "GitError",
    "GitProvider",
    "SystemdError",
    "SystemdProvider",
]
