"""TLS helpers for describing the certificates certsync propagates."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from cryptography import x509
from cryptography.x509.oid import NameOID


@dataclass(frozen=True)
class CertificateSummary:
    """Identifying details of a leaf certificate."""

    subject: str
    not_valid_after: datetime

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"subject": self.subject, "not_valid_after": self.not_valid_after.isoformat()}


def summarize_leaf(pem_chain: bytes) -> CertificateSummary:
    """Parse the first certificate of a PEM chain.

    Raises ``ValueError`` when *pem_chain* does not start with a readable
    certificate.
    """
    cert = x509.load_pem_x509_certificate(pem_chain)
    names = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    subject = str(names[0].value) if names else cert.subject.rfc4514_string()
    return CertificateSummary(subject=subject, not_valid_after=cert.not_valid_after_utc)


__all__ = ["CertificateSummary", "summarize_leaf"]
