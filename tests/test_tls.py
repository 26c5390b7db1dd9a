"""Unit tests for TLS helper utilities."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from certsync.tls import CertificateSummary, summarize_leaf


def _self_signed_pem(
    *,
    name: x509.Name,
    valid_to: datetime,
) -> bytes:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(valid_to - timedelta(days=90))
        .not_valid_after(valid_to)
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.PEM)


def test_summarize_leaf_reads_first_certificate() -> None:
    """The leaf is the first certificate of the chain."""
    valid_to = datetime(2031, 1, 2, 3, 4, 5, tzinfo=UTC)
    leaf = _self_signed_pem(
        name=x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "leaf.example")]),
        valid_to=valid_to,
    )
    issuer = _self_signed_pem(
        name=x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "R3")]),
        valid_to=valid_to + timedelta(days=365),
    )

    summary = summarize_leaf(leaf + issuer)

    assert summary == CertificateSummary(subject="leaf.example", not_valid_after=valid_to)
    assert summary.to_dict() == {
        "subject": "leaf.example",
        "not_valid_after": "2031-01-02T03:04:05+00:00",
    }


def test_summarize_leaf_without_common_name() -> None:
    """Certificates without a CN fall back to the RFC 4514 subject."""
    name = x509.Name([x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Example Org")])
    pem = _self_signed_pem(name=name, valid_to=datetime(2030, 6, 1, tzinfo=UTC))

    assert summarize_leaf(pem).subject == "O=Example Org"


@pytest.mark.parametrize(
    "payload",
    [b"", b"not a certificate", b"-----BEGIN CERTIFICATE-----\nleaf\n-----END CERTIFICATE-----\n"],
)
def test_summarize_leaf_rejects_garbage(payload: bytes) -> None:
    """Unreadable input raises ValueError."""
    with pytest.raises(ValueError):
        summarize_leaf(payload)
