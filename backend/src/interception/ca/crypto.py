"""PEM helpers shared by the root store, the override loader and the leaf issuer."""

import hashlib
from dataclasses import dataclass
from datetime import datetime

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

# X.509 caps commonName at 64 bytes (RFC 5280 ub-common-name)
MAX_COMMON_NAME_BYTES = 64


class CryptoError(Exception):
    """Raised when a PEM blob cannot be decoded."""

    pass


@dataclass(frozen=True)
class CertificateRecord:
    """Key/certificate pair handed to the TLS layer for one hostname."""

    private_key_pem: str
    certificate_pem: str


def private_key_to_pem(key: PrivateKeyTypes) -> str:
    """Serialize a private key as unencrypted PKCS#8 PEM."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


def certificate_to_pem(cert: x509.Certificate) -> str:
    return cert.public_bytes(serialization.Encoding.PEM).decode("utf-8")


def compute_thumbprint(cert_pem: str) -> str:
    """Compute the lowercase hex SHA-256 thumbprint of a PEM certificate.

    Raises:
        CryptoError: If the PEM cannot be parsed.
    """
    try:
        cert = x509.load_pem_x509_certificate(cert_pem.encode("utf-8"))
    except ValueError as e:
        raise CryptoError(f"Failed to compute certificate thumbprint: {e}") from e
    return hashlib.sha256(cert.public_bytes(serialization.Encoding.DER)).hexdigest()


def shift_years(moment: datetime, years: int) -> datetime:
    """Move a timestamp by whole calendar years, mapping Feb 29 to Feb 28."""
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, day=28)


def fit_common_name(value: str) -> str:
    """Truncate a commonName to the X.509 length limit without splitting a character."""
    encoded = value.encode("utf-8")
    if len(encoded) <= MAX_COMMON_NAME_BYTES:
        return value
    return encoded[:MAX_COMMON_NAME_BYTES].decode("utf-8", "ignore")
