"""X.509 leaf certificate generation for intercepted hostnames.

Leaves reuse the root's RSA key pair instead of generating one per host;
only the certificate is built and signed, so issuance costs one signature.
"""

import hashlib
import logging
import time
from datetime import datetime, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import NameOID
from opentelemetry import trace

from interception.ca.crypto import CertificateRecord, certificate_to_pem, fit_common_name, shift_years
from interception.ca.key_manager import CAKeyPair
from interception.metrics import interception_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# Serial numbers must be positive and fit in 20 DER bytes
_SERIAL_MASK = (1 << 159) - 1


class CertificateGenerationError(Exception):
    """Raised when leaf certificate generation fails."""

    pass


def hostname_serial(hostname: str) -> int:
    """Serial number derived from the SHA-1 digest of the hostname (top bit cleared).

    The hostname is hashed as latin-1 bytes; characters outside latin-1 become "?".
    """
    digest = hashlib.sha1(hostname.encode("latin-1", "replace"), usedforsecurity=False).hexdigest()
    return int(digest, 16) & _SERIAL_MASK


def _dns_name(hostname: str) -> str:
    try:
        hostname.encode("ascii")
        return hostname
    except UnicodeEncodeError:
        return hostname.encode("idna").decode("ascii")


def _leaf_subject(hostname: str) -> x509.Name:
    # An empty CN attribute cannot be encoded
    if not hostname:
        return x509.Name([])
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, fit_common_name(hostname))])


class CertificateGenerator:
    """Builds leaf certificates signed by the root CA.

    Certificate attributes:
    - Subject: CN=<hostname> (empty subject for an empty hostname)
    - Issuer: root CA subject
    - Public key: the root's public key
    - Serial: SHA-1 of the hostname
    - Validity: now - 10 years to now + 10 years
    - SubjectAltName: DNS:<hostname> (omitted for an empty hostname)
    """

    VALIDITY_YEARS = 10

    def __init__(self, ca_key_pair: CAKeyPair) -> None:
        """Initialize generator with the root key pair.

        Args:
            ca_key_pair: The root's private key and certificate for signing.
        """
        self._ca = ca_key_pair
        self._private_key_pem = ca_key_pair.private_key_pem

    def generate(self, hostname: str) -> CertificateRecord:
        """Generate a leaf certificate for hostname.

        Raises:
            CertificateGenerationError: If the certificate cannot be built or signed.
        """
        with tracer.start_as_current_span("CertificateGenerator.generate") as span:
            span.set_attribute("hostname", hostname)
            start_time = time.time()

            try:
                serial_number = hostname_serial(hostname)
                now = datetime.now(timezone.utc)

                builder = (
                    x509.CertificateBuilder()
                    .subject_name(_leaf_subject(hostname))
                    .issuer_name(self._ca.certificate.subject)
                    .public_key(self._ca.private_key.public_key())
                    .serial_number(serial_number)
                    .not_valid_before(shift_years(now, -self.VALIDITY_YEARS))
                    .not_valid_after(shift_years(now, self.VALIDITY_YEARS))
                )
                if hostname:
                    builder = builder.add_extension(
                        x509.SubjectAlternativeName([x509.DNSName(_dns_name(hostname))]),
                        critical=False,
                    )
                certificate = builder.sign(self._ca.private_key, hashes.SHA256())
            except (ValueError, TypeError) as e:
                logger.error(
                    "certificate_generation_failed",
                    extra={"hostname": hostname, "error": str(e)},
                )
                raise CertificateGenerationError(
                    f"Failed to generate certificate for {hostname!r}: {e}"
                ) from e

            generation_time = time.time() - start_time
            interception_metrics.record_certificate_generated(generation_time)
            span.set_attribute("serial", format(serial_number, "x"))

            logger.info(
                "certificate_generated",
                extra={
                    "hostname": hostname,
                    "serial": format(serial_number, "x"),
                    "duration_seconds": generation_time,
                },
            )

            return CertificateRecord(
                private_key_pem=self._private_key_pem,
                certificate_pem=certificate_to_pem(certificate),
            )
