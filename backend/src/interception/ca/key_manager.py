"""Root CA key management: load the persisted root or generate and persist a new one.

File layout under the certificate directory:
- root.key / root.crt: 1024-bit era root
- root_2048.key / root_2048.crt: 2048-bit root, used when large keys are
  enabled or when these files already exist from an earlier run

A replacement root in the override directory takes precedence over both.
An existing, parseable key/certificate pair is always reused; files are only
written on the generation path.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, ObjectIdentifier
from opentelemetry import trace

from interception.ca.capability import KeyCapability
from interception.ca.crypto import certificate_to_pem, private_key_to_pem, shift_years
from interception.ca.naming import build_root_common_name, build_root_subject, discover_mac_address
from interception.metrics import interception_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ROOT_KEY_FILENAME = "root.key"
ROOT_CERT_FILENAME = "root.crt"
ROOT_2048_KEY_FILENAME = "root_2048.key"
ROOT_2048_CERT_FILENAME = "root_2048.crt"

# Netscape certificate type: client, server, email, objsign, sslCA, emailCA, objCA
NS_CERT_TYPE_OID = ObjectIdentifier("2.16.840.1.113730.1.1")
NS_CERT_TYPE_ALL = b"\x03\x02\x00\xf7"


class KeyManagerError(Exception):
    """Raised when the root CA cannot be loaded or persisted."""

    pass


@dataclass(frozen=True)
class RootPaths:
    """Where the root key and certificate are read from and written to."""

    key_path: Path
    cert_path: Path


@dataclass
class CAKeyPair:
    """Holds the root CA private key and certificate."""

    private_key: rsa.RSAPrivateKey
    certificate: x509.Certificate
    storage_type: str  # "file", "custom", or "generated"

    @property
    def certificate_pem(self) -> str:
        return certificate_to_pem(self.certificate)

    @property
    def private_key_pem(self) -> str:
        return private_key_to_pem(self.private_key)


def resolve_root_paths(cert_dir: Path, capability: KeyCapability) -> RootPaths:
    """Pick the root file pair for this process.

    The 2048-bit pair is used when large keys are enabled, or when both of its
    files already exist so a previously trusted root survives a restart without the flag.
    """
    large_key = cert_dir / ROOT_2048_KEY_FILENAME
    large_cert = cert_dir / ROOT_2048_CERT_FILENAME
    if capability.enable_large_key or (large_key.exists() and large_cert.exists()):
        return RootPaths(key_path=large_key, cert_path=large_cert)
    return RootPaths(key_path=cert_dir / ROOT_KEY_FILENAME, cert_path=cert_dir / ROOT_CERT_FILENAME)


class KeyManager:
    """Loads or generates the root CA exactly once.

    Storage priority:
    1. Custom root from the override directory (see redirect())
    2. Existing files at the resolved paths
    3. Generate new (written to the resolved paths)
    """

    DEFAULT_CA_VALIDITY_YEARS = 10
    ROOT_SERIAL_NUMBER = 1
    PUBLIC_EXPONENT = 65537

    def __init__(
        self,
        paths: RootPaths,
        capability: KeyCapability,
        product_name: str,
        installation_id: str | None = None,
    ) -> None:
        self._paths = paths
        self._capability = capability
        self._product_name = product_name
        self._installation_id = installation_id
        self._storage_type = "file"
        self._key_pair: CAKeyPair | None = None

    @property
    def paths(self) -> RootPaths:
        return self._paths

    @property
    def key_pair(self) -> CAKeyPair:
        """Get loaded root key pair. Raises if not loaded."""
        if self._key_pair is None:
            raise KeyManagerError("Root CA not loaded. Call load_or_generate() first.")
        return self._key_pair

    def redirect(self, paths: RootPaths) -> None:
        """Point the store at a user-supplied root before it is loaded."""
        if self._key_pair is not None:
            raise KeyManagerError("Cannot redirect root CA storage after it has been loaded")
        logger.info(
            "root_ca_redirected",
            extra={"key_path": str(paths.key_path), "cert_path": str(paths.cert_path)},
        )
        self._paths = paths
        self._storage_type = "custom"

    def load_or_generate(self) -> CAKeyPair:
        """Load the root from disk, or generate and persist a new one.

        Returns:
            The loaded or generated CAKeyPair. Repeated calls return the same pair.

        Raises:
            KeyManagerError: If non-empty root files cannot be parsed, or a
                generated root cannot be written.
        """
        if self._key_pair is not None:
            return self._key_pair

        with tracer.start_as_current_span("KeyManager.load_root_ca") as span:
            key_pair = self._try_load_from_file()
            if key_pair is None:
                key_pair = self._generate_new()
                self._save_to_file(key_pair)

            span.set_attribute("storage_type", key_pair.storage_type)
            span.set_attribute("key_size", key_pair.private_key.key_size)
            span.set_attribute(
                "ca_cert_expires", key_pair.certificate.not_valid_after_utc.isoformat()
            )
            self._key_pair = key_pair
            self._log_loaded(key_pair)
            return key_pair

    def _read_pair(self) -> tuple[bytes, bytes] | None:
        try:
            key_pem = self._paths.key_path.read_bytes()
            cert_pem = self._paths.cert_path.read_bytes()
        except OSError as e:
            logger.debug(
                "root_ca_files_absent",
                extra={
                    "key_path": str(self._paths.key_path),
                    "cert_path": str(self._paths.cert_path),
                    "error": str(e),
                },
            )
            return None
        if not key_pem.strip() or not cert_pem.strip():
            logger.debug("root_ca_files_empty", extra={"key_path": str(self._paths.key_path)})
            return None
        return key_pem, cert_pem

    def _try_load_from_file(self) -> CAKeyPair | None:
        """Parse the root pair at the resolved paths. Missing or empty files mean absent."""
        pair = self._read_pair()
        if pair is None:
            return None
        key_pem, cert_pem = pair

        try:
            private_key = serialization.load_pem_private_key(key_pem, password=None)
            certificate = x509.load_pem_x509_certificate(cert_pem)
        except (ValueError, TypeError) as e:
            logger.error(
                "root_ca_load_failed",
                extra={"key_path": str(self._paths.key_path), "error": str(e)},
            )
            raise KeyManagerError(f"Failed to load root CA from {self._paths.key_path}: {e}") from e

        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise KeyManagerError(
                f"Root CA key at {self._paths.key_path} is not an RSA key"
            )
        if certificate.public_key().public_numbers() != private_key.public_key().public_numbers():
            raise KeyManagerError(
                f"Root CA certificate {self._paths.cert_path} does not match its private key"
            )

        return CAKeyPair(
            private_key=private_key,
            certificate=certificate,
            storage_type=self._storage_type,
        )

    def _generate_new(self) -> CAKeyPair:
        """Generate a new self-signed root at the capability-determined key size."""
        key_size = self._capability.key_size
        logger.info("Generating new root CA key pair", extra={"key_size": key_size})

        private_key = rsa.generate_private_key(
            public_exponent=self.PUBLIC_EXPONENT,
            key_size=key_size,
        )

        common_name = build_root_common_name(
            self._product_name, self._installation_id, discover_mac_address()
        )
        subject = issuer = build_root_subject(common_name)

        now = datetime.now(timezone.utc)
        certificate = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer)
            .public_key(private_key.public_key())
            .serial_number(self.ROOT_SERIAL_NUMBER)
            .not_valid_before(shift_years(now, -self.DEFAULT_CA_VALIDITY_YEARS))
            .not_valid_after(shift_years(now, self.DEFAULT_CA_VALIDITY_YEARS))
            .add_extension(
                x509.BasicConstraints(ca=True, path_length=None),
                critical=True,
            )
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=True,
                    key_encipherment=True,
                    data_encipherment=True,
                    key_agreement=False,
                    key_cert_sign=True,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=False,
            )
            .add_extension(
                x509.ExtendedKeyUsage(
                    [
                        ExtendedKeyUsageOID.SERVER_AUTH,
                        ExtendedKeyUsageOID.CLIENT_AUTH,
                        ExtendedKeyUsageOID.CODE_SIGNING,
                        ExtendedKeyUsageOID.EMAIL_PROTECTION,
                        ExtendedKeyUsageOID.TIME_STAMPING,
                    ]
                ),
                critical=False,
            )
            .add_extension(
                x509.UnrecognizedExtension(NS_CERT_TYPE_OID, NS_CERT_TYPE_ALL),
                critical=False,
            )
            .sign(private_key, hashes.SHA256())
        )

        return CAKeyPair(
            private_key=private_key,
            certificate=certificate,
            storage_type="generated",
        )

    def _save_to_file(self, key_pair: CAKeyPair) -> None:
        """Persist a freshly generated root. Raises KeyManagerError if it cannot be written."""
        key_path, cert_path = self._paths.key_path, self._paths.cert_path
        try:
            key_path.write_text(key_pair.private_key_pem, encoding="utf-8")
            os.chmod(key_path, 0o600)
            cert_path.write_text(key_pair.certificate_pem, encoding="utf-8")
        except OSError as e:
            logger.error(
                "root_ca_save_failed",
                extra={"key_path": str(key_path), "error": str(e)},
            )
            raise KeyManagerError(f"Failed to save root CA to {key_path}: {e}") from e

        logger.info(
            "Root CA key pair saved to file",
            extra={"key_path": str(key_path), "cert_path": str(cert_path)},
        )

    def _log_loaded(self, key_pair: CAKeyPair) -> None:
        """Log successful root loading and record metrics."""
        logger.info(
            "root_ca_loaded",
            extra={
                "storage_type": key_pair.storage_type,
                "key_size": key_pair.private_key.key_size,
                "cert_path": str(self._paths.cert_path),
                "ca_cert_expires": key_pair.certificate.not_valid_after_utc.isoformat(),
            },
        )
        interception_metrics.record_ca_key_loaded(
            key_pair.storage_type, key_pair.private_key.key_size
        )
