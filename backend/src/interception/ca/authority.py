"""Process-wide certificate authority for HTTPS interception.

Owns the root CA, the override tables and the issuance cache. The owning
process calls initialize() once before accepting connections; every other
entry point passes through the same one-time barrier, so early concurrent
callers wait for initialization instead of racing the generate/persist step.
"""

import logging
import ssl
import threading
from pathlib import Path

from shared.config import Settings

from interception.ca.capability import KeyCapability, detect_capability
from interception.ca.certificate_generator import CertificateGenerator
from interception.ca.crypto import CertificateRecord
from interception.ca.custom_certs import CustomCertificates, load_custom_certificates
from interception.ca.issuer import LeafCertificateIssuer
from interception.ca.key_manager import CAKeyPair, KeyManager, RootPaths, resolve_root_paths
from interception.tls import build_default_context

logger = logging.getLogger(__name__)

CERTS_SUBDIR = "certs"


class CertificateAuthority:
    """Root CA lifecycle plus on-demand leaf issuance."""

    def __init__(
        self,
        cert_dir: Path,
        custom_cert_dir: Path | None = None,
        enable_large_key: bool = False,
        product_name: str = "interception",
        installation_id: str | None = None,
        runtime_version: str | None = None,
    ) -> None:
        """
        Args:
            cert_dir: Directory holding the generated root files.
            custom_cert_dir: Optional override directory.
            enable_large_key: Require a 2048-bit root.
            product_name: Prefix of the root CA common name.
            installation_id: Optional identifier appended to the root CA common name.
            runtime_version: TLS runtime version for the capability check
                (defaults to the linked OpenSSL).
        """
        self.cert_dir = cert_dir
        self.custom_cert_dir = custom_cert_dir
        self.enable_large_key = enable_large_key
        self.product_name = product_name
        self.installation_id = installation_id
        self.runtime_version = runtime_version

        self._init_lock = threading.Lock()
        self._initialized = False
        self._capability: KeyCapability | None = None
        self._key_manager: KeyManager | None = None
        self._custom = CustomCertificates()
        self._issuer: LeafCertificateIssuer | None = None
        self._default_context: ssl.SSLContext | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "CertificateAuthority":
        return cls(
            cert_dir=settings.DATA_DIR / CERTS_SUBDIR,
            custom_cert_dir=settings.CERT_DIR,
            enable_large_key=settings.ENABLE_LARGE_KEY,
            product_name=settings.CA_PRODUCT_NAME,
            installation_id=settings.HOME_DIRNAME,
        )

    def initialize(self) -> None:
        """Check capability, scan overrides, then load or generate the root. Runs once.

        Raises:
            CapabilityError: Large keys requested on an incapable runtime.
            KeyManagerError: Root files exist but are unusable, or a new root cannot be saved.
        """
        if self._initialized:
            return
        with self._init_lock:
            if self._initialized:
                return

            # Must fail before any file I/O
            capability = detect_capability(self.enable_large_key, self.runtime_version)

            self.cert_dir.mkdir(parents=True, exist_ok=True)
            key_manager = KeyManager(
                paths=resolve_root_paths(self.cert_dir, capability),
                capability=capability,
                product_name=self.product_name,
                installation_id=self.installation_id,
            )

            custom = load_custom_certificates(self.custom_cert_dir)
            if custom.has_root:
                key_manager.redirect(
                    RootPaths(key_path=custom.root_key_path, cert_path=custom.root_cert_path)
                )

            key_pair = key_manager.load_or_generate()

            self._capability = capability
            self._key_manager = key_manager
            self._custom = custom
            self._issuer = LeafCertificateIssuer(CertificateGenerator(key_pair), custom)
            self._default_context = build_default_context(
                key_manager.paths.cert_path,
                key_manager.paths.key_path,
                key_pair.private_key.key_size,
            )
            self._initialized = True

            logger.info(
                "certificate_authority_initialized",
                extra={
                    "root_ca_file": str(key_manager.paths.cert_path),
                    "storage_type": key_pair.storage_type,
                    "key_size": key_pair.private_key.key_size,
                    "exact_overrides": len(custom.exact),
                    "wildcard_overrides": len(custom.wildcard),
                },
            )

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def capability(self) -> KeyCapability:
        self.initialize()
        assert self._capability is not None
        return self._capability

    @property
    def root(self) -> CAKeyPair:
        """The root key pair (read-only for callers)."""
        self.initialize()
        assert self._key_manager is not None
        return self._key_manager.key_pair

    @property
    def custom_certificates(self) -> CustomCertificates:
        self.initialize()
        return self._custom

    @property
    def default_context(self) -> ssl.SSLContext:
        """Server context built from the root key and certificate."""
        self.initialize()
        assert self._default_context is not None
        return self._default_context

    @property
    def issuance_cache(self) -> dict[str, CertificateRecord]:
        self.initialize()
        assert self._issuer is not None
        return self._issuer.cache

    def get_root_ca_file(self) -> Path:
        """Path of the root certificate users install as trusted."""
        self.initialize()
        assert self._key_manager is not None
        return self._key_manager.paths.cert_path

    def create_certificate(self, hostname: str) -> CertificateRecord:
        """Key/certificate pair to present when intercepting hostname."""
        self.initialize()
        assert self._issuer is not None
        return self._issuer.issue(hostname)
