"""Runtime capability check for the root CA key size.

2048-bit RSA roots are only produced when the TLS runtime can handle them.
Asking for a large key on a runtime that cannot is a configuration error
and must stop the process before any CA material is touched.
"""

import logging
import re
import ssl
from dataclasses import dataclass

logger = logging.getLogger(__name__)

LARGE_KEY_SIZE = 2048
LEGACY_KEY_SIZE = 1024

# Lowest TLS runtime major version that handles 2048-bit roots
MIN_LARGE_KEY_RUNTIME_MAJOR = 1

_VERSION_RE = re.compile(r"(\d+)")


class CapabilityError(Exception):
    """Raised when the large-key flag is set on a runtime that lacks support."""

    pass


@dataclass(frozen=True)
class KeyCapability:
    """Outcome of the capability check."""

    runtime_version: str
    supports_large_key: bool
    enable_large_key: bool

    @property
    def key_size(self) -> int:
        """RSA modulus size for a newly generated root."""
        return LARGE_KEY_SIZE if self.supports_large_key else LEGACY_KEY_SIZE


def runtime_major_version(version: str) -> int:
    """Extract the major version from identifiers like 'OpenSSL 3.0.2' or 'v6.1.0'.

    Returns 0 when the identifier carries no number.
    """
    match = _VERSION_RE.search(version)
    return int(match.group(1)) if match else 0


def detect_capability(enable_large_key: bool, runtime_version: str | None = None) -> KeyCapability:
    """Decide whether 2048-bit RSA is usable.

    Args:
        enable_large_key: The "enable large key" feature flag.
        runtime_version: Version identifier of the TLS runtime. Defaults to
            the OpenSSL build the interpreter links against.

    Raises:
        CapabilityError: If the flag is set but the runtime is too old.
    """
    if runtime_version is None:
        runtime_version = ssl.OPENSSL_VERSION

    supports = runtime_major_version(runtime_version) >= MIN_LARGE_KEY_RUNTIME_MAJOR

    if enable_large_key and not supports:
        raise CapabilityError(
            f"Enabling large keys requires a TLS runtime with major version >= "
            f"{MIN_LARGE_KEY_RUNTIME_MAJOR} (current: {runtime_version})"
        )

    capability = KeyCapability(
        runtime_version=runtime_version,
        supports_large_key=supports,
        enable_large_key=enable_large_key,
    )
    logger.debug(
        "key_capability_detected",
        extra={
            "runtime_version": runtime_version,
            "supports_large_key": supports,
            "enable_large_key": enable_large_key,
        },
    )
    return capability
