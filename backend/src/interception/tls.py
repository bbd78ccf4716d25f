"""Server-side TLS context backed by the root CA."""

import logging
import ssl
from pathlib import Path

logger = logging.getLogger(__name__)

# OpenSSL security level 2 rejects RSA keys below 2048 bits
_LEGACY_KEY_CIPHERS = "DEFAULT:@SECLEVEL=1"


def build_default_context(cert_path: Path, key_path: Path, key_size: int) -> ssl.SSLContext:
    """Build the process-wide default server context from the root key and certificate.

    Used by the proxy when no hostname-specific certificate applies.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    if key_size < 2048:
        context.set_ciphers(_LEGACY_KEY_CIPHERS)
    context.load_cert_chain(certfile=str(cert_path), keyfile=str(key_path))
    logger.debug("default_tls_context_built", extra={"cert_path": str(cert_path)})
    return context
