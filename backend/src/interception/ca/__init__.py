"""Certificate authority for HTTPS interception.

This module provides:
- Root CA management (load from disk, user-supplied replacement, or generate and persist)
- User override certificates (exact host and wildcard domain)
- On-demand, memoized leaf certificates signed by the root
"""

from interception.ca.authority import CertificateAuthority
from interception.ca.crypto import CertificateRecord

__all__ = ["CertificateAuthority", "CertificateRecord"]
