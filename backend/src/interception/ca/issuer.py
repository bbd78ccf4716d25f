"""Hostname -> certificate resolution.

Order: exact override, wildcard override, issuance cache, fresh leaf.
Override tables are fixed after startup; the cache grows for the process
lifetime and is never evicted.
"""

import logging
import threading

from interception.ca.certificate_generator import CertificateGenerator
from interception.ca.crypto import CertificateRecord
from interception.ca.custom_certs import CustomCertificates
from interception.metrics import interception_metrics

logger = logging.getLogger(__name__)


def wildcard_key(hostname: str) -> str | None:
    """Suffix of hostname from its first dot ('a.example.com' -> '.example.com')."""
    index = hostname.find(".")
    if index < 0:
        return None
    return hostname[index:]


class LeafCertificateIssuer:
    """Resolves hostnames to certificates, memoizing synthesized leaves."""

    def __init__(self, generator: CertificateGenerator, custom: CustomCertificates) -> None:
        self._generator = generator
        self._exact = custom.exact
        self._wildcard = custom.wildcard
        self._cache: dict[str, CertificateRecord] = {}
        self._lock = threading.Lock()

    @property
    def cache(self) -> dict[str, CertificateRecord]:
        """Snapshot of the issuance cache."""
        with self._lock:
            return dict(self._cache)

    def issue(self, hostname: str) -> CertificateRecord:
        """Return the key/certificate pair to present for hostname."""
        record = self._exact.get(hostname)
        if record is not None:
            interception_metrics.record_certificate_issued("exact")
            return record

        key = wildcard_key(hostname)
        record = self._wildcard.get(key) if key is not None else None
        if record is not None:
            interception_metrics.record_certificate_issued("wildcard")
            return record

        record = self._cache.get(hostname)
        if record is not None:
            interception_metrics.record_certificate_issued("cache")
            return record

        # Serialize misses so each hostname is synthesized once
        with self._lock:
            record = self._cache.get(hostname)
            if record is None:
                record = self._generator.generate(hostname)
                self._cache[hostname] = record
                source = "generated"
            else:
                source = "cache"

        interception_metrics.record_certificate_issued(source)
        return record
