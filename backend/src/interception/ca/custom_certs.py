"""User-supplied override certificates.

The override directory may hold:
- <host>.crt / <host>.key: exact-hostname override
- *.<domain>.crt / .key (or _.<domain>.*): override for every host under .<domain>
- root.crt / root.key: replacement root CA

Only groups with both a readable key and certificate are used. The scan is
best-effort: unreadable files are logged and left out of their group.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from interception.ca.crypto import CertificateRecord
from interception.metrics import interception_metrics

logger = logging.getLogger(__name__)

ROOT_GROUP = "root"
ROOT_KEY_FILENAME = "root.key"
ROOT_CERT_FILENAME = "root.crt"

_CERT_FILE_RE = re.compile(r"^([*_]\.)?(.+)\.(crt|key)$")


class CertFileKind(str, Enum):
    EXACT = "exact"
    WILDCARD = "wildcard"


@dataclass(frozen=True)
class CertFileName:
    """Structured form of an override file name."""

    name: str
    kind: CertFileKind
    suffix: str  # "crt" or "key"

    @property
    def group_key(self) -> str:
        """Lookup key: '.<name>' for wildcard files, the bare name otherwise."""
        if self.kind is CertFileKind.WILDCARD:
            return f".{self.name}"
        return self.name


def parse_cert_filename(filename: str) -> CertFileName | None:
    """Map an override directory entry to its structured form, or None if it does not match."""
    match = _CERT_FILE_RE.match(filename)
    if match is None:
        return None
    marker, name, suffix = match.groups()
    kind = CertFileKind.WILDCARD if marker else CertFileKind.EXACT
    return CertFileName(name=name, kind=kind, suffix=suffix)


@dataclass
class _Group:
    key: str | None = None
    cert: str | None = None
    wildcard: bool = False

    @property
    def complete(self) -> bool:
        return bool(self.key) and bool(self.cert)


@dataclass
class CustomCertificates:
    """Override tables built from the override directory."""

    exact: dict[str, CertificateRecord] = field(default_factory=dict)
    wildcard: dict[str, CertificateRecord] = field(default_factory=dict)
    root_key_path: Path | None = None
    root_cert_path: Path | None = None

    @property
    def has_root(self) -> bool:
        return self.root_key_path is not None and self.root_cert_path is not None


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(
            "custom_certificate_unreadable",
            extra={"path": str(path), "error": str(e)},
        )
        return None


def load_custom_certificates(cert_dir: Path | None) -> CustomCertificates:
    """Scan the override directory and build the override tables.

    Args:
        cert_dir: Override directory. None disables overrides.

    Returns:
        CustomCertificates, empty if no directory is configured or it cannot be listed.
    """
    result = CustomCertificates()
    if cert_dir is None:
        return result

    try:
        entries = sorted(p.name for p in cert_dir.iterdir())
    except OSError as e:
        logger.warning(
            "custom_certificate_dir_unreadable",
            extra={"cert_dir": str(cert_dir), "error": str(e)},
        )
        return result

    groups: dict[str, _Group] = {}
    for entry in entries:
        parsed = parse_cert_filename(entry)
        if parsed is None:
            continue
        group = groups.setdefault(parsed.group_key, _Group())
        if parsed.kind is CertFileKind.WILDCARD:
            group.wildcard = True
        content = _read_text(cert_dir / entry)
        if content is None:
            continue
        if parsed.suffix == "crt":
            group.cert = content
        else:
            group.key = content

    root = groups.pop(ROOT_GROUP, None)
    if root is not None and root.complete:
        result.root_key_path = cert_dir / ROOT_KEY_FILENAME
        result.root_cert_path = cert_dir / ROOT_CERT_FILENAME
        logger.info("custom_root_ca_found", extra={"cert_dir": str(cert_dir)})

    for group_key, group in groups.items():
        if not group.complete:
            logger.debug("custom_certificate_incomplete", extra={"group": group_key})
            continue
        record = CertificateRecord(private_key_pem=group.key, certificate_pem=group.cert)
        if group.wildcard:
            result.wildcard[group_key] = record
        else:
            result.exact[group_key] = record

    interception_metrics.record_custom_certificates_loaded("exact", len(result.exact))
    interception_metrics.record_custom_certificates_loaded("wildcard", len(result.wildcard))
    interception_metrics.record_custom_certificates_loaded("root", 1 if result.has_root else 0)

    logger.info(
        "custom_certificates_loaded",
        extra={
            "cert_dir": str(cert_dir),
            "exact": len(result.exact),
            "wildcard": len(result.wildcard),
            "custom_root": result.has_root,
        },
    )
    return result
