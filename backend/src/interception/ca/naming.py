"""Subject name for a generated root CA.

The common name is the product name, optionally followed by
"(<installation id>@<mac address>)" so roots generated on different
machines or accounts are distinguishable in a trust store.
"""

import ipaddress
import logging
import socket
from urllib.parse import quote

import psutil
from cryptography import x509
from cryptography.x509.oid import NameOID

from interception.ca.crypto import fit_common_name

logger = logging.getLogger(__name__)

INSTALLATION_ID_MAX_CHARS = 20

COUNTRY = "CN"
STATE = "ZJ"
LOCALITY = "HZ"
ORGANIZATIONAL_UNIT = "INTERCEPTION"

# Left unescaped; everything else is percent-encoded
_URI_COMPONENT_SAFE = "-_.!~*'()"


def encode_installation_id(value: str | None) -> str | None:
    """Truncate and percent-encode the installation identifier, or None if it cannot be encoded."""
    if not value:
        return None
    try:
        return quote(value[:INSTALLATION_ID_MAX_CHARS], safe=_URI_COMPONENT_SAFE)
    except UnicodeEncodeError as e:
        logger.debug("installation_id_not_encodable", extra={"error": str(e)})
        return None


def _is_external_ipv4(address: str) -> bool:
    try:
        return not ipaddress.IPv4Address(address).is_loopback
    except ValueError:
        return False


def discover_mac_address() -> str | None:
    """Return the link-layer address of the first interface with a non-loopback IPv4 address.

    Falls back to the IPv4 address when that interface reports no MAC.
    """
    try:
        interfaces = psutil.net_if_addrs()
    except (OSError, psutil.Error) as e:
        logger.debug("network_interfaces_unavailable", extra={"error": str(e)})
        return None

    for addrs in interfaces.values():
        ipv4 = [a.address for a in addrs if a.family == socket.AF_INET and _is_external_ipv4(a.address)]
        if not ipv4:
            continue
        mac = next((a.address for a in addrs if a.family == psutil.AF_LINK and a.address), None)
        return mac or ipv4[0]
    return None


def build_root_common_name(
    product_name: str,
    installation_id: str | None = None,
    mac_address: str | None = None,
) -> str:
    suffixes = [s for s in (encode_installation_id(installation_id), mac_address) if s]
    if not suffixes:
        return fit_common_name(product_name)
    return fit_common_name(f"{product_name}({'@'.join(suffixes)})")


def build_root_subject(common_name: str) -> x509.Name:
    """Subject (and issuer) attributes of a self-signed root."""
    return x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
            x509.NameAttribute(NameOID.COUNTRY_NAME, COUNTRY),
            x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, STATE),
            x509.NameAttribute(NameOID.LOCALITY_NAME, LOCALITY),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, common_name),
            x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, ORGANIZATIONAL_UNIT),
        ]
    )
