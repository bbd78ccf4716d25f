"""Root CA download and certificate inspection endpoints.

Users fetch the root certificate here to install it as trusted before
intercepted HTTPS traffic is accepted by their clients.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from opentelemetry import trace

from interception.api.schemas import LeafCertificateResponse, RootCAResponse
from interception.ca.authority import CertificateAuthority
from interception.ca.certificate_generator import CertificateGenerationError
from interception.ca.crypto import CryptoError, compute_thumbprint

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

router = APIRouter(prefix="/ca", tags=["ca"])

ROOT_CA_MEDIA_TYPE = "application/x-x509-ca-cert"

# Global certificate authority instance (injected at startup)
_authority: CertificateAuthority | None = None


def set_certificate_authority(authority: CertificateAuthority) -> None:
    """Set the global certificate authority instance."""
    global _authority
    _authority = authority


def get_certificate_authority() -> CertificateAuthority:
    """Get the global certificate authority instance."""
    if _authority is None:
        raise RuntimeError("CertificateAuthority not initialized")
    return _authority


@router.get("/root.crt", response_class=Response)
async def download_root_ca(
    authority: CertificateAuthority = Depends(get_certificate_authority),
) -> Response:
    """Download the root certificate (the file returned by get_root_ca_file())."""
    cert_path = authority.get_root_ca_file()
    try:
        content = cert_path.read_bytes()
    except OSError as e:
        logger.error("root_ca_read_failed", extra={"cert_path": str(cert_path), "error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Root CA certificate is not readable",
        ) from None

    return Response(
        content=content,
        media_type=ROOT_CA_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{cert_path.name}"'},
    )


@router.get("/root", response_model=RootCAResponse)
async def describe_root_ca(
    authority: CertificateAuthority = Depends(get_certificate_authority),
) -> RootCAResponse:
    root = authority.root
    return RootCAResponse(
        cert_path=str(authority.get_root_ca_file()),
        subject=root.certificate.subject.rfc4514_string(),
        not_before=root.certificate.not_valid_before_utc,
        not_after=root.certificate.not_valid_after_utc,
        key_size=root.private_key.key_size,
        storage_type=root.storage_type,
        thumbprint=compute_thumbprint(root.certificate_pem),
    )


@router.get("/certificates/{hostname}", response_model=LeafCertificateResponse)
async def get_certificate(
    hostname: str,
    authority: CertificateAuthority = Depends(get_certificate_authority),
) -> LeafCertificateResponse:
    """
    Show the certificate presented when intercepting hostname.

    Issues (and caches) a leaf if none exists yet, exactly as the proxy would.
    """
    with tracer.start_as_current_span("api.get_certificate") as span:
        span.set_attribute("hostname", hostname)
        try:
            record = authority.create_certificate(hostname)
            # Override certificates are user-supplied and may not parse
            thumbprint = compute_thumbprint(record.certificate_pem)
        except (CertificateGenerationError, CryptoError) as e:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
            ) from None

    return LeafCertificateResponse(
        hostname=hostname,
        certificate_pem=record.certificate_pem,
        thumbprint=thumbprint,
    )
