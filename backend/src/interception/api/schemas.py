"""Pydantic schemas for the certificate authority API."""

from datetime import datetime

from pydantic import BaseModel


class RootCAResponse(BaseModel):
    """Description of the root CA currently in use."""

    cert_path: str
    subject: str
    not_before: datetime
    not_after: datetime
    key_size: int
    storage_type: str
    thumbprint: str


class LeafCertificateResponse(BaseModel):
    """Certificate presented when intercepting a hostname. Never carries the key."""

    hostname: str
    certificate_pem: str
    thumbprint: str

