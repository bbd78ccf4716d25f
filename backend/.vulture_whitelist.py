from backend.src.interception.api.rootca import describe_root_ca, download_root_ca, get_certificate
from backend.src.interception.api.schemas import LeafCertificateResponse, RootCAResponse
from backend.src.interception.ca.authority import CertificateAuthority
from backend.src.interception.ca.capability import KeyCapability
from backend.src.main import health_check, lifespan
from backend.src.shared.config import Settings

# Pydantic Settings
Settings.model_config
Settings.APP_ENV
Settings.LOG_LEVEL

# FastAPI endpoints (registered through decorators)
health_check
lifespan
download_root_ca
describe_root_ca
get_certificate

# Response models (fields read by FastAPI serialization)
RootCAResponse.not_before
RootCAResponse.not_after
LeafCertificateResponse.thumbprint

# Public API for the owning proxy process
CertificateAuthority.default_context
CertificateAuthority.custom_certificates
KeyCapability.runtime_version
