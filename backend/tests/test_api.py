"""Tests for the root CA HTTP endpoints."""

from unittest.mock import patch

import pytest
from cryptography import x509
from fastapi import FastAPI
from fastapi.testclient import TestClient

from interception.api import rootca as rootca_api
from interception.ca.authority import CertificateAuthority
from interception.ca.crypto import compute_thumbprint


@pytest.fixture(scope="module")
def authority(tmp_path_factory):
    base = tmp_path_factory.mktemp("api")
    custom_dir = base / "custom"
    custom_dir.mkdir()
    (custom_dir / "broken.example.crt").write_text("not a certificate")
    (custom_dir / "broken.example.key").write_text("not a key")

    with patch("interception.ca.key_manager.discover_mac_address", return_value=None):
        authority = CertificateAuthority(
            cert_dir=base / "certs", custom_cert_dir=custom_dir, runtime_version="OpenSSL 3.0.2"
        )
        authority.initialize()
    return authority


@pytest.fixture
def client(authority):
    app = FastAPI()
    app.include_router(rootca_api.router)
    rootca_api.set_certificate_authority(authority)
    yield TestClient(app)
    rootca_api.set_certificate_authority(None)


class TestRootCAEndpoints:
    """Tests for /ca/root.crt and /ca/root."""

    def test_download_root_certificate(self, client, authority):
        """Test that the root certificate is served as an installable attachment."""
        response = client.get("/ca/root.crt")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/x-x509-ca-cert"
        assert 'filename="root.crt"' in response.headers["content-disposition"]
        assert response.content == authority.get_root_ca_file().read_bytes()

    def test_describe_root(self, client, authority):
        """Test the JSON description of the loaded root."""
        response = client.get("/ca/root")

        assert response.status_code == 200
        body = response.json()
        assert body["cert_path"] == str(authority.get_root_ca_file())
        assert body["key_size"] == 2048
        assert body["storage_type"] == "generated"
        assert body["thumbprint"] == compute_thumbprint(authority.root.certificate_pem)
        assert "CN=interception" in body["subject"]

    def test_unconfigured_authority_raises(self):
        """Test that routes fail loudly before an authority is injected."""
        rootca_api.set_certificate_authority(None)

        with pytest.raises(RuntimeError, match="not initialized"):
            rootca_api.get_certificate_authority()


class TestCertificateEndpoint:
    """Tests for /ca/certificates/{hostname}."""

    def test_returns_leaf_without_key(self, client, authority):
        """Test that the issued leaf is returned without its private key."""
        response = client.get("/ca/certificates/shop.example.com")

        assert response.status_code == 200
        body = response.json()
        assert body["hostname"] == "shop.example.com"
        assert "private_key_pem" not in body
        cert = x509.load_pem_x509_certificate(body["certificate_pem"].encode())
        assert cert.issuer == authority.root.certificate.subject
        assert "shop.example.com" in authority.issuance_cache

    def test_unparseable_override_is_unprocessable(self, client):
        """Test that an override that is not a certificate maps to 422."""
        response = client.get("/ca/certificates/broken.example")

        assert response.status_code == 422
        assert "thumbprint" in response.json()["detail"]
