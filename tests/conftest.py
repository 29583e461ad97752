"""Shared test fixtures: a self-signed certificate, its key and the files made from them."""

from __future__ import annotations

import shutil
from datetime import datetime, timezone
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from cryptofile import fileops, toolkit as toolkit_module
from cryptofile.native import NativeToolkit
from cryptofile.openssl import OpensslToolkit

PASS_PHRASE = "secret"
KEYSTORE_PASS_PHRASE = "store-pw"
NOT_BEFORE = datetime(2024, 1, 1, tzinfo=timezone.utc)
NOT_AFTER = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Never read the config of the machine running the tests."""
    monkeypatch.setenv("CRYPTOFILE_CONFIG", str(tmp_path / "no-config.json"))
    fileops.configured_file_mode.cache_clear()
    toolkit_module.default_toolkit.cache_clear()
    yield
    fileops.configured_file_mode.cache_clear()
    toolkit_module.default_toolkit.cache_clear()


# ---------------------------------------------------------------------------
# Key material
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def certificate(rsa_key: rsa.RSAPrivateKey) -> x509.Certificate:
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "example.com")])
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(rsa_key.public_key())
        .serial_number(1000)
        .not_valid_before(NOT_BEFORE)
        .not_valid_after(NOT_AFTER)
        .sign(rsa_key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def cert_pem(certificate: x509.Certificate) -> bytes:
    return certificate.public_bytes(serialization.Encoding.PEM)


@pytest.fixture(scope="session")
def cert_der(certificate: x509.Certificate) -> bytes:
    return certificate.public_bytes(serialization.Encoding.DER)


def _key_bytes(key: rsa.RSAPrivateKey, encoding, pass_phrase=None) -> bytes:
    if pass_phrase:
        encryption = serialization.BestAvailableEncryption(pass_phrase.encode())
    else:
        encryption = serialization.NoEncryption()
    return key.private_bytes(encoding, serialization.PrivateFormat.TraditionalOpenSSL, encryption)


@pytest.fixture(scope="session")
def key_pem(rsa_key: rsa.RSAPrivateKey) -> bytes:
    return _key_bytes(rsa_key, serialization.Encoding.PEM)


@pytest.fixture(scope="session")
def key_der(rsa_key: rsa.RSAPrivateKey) -> bytes:
    return _key_bytes(rsa_key, serialization.Encoding.DER)


@pytest.fixture(scope="session")
def protected_key_pem(rsa_key: rsa.RSAPrivateKey) -> bytes:
    return _key_bytes(rsa_key, serialization.Encoding.PEM, PASS_PHRASE)


@pytest.fixture(scope="session")
def keystore_bytes(rsa_key: rsa.RSAPrivateKey, certificate: x509.Certificate) -> bytes:
    return pkcs12.serialize_key_and_certificates(
        name=None,
        key=rsa_key,
        cert=certificate,
        cas=None,
        encryption_algorithm=serialization.BestAvailableEncryption(KEYSTORE_PASS_PHRASE.encode()),
    )


# ---------------------------------------------------------------------------
# Toolkit engines
# ---------------------------------------------------------------------------


@pytest.fixture(params=["native", "openssl"])
def toolkit(request):
    """Run every artifact test against both engines."""
    if request.param == "openssl":
        if shutil.which("openssl") is None:
            pytest.skip("openssl binary not available")
        return OpensslToolkit()
    return NativeToolkit()


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


@pytest.fixture
def write(tmp_path: Path):
    def _write(name: str, data: bytes) -> Path:
        path = tmp_path / name
        path.write_bytes(data)
        return path
    return _write


@pytest.fixture
def cert_path(write, cert_pem: bytes) -> Path:
    return write("site.crt", cert_pem)


@pytest.fixture
def cert_der_path(write, cert_der: bytes) -> Path:
    return write("site.der", cert_der)


@pytest.fixture
def key_path(write, key_pem: bytes) -> Path:
    return write("site.key", key_pem)


@pytest.fixture
def key_der_path(write, key_der: bytes) -> Path:
    return write("site.key.der", key_der)


@pytest.fixture
def protected_key_path(write, protected_key_pem: bytes) -> Path:
    return write("site.enc.key", protected_key_pem)


@pytest.fixture
def bundle_path(write, cert_pem: bytes, key_pem: bytes) -> Path:
    return write("site.pem", cert_pem + key_pem)


@pytest.fixture
def protected_bundle_path(write, cert_pem: bytes, protected_key_pem: bytes) -> Path:
    return write("site.enc.pem", cert_pem + protected_key_pem)


@pytest.fixture
def key_first_bundle_path(write, cert_pem: bytes, key_pem: bytes) -> Path:
    return write("reversed.pem", key_pem + cert_pem)


@pytest.fixture
def keystore_path(write, keystore_bytes: bytes) -> Path:
    return write("site.p12", keystore_bytes)


@pytest.fixture
def text_path(write) -> Path:
    return write("notes.txt", b"just some notes, no key material here\n")
