# cryptofile/native.py

"""
Toolkit engine on top of the cryptography library.

Failures are reported the way openssl reports them: a failed result with
diagnostic text. A wrong passphrase on an encrypted key carries the
":bad decrypt:" marker and a wrong keystore password the
"invalid password" marker, so the probes in the artifact files behave the
same with either engine.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12

from .toolkit import (
    BAD_DECRYPT_MARKER,
    CERTIFICATE_LABELS,
    PRIVATE_KEY_LABELS,
    CertificateField,
    Format,
    Source,
    ToolkitResult,
    find_pem_block,
    read_source,
)

logger = logging.getLogger(__name__)

# OID 1.2.840.113549.1.7.1 (pkcs7-data) right after the PFX version
PKCS7_DATA_OID = bytes.fromhex("06092a864886f70d010701")

MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
          "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


class NativeError(Exception):
    """Internal failure carrying the diagnostic for the result."""

    def __init__(self, diagnostic: str):
        super().__init__(diagnostic)
        self.diagnostic = diagnostic


def load_certificate(data: bytes, inform: Format) -> x509.Certificate:
    if inform == Format.PEM:
        found = find_pem_block(data, CERTIFICATE_LABELS)
        if found is None:
            raise NativeError("Could not read certificate: no certificate block found")
        data = found[1]

    try:
        if inform == Format.PEM:
            return x509.load_pem_x509_certificate(data)
        return x509.load_der_x509_certificate(data)
    except ValueError as e:
        raise NativeError(f"Could not read certificate: {e}")


def _bad_decrypt(e: Exception) -> NativeError:
    return NativeError(f"Could not read private key\nerror:native:load_private_key{BAD_DECRYPT_MARKER}{e}")


def load_rsa_key(data: bytes, inform: Format, pass_in: str) -> rsa.RSAPrivateKey:
    """
    Load an RSA private key. The passphrase is only used when the key is
    actually encrypted, like openssl ignores -passin for plain keys.
    """
    password = pass_in.encode("utf-8")

    if inform == Format.PEM:
        found = find_pem_block(data, PRIVATE_KEY_LABELS)
        if found is None:
            raise NativeError("Could not read private key: no private key block found")
        label, block = found
        encrypted = label == b"ENCRYPTED PRIVATE KEY" or b"Proc-Type: 4,ENCRYPTED" in block

        try:
            key = serialization.load_pem_private_key(block, password=password if encrypted else None)
        except (ValueError, TypeError) as e:
            if encrypted:
                raise _bad_decrypt(e)
            raise NativeError(f"Could not read private key: {e}")
        except UnsupportedAlgorithm as e:
            raise NativeError(f"Could not read private key: {e}")
    else:
        try:
            key = serialization.load_der_private_key(data, password=None)
        except TypeError:
            # encrypted PKCS#8
            try:
                key = serialization.load_der_private_key(data, password=password)
            except (ValueError, TypeError) as e:
                raise _bad_decrypt(e)
        except (ValueError, UnsupportedAlgorithm) as e:
            raise NativeError(f"Could not read private key: {e}")

    if not isinstance(key, rsa.RSAPrivateKey):
        raise NativeError("Could not read private key: not an RSA key")
    return key


def dump_rsa_key(key: rsa.RSAPrivateKey, outform: Format, pass_out: Optional[str]) -> bytes:
    if pass_out:
        encryption = serialization.BestAvailableEncryption(pass_out.encode("utf-8"))
    else:
        encryption = serialization.NoEncryption()

    try:
        return key.private_bytes(
            encoding=serialization.Encoding.PEM if outform == Format.PEM else serialization.Encoding.DER,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=encryption,
        )
    except ValueError as e:
        raise NativeError(f"Could not write private key: {e}")


def _oneline_name(name: x509.Name) -> str:
    """Distinguished name as 'C = NL, CN = example.com', in certificate order."""
    rdns = []
    for rdn in name.rdns:
        parts = []
        for attr in rdn:
            key, _, value = attr.rfc4514_string().partition("=")
            parts.append(f"{key} = {value}")
        rdns.append(" + ".join(parts))
    return ", ".join(rdns)


def _openssl_time(dt: datetime) -> str:
    return f"{MONTHS[dt.month - 1]} {dt.day:2d} {dt:%H:%M:%S} {dt.year} GMT"


def _looks_like_pfx(data: bytes) -> bool:
    return data[:1] == b"\x30" and PKCS7_DATA_OID in data[:64]


class NativeToolkit:
    """Toolkit engine running in-process on the cryptography library."""

    def _call(self, operation: str, fn: Callable[[], bytes]) -> ToolkitResult:
        try:
            output = fn()
        except NativeError as e:
            logger.debug("%s failed: %s", operation, e.diagnostic)
            return ToolkitResult(operation, diagnostic=e.diagnostic, success=False, returncode=1)
        except OSError as e:
            return ToolkitResult(operation, diagnostic=f"Could not open file: {e}", success=False, returncode=1)
        return ToolkitResult(operation, output=output)

    # --- certificates ---

    def check_certificate(self, source: Source, inform: Format) -> ToolkitResult:
        def run() -> bytes:
            load_certificate(read_source(source), inform)
            return b""
        return self._call("check_certificate", run)

    def export_certificate(self, source: Source, inform: Format, outform: Format) -> ToolkitResult:
        def run() -> bytes:
            cert = load_certificate(read_source(source), inform)
            encoding = serialization.Encoding.PEM if outform == Format.PEM else serialization.Encoding.DER
            return cert.public_bytes(encoding)
        return self._call("export_certificate", run)

    def certificate_field(self, source: Source, inform: Format, field: CertificateField) -> ToolkitResult:
        def run() -> bytes:
            cert = load_certificate(read_source(source), inform)
            if field == CertificateField.SUBJECT:
                value = _oneline_name(cert.subject)
            elif field == CertificateField.ISSUER:
                value = _oneline_name(cert.issuer)
            elif field == CertificateField.NOT_BEFORE:
                value = _openssl_time(cert.not_valid_before_utc)
            else:
                value = _openssl_time(cert.not_valid_after_utc)
            return f"{field.prefix}{value}\n".encode("utf-8")
        return self._call(f"certificate_{field.value}", run)

    # --- private keys ---

    def check_rsa_key(self, source: Source, inform: Format, pass_in: str) -> ToolkitResult:
        def run() -> bytes:
            load_rsa_key(read_source(source), inform, pass_in)
            return b""
        return self._call("check_rsa_key", run)

    def export_rsa_key(
        self,
        source: Source,
        inform: Format,
        pass_in: str,
        pass_out: Optional[str] = None,
        outform: Format = Format.PEM,
    ) -> ToolkitResult:
        def run() -> bytes:
            key = load_rsa_key(read_source(source), inform, pass_in)
            return dump_rsa_key(key, outform, pass_out)
        return self._call("export_rsa_key", run)

    # --- keystores ---

    def export_pkcs12(self, source: Source, pass_in: str, pass_out: str) -> ToolkitResult:
        def run() -> bytes:
            data = read_source(source)
            cert = load_certificate(data, Format.PEM)
            key = load_rsa_key(data, Format.PEM, pass_in)

            cert_key = cert.public_key()
            if not isinstance(cert_key, rsa.RSAPublicKey) or \
                    cert_key.public_numbers() != key.public_key().public_numbers():
                raise NativeError("No certificate matches private key")

            return pkcs12.serialize_key_and_certificates(
                name=None,
                key=key,
                cert=cert,
                cas=None,
                encryption_algorithm=serialization.BestAvailableEncryption(pass_out.encode("utf-8")),
            )
        return self._call("export_pkcs12", run)

    def _load_pkcs12(self, data: bytes, password: str):
        # openssl tries both "no password" and "empty password"
        candidates = [password.encode("utf-8")] if password else [None, b""]
        error: Optional[Exception] = None
        for candidate in candidates:
            try:
                return pkcs12.load_key_and_certificates(data, candidate)
            except (ValueError, TypeError) as e:
                error = e

        if _looks_like_pfx(data):
            raise NativeError(f"Mac verify error: invalid password?\n{error}")
        raise NativeError(f"Could not read PKCS12 file: {error}")

    def check_pkcs12(self, source: Source, password: str) -> ToolkitResult:
        def run() -> bytes:
            self._load_pkcs12(read_source(source), password)
            return b""
        return self._call("check_pkcs12", run)

    def pkcs12_certificate(self, source: Source, password: str) -> ToolkitResult:
        def run() -> bytes:
            _, cert, _ = self._load_pkcs12(read_source(source), password)
            if cert is None:
                raise NativeError("No certificate found in PKCS12 file")
            return cert.public_bytes(serialization.Encoding.PEM)
        return self._call("pkcs12_certificate", run)

    def pkcs12_private_key(self, source: Source, password: str, pass_out: Optional[str] = None) -> ToolkitResult:
        def run() -> bytes:
            key, _, _ = self._load_pkcs12(read_source(source), password)
            if not isinstance(key, rsa.RSAPrivateKey):
                raise NativeError("No RSA private key found in PKCS12 file")
            return dump_rsa_key(key, Format.PEM, pass_out)
        return self._call("pkcs12_private_key", run)
