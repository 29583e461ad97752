# cryptofile/toolkit.py

"""
Contract between the artifact files and the cryptographic toolkit.

The files never touch key material themselves. Every parse, export and
decrypt is one call on a Toolkit engine, which reports output bytes, a
success flag and diagnostic text. Two engines exist: the openssl binary
driven as a subprocess and the cryptography library in-process.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Tuple, Union

from .errors import CryptoFileError, ProcessFailed

# Raw bytes are fed to the engine directly, paths are read by it.
Source = Union[str, Path, bytes]

# Passphrases used to probe whether something is a key at all.
DUMMY_PASS_PHRASES = ("nopass", "anypass")

BAD_DECRYPT_MARKER = ":bad decrypt:"
INVALID_PASSWORD_MARKER = "invalid password"

PEM_BLOCK = re.compile(
    rb"-----BEGIN (?P<label>[A-Z0-9 ]+)-----\r?\n.*?-----END (?P=label)-----\r?\n?",
    re.DOTALL,
)
CERTIFICATE_LABELS = (b"CERTIFICATE", b"X509 CERTIFICATE")
PRIVATE_KEY_LABELS = (b"RSA PRIVATE KEY", b"PRIVATE KEY", b"ENCRYPTED PRIVATE KEY")


class Format(str, Enum):
    """Encodings an artifact can be stored in."""
    PEM = "pem"
    DER = "der"

    @classmethod
    def parse(cls, value: Union[str, "Format"]) -> Optional["Format"]:
        """Case-insensitive lookup, None for anything unknown."""
        if isinstance(value, Format):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return None


class CertificateField(str, Enum):
    """One-line certificate attributes, named like the toolkit prints them."""
    SUBJECT = "subject"
    ISSUER = "issuer"
    NOT_BEFORE = "startdate"
    NOT_AFTER = "enddate"

    @property
    def prefix(self) -> str:
        return {
            CertificateField.SUBJECT: "subject=",
            CertificateField.ISSUER: "issuer=",
            CertificateField.NOT_BEFORE: "notBefore=",
            CertificateField.NOT_AFTER: "notAfter=",
        }[self]


@dataclass
class ToolkitResult:
    operation: str
    output: bytes = b""
    diagnostic: str = ""
    success: bool = True
    returncode: Optional[int] = 0

    def check(self) -> "ToolkitResult":
        """Return self when successful, raise ProcessFailed otherwise."""
        if not self.success:
            raise ProcessFailed(self.operation, self.returncode, self.diagnostic)
        return self

    @property
    def text(self) -> str:
        return self.output.decode("utf-8", errors="replace")


class Toolkit(Protocol):
    """One method per logical toolkit operation."""

    def check_certificate(self, source: Source, inform: Format) -> ToolkitResult: ...

    def export_certificate(self, source: Source, inform: Format, outform: Format) -> ToolkitResult: ...

    def certificate_field(self, source: Source, inform: Format, field: CertificateField) -> ToolkitResult: ...

    def check_rsa_key(self, source: Source, inform: Format, pass_in: str) -> ToolkitResult: ...

    def export_rsa_key(
        self,
        source: Source,
        inform: Format,
        pass_in: str,
        pass_out: Optional[str] = None,
        outform: Format = Format.PEM,
    ) -> ToolkitResult: ...

    def export_pkcs12(self, source: Source, pass_in: str, pass_out: str) -> ToolkitResult: ...

    def check_pkcs12(self, source: Source, password: str) -> ToolkitResult: ...

    def pkcs12_certificate(self, source: Source, password: str) -> ToolkitResult: ...

    def pkcs12_private_key(self, source: Source, password: str, pass_out: Optional[str] = None) -> ToolkitResult: ...


def looks_like_key_with_wrong_passphrase(diagnostic: str) -> bool:
    """
    True when the toolkit got as far as decrypting a key and failed on the
    padding, i.e. the input is a key and only the guessed passphrase was
    wrong.

    This matches openssl's error text and is sensitive to the toolkit
    version. When the marker changes, certificates and keys stop being told
    apart, so keep this check in one place.
    """
    return BAD_DECRYPT_MARKER in diagnostic


def looks_like_keystore_with_wrong_password(diagnostic: str) -> bool:
    """Same policy as the key probe, for the PKCS#12 MAC check."""
    return INVALID_PASSWORD_MARKER in diagnostic


def read_source(source: Source) -> bytes:
    if isinstance(source, bytes):
        return source
    return Path(source).read_bytes()


def find_pem_block(data: bytes, labels: Tuple[bytes, ...]) -> Optional[Tuple[bytes, bytes]]:
    """
    First PEM block whose label is in labels, as (label, block).
    Blocks with other labels before it are skipped.
    """
    for match in PEM_BLOCK.finditer(data):
        if match.group("label") in labels:
            return match.group("label"), match.group(0)
    return None


def get_toolkit(config: Dict[str, Any]) -> Toolkit:
    """Build the engine named in the config."""
    engine = str(config.get("engine") or "openssl").lower()

    if engine == "openssl":
        from .openssl import OpensslToolkit
        return OpensslToolkit(
            openssl_path=config.get("openssl_path") or "openssl",
            cipher=config.get("key_cipher") or "aes256",
            timeout=config.get("process_timeout"),
        )

    if engine == "native":
        from .native import NativeToolkit
        return NativeToolkit()

    raise CryptoFileError(f"Unknown toolkit engine: {engine}")


@lru_cache(maxsize=None)
def default_toolkit() -> Toolkit:
    from .config import load_config
    return get_toolkit(load_config())
