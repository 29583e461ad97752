# cryptofile/artifact.py

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, TypeVar, Union

from .errors import FileNotFound, FileNotValid, PrivateKeyPassPhraseEmpty, StaleFileHandle
from .fileops import move_file, write_file
from .toolkit import (
    DUMMY_PASS_PHRASES,
    CertificateField,
    Format,
    Source,
    Toolkit,
    ToolkitResult,
    default_toolkit,
    looks_like_key_with_wrong_passphrase,
)

logger = logging.getLogger(__name__)

# More than this share of non-text bytes means binary (DER).
BINARY_THRESHOLD = 0.30
TEXT_BYTES = frozenset(range(0x20, 0x7F)) | frozenset(b"\t\n\r\f\b")

TOOLKIT_DATE = re.compile(
    r"^(?P<mon>[A-Za-z]{3})\s+(?P<day>\d{1,2})\s+(?P<h>\d{2}):(?P<m>\d{2}):(?P<s>\d{2})\s+(?P<year>\d{4})(?:\s+GMT)?$"
)
MONTHS = ("jan", "feb", "mar", "apr", "may", "jun",
          "jul", "aug", "sep", "oct", "nov", "dec")

A = TypeVar("A", bound="ArtifactFile")


class ArtifactKind(str, Enum):
    """The closed set of artifact variants."""
    CERTIFICATE = "certificate"
    PRIVATE_KEY = "private_key"
    BUNDLE = "bundle"
    KEYSTORE = "keystore"


def is_binary_content(data: bytes) -> bool:
    """
    Binary heuristic: any NUL byte, or more than BINARY_THRESHOLD of the
    bytes outside printable ASCII and common whitespace.
    """
    if not data:
        return False
    if b"\x00" in data:
        return True
    non_text = sum(1 for byte in data if byte not in TEXT_BYTES)
    return non_text / len(data) > BINARY_THRESHOLD


def strip_field(output: str, field: CertificateField) -> str:
    """Drop the 'subject=' style prefix from a toolkit answer."""
    text = output.strip()
    if text.startswith(field.prefix):
        text = text[len(field.prefix):]
    return text.strip()


def parse_toolkit_date(text: str) -> datetime:
    """
    Parse 'Jan  1 00:00:00 2024 GMT' (or ISO 8601) into an aware UTC
    datetime.
    """
    text = " ".join(text.split())
    match = TOOLKIT_DATE.match(text)
    if match and match.group("mon").lower() in MONTHS:
        return datetime(
            int(match.group("year")),
            MONTHS.index(match.group("mon").lower()) + 1,
            int(match.group("day")),
            int(match.group("h")),
            int(match.group("m")),
            int(match.group("s")),
            tzinfo=timezone.utc,
        )

    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def probe_key(toolkit: Toolkit, source: Source, inform: Format) -> bool:
    """
    True when source holds a private key: one of the dummy passphrases
    opens it, or the toolkit almost decrypted it.
    """
    for pass_phrase in DUMMY_PASS_PHRASES:
        result = toolkit.check_rsa_key(source, inform, pass_phrase)
        if result.success or looks_like_key_with_wrong_passphrase(result.diagnostic):
            return True
    return False


def key_has_pass_phrase(toolkit: Toolkit, source: Source, inform: Format) -> bool:
    return not any(
        toolkit.check_rsa_key(source, inform, pass_phrase).success
        for pass_phrase in DUMMY_PASS_PHRASES
    )


def key_accepts_pass_phrase(toolkit: Toolkit, source: Source, inform: Format, pass_phrase: str) -> bool:
    return toolkit.check_rsa_key(source, inform, pass_phrase).success


def reject_empty_pass_phrase(pass_phrase: Optional[str]) -> None:
    """An empty string is never a passphrase to write, None means 'none'."""
    if pass_phrase == "":
        raise PrivateKeyPassPhraseEmpty()


class ArtifactFile:
    """
    One file on disk holding a cryptographic artifact.

    Constructing a handle validates the file, so a handle always refers to
    a valid artifact. Operations that rewrite or move the file hand back a
    new handle and retire this one; using a retired handle raises
    StaleFileHandle.
    """

    kind: ArtifactKind

    def __init__(self, path: Union[str, Path], toolkit: Optional[Toolkit] = None):
        self._path = Path(path)
        self._stale = False

        if not self._path.is_file():
            raise FileNotFound(self._path)

        self.toolkit: Toolkit = toolkit if toolkit is not None else default_toolkit()

        if not self.validate():
            logger.debug("%s rejected as %s", self._path, self.kind.value)
            raise FileNotValid(self._path)

    def __repr__(self) -> str:
        state = " (stale)" if self._stale else ""
        return f"<{type(self).__name__} {self._path}{state}>"

    def __fspath__(self) -> str:
        return str(self.pathname)

    @property
    def pathname(self) -> Path:
        if self._stale:
            raise StaleFileHandle(self._path)
        return self._path

    @property
    def stale(self) -> bool:
        return self._stale

    def validate(self) -> bool:
        raise NotImplementedError

    def is_binary(self) -> bool:
        return is_binary_content(self.pathname.read_bytes())

    def get_format(self) -> Format:
        """Either ascii 'pem' or binary 'der', read from the current bytes."""
        return Format.DER if self.is_binary() else Format.PEM

    def move(self: A, directory: Union[str, Path], name: Optional[str] = None) -> A:
        """Move the file to a new location, returns the handle for it."""
        target = move_file(self.pathname, directory, name)
        self._invalidate()
        return self._reopen(target)

    # --- helpers for subclasses ---

    def _invalidate(self) -> None:
        self._stale = True

    def _reopen(self: A, path: Union[str, Path]) -> A:
        return type(self)(path, toolkit=self.toolkit)

    def _rewrite(self: A, data: bytes) -> A:
        """Overwrite the file in place and return the handle for the result."""
        path = self.pathname
        write_file(path, data)
        self._invalidate()
        return self._reopen(path)

    def _field(self, field: CertificateField, inform: Format) -> str:
        result: ToolkitResult = self.toolkit.certificate_field(self.pathname, inform, field).check()
        return strip_field(result.text, field)

