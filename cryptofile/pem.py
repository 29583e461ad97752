# cryptofile/pem.py

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

from .artifact import (
    ArtifactFile,
    ArtifactKind,
    key_accepts_pass_phrase,
    key_has_pass_phrase,
    parse_toolkit_date,
    probe_key,
    reject_empty_pass_phrase,
)
from .errors import KeystorePassPhraseEmpty
from .fileops import write_file
from .private_key import PrivateKeyFile
from .public_key import PublicKeyFile
from .toolkit import DUMMY_PASS_PHRASES, CertificateField, Format, Toolkit, default_toolkit

if TYPE_CHECKING:
    from .keystore import KeystoreFile

logger = logging.getLogger(__name__)


class PemFile(ArtifactFile):
    """
    A certificate and its RSA private key in one ascii file.

    The blocks may come in either order; every rewrite puts the
    certificate first and the key second. Each mutation extracts both
    halves again and writes the whole file, so the certificate always
    survives a pass phrase change untouched.
    """

    kind = ArtifactKind.BUNDLE

    def validate(self) -> bool:
        """
        Validates that the file is actually a PEM file containing a
        certificate and a private key. The key may be protected with a
        pass phrase we don't know.
        """
        if not self.toolkit.check_certificate(self.pathname, Format.PEM).success:
            return False

        return probe_key(self.toolkit, self.pathname, Format.PEM)

    def get_format(self) -> Format:
        return Format.PEM

    @classmethod
    def create(
        cls,
        path: Union[str, Path],
        public_key_file: PublicKeyFile,
        private_key_file: PrivateKeyFile,
        pass_phrase: Optional[str] = None,
        toolkit: Optional[Toolkit] = None,
    ) -> "PemFile":
        """
        Creates a new PEM file from a certificate and private key.

        pass_phrase opens the private key when it is protected and protects
        the key in the new file. Pass None for no pass phrase; an empty
        string raises PrivateKeyPassPhraseEmpty.
        """
        reject_empty_pass_phrase(pass_phrase)
        toolkit = toolkit if toolkit is not None else default_toolkit()

        certificate = toolkit.export_certificate(
            public_key_file.pathname, public_key_file.get_format(), Format.PEM
        ).check()
        private_key = toolkit.export_rsa_key(
            private_key_file.pathname,
            private_key_file.get_format(),
            pass_in=pass_phrase or "",
            pass_out=pass_phrase,
        ).check()

        write_file(path, certificate.output + private_key.output)
        return cls(path, toolkit=toolkit)

    def sanitize(self, pass_phrase: Optional[str] = None) -> "PemFile":
        """
        Sanitizes the PEM file, removing malicious data.

        A protected key needs its pass phrase, which then protects the key
        in the sanitized file. Pass None for no pass phrase.
        """
        reject_empty_pass_phrase(pass_phrase)
        return self._recompose(pass_in=pass_phrase or "", pass_out=pass_phrase)

    def get_keystore(
        self,
        path: Union[str, Path],
        keystore_pass_phrase: str,
        private_key_pass_phrase: Optional[str] = None,
    ) -> "KeystoreFile":
        """
        Gets a PKCS#12 keystore with the certificate and private key.
        The keystore pass phrase and the key's own pass phrase are
        independent.
        """
        from .keystore import KeystoreFile

        if not keystore_pass_phrase:
            raise KeystorePassPhraseEmpty()

        result = self.toolkit.export_pkcs12(
            self.pathname, pass_in=private_key_pass_phrase or "", pass_out=keystore_pass_phrase
        ).check()

        write_file(path, result.output)
        return KeystoreFile(path, keystore_pass_phrase, toolkit=self.toolkit)

    def get_public_key(self, path: Union[str, Path]) -> PublicKeyFile:
        result = self.toolkit.export_certificate(self.pathname, Format.PEM, Format.PEM).check()

        write_file(path, result.output)
        return PublicKeyFile(path, toolkit=self.toolkit)

    def get_private_key(self, path: Union[str, Path], pass_phrase: Optional[str] = None) -> PrivateKeyFile:
        """
        Gets the private key. pass_phrase opens the key and protects the
        written copy; None writes it without one.
        """
        reject_empty_pass_phrase(pass_phrase)

        result = self.toolkit.export_rsa_key(
            self.pathname, Format.PEM, pass_in=pass_phrase or "", pass_out=pass_phrase
        ).check()

        write_file(path, result.output)
        return PrivateKeyFile(path, toolkit=self.toolkit)

    # --- certificate attributes ---

    def get_subject(self) -> str:
        return self._field(CertificateField.SUBJECT, Format.PEM)

    def get_issuer(self) -> str:
        return self._field(CertificateField.ISSUER, Format.PEM)

    def get_not_before(self) -> datetime:
        return parse_toolkit_date(self._field(CertificateField.NOT_BEFORE, Format.PEM))

    def get_not_after(self) -> datetime:
        return parse_toolkit_date(self._field(CertificateField.NOT_AFTER, Format.PEM))

    # --- pass phrase ---

    def has_pass_phrase(self) -> bool:
        """Checks if the private key contains a pass phrase."""
        return key_has_pass_phrase(self.toolkit, self.pathname, Format.PEM)

    def verify_pass_phrase(self, pass_phrase: str) -> bool:
        """
        Verifies a pass phrase against the private key.

        Verifying a private key without a pass phrase returns True for any
        pass phrase.
        """
        return key_accepts_pass_phrase(self.toolkit, self.pathname, Format.PEM, pass_phrase)

    def add_pass_phrase(self, pass_phrase: str) -> "PemFile":
        reject_empty_pass_phrase(pass_phrase)
        return self._recompose(pass_in=DUMMY_PASS_PHRASES[0], pass_out=pass_phrase)

    def remove_pass_phrase(self, pass_phrase: str) -> "PemFile":
        return self._recompose(pass_in=pass_phrase, pass_out=None)

    def change_pass_phrase(self, pass_phrase: str, new_pass_phrase: str) -> "PemFile":
        reject_empty_pass_phrase(new_pass_phrase)
        return self._recompose(pass_in=pass_phrase, pass_out=new_pass_phrase)

    def _recompose(self, pass_in: str, pass_out: Optional[str]) -> "PemFile":
        """Extract certificate and key from this file, write them back in order."""
        certificate = self.toolkit.export_certificate(self.pathname, Format.PEM, Format.PEM).check()
        private_key = self.toolkit.export_rsa_key(
            self.pathname, Format.PEM, pass_in=pass_in, pass_out=pass_out
        ).check()

        return self._rewrite(certificate.output + private_key.output)
